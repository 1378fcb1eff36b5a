"""
결제 검증 라우터

체크아웃 콜백이 전달한 reference를 Paystack에 직접 조회한 뒤 크레딧을 적용한다.
"""
import logging

from fastapi import APIRouter, Depends

from calevid.core.factory import ServiceFactory
from calevid.core.responses import success_response
from calevid.schemas import PaymentVerifyRequest
from calevid.services.payment_verification_service import PaymentVerificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.post("/verify")
async def verify_payment(
    payload: PaymentVerifyRequest,
    service: PaymentVerificationService = Depends(ServiceFactory.get_payment_verification_service),
):
    subject = (payload.email or payload.user_id or "").strip()
    logger.info(f"[PAYSTACK] verify requested reference={payload.reference}")

    result = await service.verify_and_apply(payload.reference, subject)
    message = "이미 처리된 결제입니다" if result.already_processed else "크레딧이 적용되었습니다"
    return success_response(data=result.to_dict(), message=message)
