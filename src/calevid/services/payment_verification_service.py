"""
Paystack 거래 검증 서비스

체크아웃 콜백에서 전달된 reference를 Paystack에 직접 조회해 결제 성공을 확인한 뒤
검증된 금액 기준으로 크레딧을 적용한다. 웹훅과 같은 원장을 사용하므로
웹훅/콜백 중 어느 쪽이 먼저 도착해도 크레딧은 한 번만 반영된다.
"""
import logging
from typing import Any, Dict

from calevid.core.credit_calculator import CreditCalculator
from calevid.core.responses import (
    AuthorizationException,
    BusinessException,
    ExternalServiceException,
    InvalidAmountException,
    SubjectNotFoundException,
)
from calevid.schemas.ledger import ApplyResult, coerce_int
from calevid.services.credit_ledger_service import CreditLedgerService
from calevid.services.paystack_client import PaystackAPIError, PaystackClient

logger = logging.getLogger(__name__)


def _normalize_email(value: Any) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


class PaymentVerificationService:
    """결제 검증 후 크레딧 적용"""

    def __init__(
        self,
        paystack_client: PaystackClient,
        ledger_service: CreditLedgerService,
        calculator: CreditCalculator,
    ):
        self.paystack_client = paystack_client
        self.ledger_service = ledger_service
        self.calculator = calculator

    async def verify_and_apply(self, reference: str, subject: str) -> ApplyResult:
        reference = (reference or "").strip()
        subject = (subject or "").strip()

        subject_record = await self.ledger_service.store.get_subject(subject) if subject else None
        if not subject_record:
            raise SubjectNotFoundException(subject or None)

        try:
            payload = await self.paystack_client.verify_transaction(reference)
        except PaystackAPIError as e:
            if e.is_network_error or e.code == "parse_error":
                raise ExternalServiceException("Paystack", "결제 게이트웨이에 연결할 수 없습니다") from e
            logger.warning("[PAYSTACK] verify rejected reference=%s status=%s", reference, e.status_code)
            raise BusinessException("결제 검증에 실패했습니다", "PAYMENT_VERIFICATION_FAILED", 400) from e

        data: Dict[str, Any] = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        if payload.get("status") is not True or data.get("status") != "success":
            logger.warning(
                "[PAYSTACK] verify not successful reference=%s status=%s data_status=%s",
                reference,
                payload.get("status"),
                data.get("status"),
            )
            raise BusinessException("결제 검증에 실패했습니다", "PAYMENT_VERIFICATION_FAILED", 400)

        amount = coerce_int(data.get("amount"))
        credits = self.calculator.credits_for(amount) if amount is not None else 0
        if credits <= 0:
            logger.warning("[PAYSTACK] payment too low reference=%s amount=%s", reference, amount)
            raise InvalidAmountException("결제 금액이 크레딧 1개 가격보다 적습니다")

        # 검증된 결제자 이메일과 대상 사용자 이메일이 같아야 적용
        customer = data.get("customer") if isinstance(data.get("customer"), dict) else {}
        payer_email = _normalize_email(customer.get("email"))
        subject_email = _normalize_email(subject_record.get("email"))
        if not payer_email or payer_email != subject_email:
            logger.warning(
                "[PAYSTACK] payer does not match subject reference=%s subject_id=%s",
                reference,
                subject_record.get("id"),
            )
            raise AuthorizationException("결제자와 크레딧 대상 사용자가 일치하지 않습니다", "SUBJECT_MISMATCH")

        return await self.ledger_service.apply_credits(reference, subject, credits)
