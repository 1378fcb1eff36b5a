"""
크레딧 적용 라우터 (서비스 간 호출 전용)

모든 엔드포인트는 CREDIT_APPLY_SECRET 공유 시크릿으로 보호되며
시크릿 비교는 다른 어떤 입력 검증/저장소 접근보다 먼저 수행된다.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request

from calevid.core.config import Settings
from calevid.core.factory import ServiceFactory
from calevid.core.responses import (
    AuthenticationException,
    InvalidAmountException,
    MalformedPayloadException,
    ValidationException,
    success_response,
)
from calevid.schemas import PurchaseIntentRequest
from calevid.schemas.ledger import coerce_int
from calevid.services.credit_ledger_service import CreditLedgerService
from calevid.utils.signature import secrets_match

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/credits", tags=["credits"])

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def _read_params(request: Request) -> Dict[str, Any]:
    """쿼리 + (POST) JSON/폼 본문을 하나의 dict로 병합"""
    params: Dict[str, Any] = dict(request.query_params)
    if request.method != "POST":
        return params

    content_type = request.headers.get("content-type", "").lower()
    if "application/json" in content_type:
        try:
            body = await request.json()
        except ValueError as e:
            raise MalformedPayloadException() from e
        if not isinstance(body, dict):
            raise MalformedPayloadException("요청 본문은 JSON 객체여야 합니다")
        params.update(body)
    elif content_type.startswith(_FORM_TYPES):
        form = await request.form()
        params.update({key: value for key, value in form.items()})
    return params


def _require_secret(provided: Optional[Any], settings: Settings) -> None:
    if not secrets_match(str(provided) if provided is not None else None, settings.CREDIT_APPLY_SECRET):
        logger.warning("[CREDIT_APPLY] rejected request with invalid secret")
        raise AuthenticationException("크레딧 적용 시크릿이 올바르지 않습니다")


def _subject_from(params: Dict[str, Any]) -> str:
    email = str(params.get("email") or "").strip()
    if email:
        return email
    return str(params.get("user_id") or "").strip()


@router.api_route("/apply", methods=["GET", "POST"])
async def apply_credits(
    request: Request,
    settings: Settings = Depends(ServiceFactory.get_settings),
    ledger_service: CreditLedgerService = Depends(ServiceFactory.get_ledger_service),
):
    """결제 reference 기준 멱등 크레딧 적용"""
    params = await _read_params(request)
    _require_secret(params.get("secret"), settings)

    subject = _subject_from(params)
    if not subject:
        raise ValidationException("email 또는 user_id가 필요합니다", error_code="MISSING_SUBJECT")

    credits = coerce_int(params.get("credits"))
    if credits is None or credits <= 0:
        raise InvalidAmountException(f"크레딧 수량이 유효하지 않습니다: {params.get('credits')!r}")

    result = await ledger_service.apply_credits(str(params.get("reference") or ""), subject, credits)
    message = "이미 처리된 결제입니다" if result.already_processed else "크레딧이 적용되었습니다"
    return success_response(data=result.to_dict(), message=message)


@router.post("/intent")
async def save_purchase_intent(
    payload: PurchaseIntentRequest,
    settings: Settings = Depends(ServiceFactory.get_settings),
    ledger_service: CreditLedgerService = Depends(ServiceFactory.get_ledger_service),
):
    """체크아웃 직전 구매 의도 저장 (기존 의도 대체)"""
    _require_secret(payload.secret, settings)

    subject = _subject_from(payload.model_dump())
    if not subject:
        raise ValidationException("email 또는 user_id가 필요합니다", error_code="MISSING_SUBJECT")

    intent = await ledger_service.save_purchase_intent(subject, credits=payload.credits, plan=payload.plan)
    return success_response(data=intent.to_record(), message="구매 의도가 저장되었습니다")


@router.get("/ledger/{reference}")
async def get_ledger_entry(
    reference: str,
    secret: Optional[str] = None,
    settings: Settings = Depends(ServiceFactory.get_settings),
    ledger_service: CreditLedgerService = Depends(ServiceFactory.get_ledger_service),
):
    _require_secret(secret, settings)
    entry = await ledger_service.get_ledger_entry(reference)
    return success_response(data=entry.to_record(), message="원장 기록")
