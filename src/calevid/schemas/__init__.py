"""
API 요청/응답 스키마 정의
"""
from typing import Optional

from pydantic import BaseModel, Field

from calevid.schemas.ledger import (
    APPLY_STATUS_ALREADY_PROCESSED,
    APPLY_STATUS_APPLIED,
    ApplyResult,
    CreditLedgerEntry,
    PaymentEvent,
    PendingPurchaseIntent,
)


class PurchaseIntentRequest(BaseModel):
    """체크아웃 직전에 저장하는 구매 의도"""
    secret: str = Field(..., description="크레딧 적용 RPC 공유 시크릿")
    email: Optional[str] = Field(None, description="사용자 이메일")
    user_id: Optional[str] = Field(None, description="사용자 ID")
    credits: Optional[int] = Field(None, description="구매하려는 크레딧 수")
    plan: Optional[str] = Field(None, description="구매하려는 플랜 (starter/standard/pro)")


class PaymentVerifyRequest(BaseModel):
    """Paystack 거래 검증 후 크레딧 적용 요청"""
    reference: str = Field(..., min_length=1, description="Paystack 거래 reference")
    user_id: Optional[str] = Field(None, description="사용자 ID")
    email: Optional[str] = Field(None, description="사용자 이메일")


class VideoGenerateRequest(BaseModel):
    """영상 생성 요청"""
    prompt: str = Field("", description="영상 생성 프롬프트")


__all__ = [
    "APPLY_STATUS_ALREADY_PROCESSED",
    "APPLY_STATUS_APPLIED",
    "ApplyResult",
    "CreditLedgerEntry",
    "PaymentEvent",
    "PendingPurchaseIntent",
    "PurchaseIntentRequest",
    "PaymentVerifyRequest",
    "VideoGenerateRequest",
]
