"""
결제 이벤트 / 크레딧 원장 도메인 레코드
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional


APPLY_STATUS_APPLIED = "applied"
APPLY_STATUS_ALREADY_PROCESSED = "already_processed"
APPLY_STATUSES = (APPLY_STATUS_APPLIED, APPLY_STATUS_ALREADY_PROCESSED)


def _get(d: Dict, *keys: str, default=None):
    cur = d
    for k in keys:
        if not isinstance(cur, dict) or k not in cur:
            return default
        cur = cur[k]
    return cur


def coerce_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


@dataclass(frozen=True, slots=True)
class PaymentEvent:
    """서명 검증을 통과한 결제 알림 (저장하지 않음)"""

    event_type: str
    reference: str
    subject_identifier: str
    amount_minor_units: int
    currency: str
    status: str

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "PaymentEvent":
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        amount = coerce_int(data.get("amount"))
        return cls(
            event_type=str(payload.get("event") or "").strip(),
            reference=str(data.get("reference") or "").strip(),
            subject_identifier=str(_get(data, "customer", "email") or "").strip(),
            amount_minor_units=amount if amount is not None and amount >= 0 else 0,
            currency=str(data.get("currency") or "").upper(),
            status=str(data.get("status") or "").strip().lower(),
        )

    @property
    def is_successful_charge(self) -> bool:
        return self.event_type == "charge.success" and self.status == "success"


@dataclass(frozen=True, slots=True)
class CreditLedgerEntry:
    """reference 당 최대 1건 존재하는 크레딧 적용 기록"""

    reference: str
    applied_at: datetime
    credits_applied: int
    subject_identifier: str
    subject_id: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        return {
            "reference": self.reference,
            "applied_at": self.applied_at.isoformat(),
            "credits_applied": self.credits_applied,
            "subject_identifier": self.subject_identifier,
            "subject_id": self.subject_id,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "CreditLedgerEntry":
        applied_at = record.get("applied_at")
        if isinstance(applied_at, str):
            applied_at = datetime.fromisoformat(applied_at.replace("Z", "+00:00"))
        return cls(
            reference=record["reference"],
            applied_at=applied_at or datetime.now(timezone.utc),
            credits_applied=int(record.get("credits_applied") or 0),
            subject_identifier=record.get("subject_identifier") or "",
            subject_id=record.get("subject_id"),
        )


@dataclass(slots=True)
class PendingPurchaseIntent:
    """결제 전에 저장해 두는 구매 의도 (결제 확인 후 삭제)"""

    subject_id: str
    credits_requested: Optional[int] = None
    plan_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_record(self) -> Dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "credits_requested": self.credits_requested,
            "plan_id": self.plan_id,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "PendingPurchaseIntent":
        created_at = record.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        return cls(
            subject_id=str(record["subject_id"]),
            credits_requested=record.get("credits_requested"),
            plan_id=record.get("plan_id"),
            created_at=created_at or datetime.now(timezone.utc),
        )


@dataclass(slots=True)
class ApplyResult:
    reference: str
    status: str
    subject_id: Optional[str]
    credits_applied: int
    new_balance: Optional[int]
    applied_at: Optional[datetime] = None
    plan: Optional[str] = None

    @property
    def already_processed(self) -> bool:
        return self.status == APPLY_STATUS_ALREADY_PROCESSED

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["applied_at"] = self.applied_at.isoformat() if self.applied_at else None
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ApplyResult":
        """적용 결과 응답 파싱. status 가 applied/already_processed 가 아니면 ValueError"""
        status = payload.get("status")
        if status not in APPLY_STATUSES:
            raise ValueError(f"unknown apply status: {status!r}")
        applied_at = payload.get("applied_at")
        if isinstance(applied_at, str):
            applied_at = datetime.fromisoformat(applied_at.replace("Z", "+00:00"))
        return cls(
            reference=payload.get("reference") or "",
            status=status,
            subject_id=payload.get("subject_id"),
            credits_applied=int(payload.get("credits_applied") or 0),
            new_balance=payload.get("new_balance"),
            applied_at=applied_at,
            plan=payload.get("plan"),
        )
