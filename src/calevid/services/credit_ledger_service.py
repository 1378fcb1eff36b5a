"""
크레딧 원장 서비스

reference(결제 거래 ID) 당 최대 1회만 사용자 잔액에 크레딧을 더한다.
- 프로세스 내: reference 별 asyncio.Lock
- 프로세스 간: 저장소의 원장 reference 고유 제약 (이미 있으면 already_processed)
- 원장 기록과 잔액 증가: 저장소의 단일 트랜잭션 (apply_credit_once)
"""
import asyncio
from datetime import datetime, timezone
from typing import Dict, Optional

from calevid.core.base_service import BaseService
from calevid.core.interfaces import ICreditStore, ICreditApplier
from calevid.core.plan_config import PlanConfig
from calevid.core.responses import (
    InvalidAmountException,
    NotFoundException,
    SubjectNotFoundException,
    ValidationException,
)
from calevid.schemas.ledger import (
    APPLY_STATUS_ALREADY_PROCESSED,
    APPLY_STATUS_APPLIED,
    ApplyResult,
    CreditLedgerEntry,
    PendingPurchaseIntent,
)


class CreditLedgerService(BaseService):
    """멱등 크레딧 적용 서비스"""

    def __init__(self, store: ICreditStore):
        super().__init__(store)
        self._reference_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def _drop_user(self, reference: str) -> None:
        remaining = self._lock_users.get(reference, 1) - 1
        if remaining <= 0:
            self._lock_users.pop(reference, None)
            self._reference_locks.pop(reference, None)
        else:
            self._lock_users[reference] = remaining

    async def _acquire(self, reference: str) -> asyncio.Lock:
        lock = self._reference_locks.setdefault(reference, asyncio.Lock())
        self._lock_users[reference] = self._lock_users.get(reference, 0) + 1
        try:
            await lock.acquire()
        except BaseException:
            # 대기 중 취소되면 사용자 수만 되돌린다
            self._drop_user(reference)
            raise
        return lock

    def _release(self, reference: str, lock: asyncio.Lock) -> None:
        lock.release()
        self._drop_user(reference)

    @staticmethod
    def _validate(reference: str, subject: str, credits: int) -> tuple[str, str, int]:
        reference = (reference or "").strip() if isinstance(reference, str) else ""
        subject = (subject or "").strip() if isinstance(subject, str) else ""
        if not reference:
            raise ValidationException("reference가 필요합니다", error_code="MISSING_REFERENCE")
        if not subject:
            raise ValidationException("email 또는 user_id가 필요합니다", error_code="MISSING_SUBJECT")
        if isinstance(credits, bool) or not isinstance(credits, int) or credits <= 0:
            raise InvalidAmountException(f"크레딧 수량이 유효하지 않습니다: {credits!r}")
        return reference, subject, credits

    async def _already_processed(self, entry: CreditLedgerEntry) -> ApplyResult:
        balance: Optional[int] = None
        lookup = entry.subject_id or entry.subject_identifier
        if lookup:
            subject_record = await self.store.get_subject(lookup)
            if subject_record:
                balance = int(subject_record.get("balance") or 0)
        return ApplyResult(
            reference=entry.reference,
            status=APPLY_STATUS_ALREADY_PROCESSED,
            subject_id=entry.subject_id,
            credits_applied=entry.credits_applied,
            new_balance=balance,
            applied_at=entry.applied_at,
        )

    async def apply_credits(self, reference: str, subject: str, credits: int) -> ApplyResult:
        """크레딧 적용 (Unseen → Applied, Applied 이후 호출은 no-op)"""

        reference, subject, credits = self._validate(reference, subject, credits)

        lock = await self._acquire(reference)
        try:
            existing = await self.store.get_ledger_entry(reference)
            if existing:
                self.logger.info("[LEDGER] reference already processed: %s", reference)
                return await self._already_processed(existing)

            subject_record = await self.store.get_subject(subject)
            if not subject_record:
                self.logger.warning("[LEDGER] subject not found for reference %s", reference)
                raise SubjectNotFoundException(subject)

            subject_id = str(subject_record["id"])
            entry = CreditLedgerEntry(
                reference=reference,
                applied_at=datetime.now(timezone.utc),
                credits_applied=credits,
                subject_identifier=subject,
                subject_id=subject_id,
            )

            applied, new_balance = await self.store.apply_credit_once(entry)
            if not applied:
                # 다른 프로세스가 먼저 반영
                winner = await self.store.get_ledger_entry(reference)
                return await self._already_processed(winner or entry)

            plan_id = await self._consume_pending_intent(subject_id)

            self.logger.info(
                "[LEDGER] credits applied reference=%s subject_id=%s credits=%s balance=%s plan=%s",
                reference,
                subject_id,
                credits,
                new_balance,
                plan_id,
            )
            return ApplyResult(
                reference=reference,
                status=APPLY_STATUS_APPLIED,
                subject_id=subject_id,
                credits_applied=credits,
                new_balance=new_balance,
                applied_at=entry.applied_at,
                plan=plan_id,
            )
        finally:
            self._release(reference, lock)

    async def _consume_pending_intent(self, subject_id: str) -> Optional[str]:
        """구매 의도가 있으면 플랜 반영 후 삭제. 실패해도 이미 반영된 크레딧은 유지"""
        try:
            intent = await self.store.get_pending_intent(subject_id)
            if not intent:
                return None

            plan = PlanConfig.get_plan(intent.plan_id)
            if plan:
                await self.store.apply_plan(subject_id, plan.plan_id, plan.usage_limit)
            await self.store.delete_pending_intent(subject_id)
            return plan.plan_id if plan else None
        except Exception as e:
            self.logger.error("[LEDGER] pending intent handling failed for subject %s: %s", subject_id, e)
            return None

    async def save_purchase_intent(
        self,
        subject: str,
        credits: Optional[int] = None,
        plan: Optional[str] = None,
    ) -> PendingPurchaseIntent:
        """체크아웃 전 구매 의도 저장"""

        if not credits and not plan:
            raise ValidationException("credits 또는 plan이 필요합니다", error_code="MISSING_INTENT")
        if credits is not None and (isinstance(credits, bool) or credits <= 0):
            raise InvalidAmountException()
        if plan and not PlanConfig.is_valid_plan(plan):
            raise ValidationException(f"알 수 없는 플랜입니다: {plan}", error_code="UNKNOWN_PLAN")

        subject_record = await self.store.get_subject(subject)
        if not subject_record:
            raise SubjectNotFoundException(subject)

        intent = PendingPurchaseIntent(
            subject_id=str(subject_record["id"]),
            credits_requested=credits,
            plan_id=PlanConfig.get_plan(plan).plan_id if plan else None,
        )
        await self.store.save_pending_intent(intent)
        self.logger.info("[LEDGER] purchase intent saved subject_id=%s credits=%s plan=%s", intent.subject_id, credits, intent.plan_id)
        return intent

    async def get_ledger_entry(self, reference: str) -> CreditLedgerEntry:
        entry = await self.store.get_ledger_entry((reference or "").strip())
        if not entry:
            raise NotFoundException("원장 기록을 찾을 수 없습니다", "LEDGER_ENTRY_NOT_FOUND")
        return entry


class LocalCreditApplier(ICreditApplier):
    """같은 프로세스의 CreditLedgerService로 위임"""

    def __init__(self, ledger_service: CreditLedgerService):
        self.ledger_service = ledger_service

    async def apply_credits(self, reference: str, subject: str, credits: int) -> ApplyResult:
        return await self.ledger_service.apply_credits(reference, subject, credits)
