"""
프로세스 메모리 기반 크레딧 저장소

STORE_BACKEND=memory 로컬 실행과 테스트에서 사용한다.
DB 없이도 고유 제약(원장 reference)과 원자적 잔액 증가를 동일하게 보장한다.
"""
import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from calevid.core.interfaces import ICreditStore
from calevid.schemas.ledger import CreditLedgerEntry, PendingPurchaseIntent


class InMemoryCreditStore(ICreditStore):
    """dict 기반 저장소 (asyncio.Lock 으로 변경 구간 직렬화)"""

    def __init__(self):
        self.subjects: Dict[str, Dict[str, Any]] = {}
        self.ledger: Dict[str, CreditLedgerEntry] = {}
        self.intents: Dict[str, PendingPurchaseIntent] = {}
        self.webhook_events: List[Dict[str, Any]] = []
        self._lock = asyncio.Lock()

    def add_subject(self, email: str, subject_id: str = None, balance: int = 0) -> Dict[str, Any]:
        """사용자 등록 (테스트/로컬 시드용)"""
        record = {
            "id": subject_id or str(uuid.uuid4()),
            "email": email.strip().lower(),
            "balance": balance,
            "plan": None,
            "plan_limit": None,
            "plan_used": None,
            "plan_start": None,
        }
        self.subjects[record["id"]] = record
        return record

    def _find_subject(self, identifier: str) -> Optional[Dict[str, Any]]:
        if "@" in identifier:
            email = identifier.strip().lower()
            return next((s for s in self.subjects.values() if s["email"] == email), None)
        return self.subjects.get(identifier.strip())

    async def get_subject(self, identifier: str) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0)
        record = self._find_subject(identifier)
        return dict(record) if record else None

    async def get_ledger_entry(self, reference: str) -> Optional[CreditLedgerEntry]:
        await asyncio.sleep(0)
        return self.ledger.get(reference)

    async def apply_credit_once(self, entry: CreditLedgerEntry) -> Tuple[bool, Optional[int]]:
        await asyncio.sleep(0)
        async with self._lock:
            record = self.subjects.get(entry.subject_id)
            if entry.reference in self.ledger:
                return False, int(record.get("balance") or 0) if record else None
            if record is None:
                raise KeyError(f"subject {entry.subject_id} not found")
            self.ledger[entry.reference] = entry
            record["balance"] = int(record.get("balance") or 0) + int(entry.credits_applied)
            return True, record["balance"]

    async def get_pending_intent(self, subject_id: str) -> Optional[PendingPurchaseIntent]:
        return self.intents.get(subject_id)

    async def save_pending_intent(self, intent: PendingPurchaseIntent) -> None:
        self.intents[intent.subject_id] = intent

    async def delete_pending_intent(self, subject_id: str) -> None:
        self.intents.pop(subject_id, None)

    async def apply_plan(self, subject_id: str, plan_id: str, usage_limit: int) -> None:
        async with self._lock:
            record = self.subjects[subject_id]
            record.update({
                "plan": plan_id,
                "plan_limit": usage_limit,
                "plan_used": 0,
                "plan_start": datetime.now(timezone.utc).isoformat(),
            })

    async def record_webhook_event(self, provider: str, reference: str, status: str, payload: Dict[str, Any] = None) -> bool:
        if not reference:
            return False
        self.webhook_events.append({
            "event_type": f"{provider}_webhook",
            "reference": reference,
            "status": status,
            "payload": payload or {},
        })
        return True
