"""
서비스 인터페이스 정의
"""
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, Tuple

from calevid.schemas.ledger import ApplyResult, CreditLedgerEntry, PendingPurchaseIntent


class ICreditStore(ABC):
    """사용자 잔액 / 크레딧 원장 저장소 인터페이스"""

    @abstractmethod
    async def get_subject(self, identifier: str) -> Optional[Dict[str, Any]]:
        """이메일 또는 ID로 사용자 조회 (id, email, balance 포함)"""
        pass

    @abstractmethod
    async def get_ledger_entry(self, reference: str) -> Optional[CreditLedgerEntry]:
        """reference에 해당하는 원장 기록 조회"""
        pass

    @abstractmethod
    async def apply_credit_once(self, entry: CreditLedgerEntry) -> Tuple[bool, Optional[int]]:
        """원장 기록 생성과 잔액 증가를 하나의 트랜잭션으로 수행

        reference가 이미 있으면 아무것도 바꾸지 않고 (False, 현재 잔액)을 반환한다.
        """
        pass

    @abstractmethod
    async def get_pending_intent(self, subject_id: str) -> Optional[PendingPurchaseIntent]:
        """대기 중인 구매 의도 조회"""
        pass

    @abstractmethod
    async def save_pending_intent(self, intent: PendingPurchaseIntent) -> None:
        """구매 의도 저장 (기존 의도 덮어씀)"""
        pass

    @abstractmethod
    async def delete_pending_intent(self, subject_id: str) -> None:
        """구매 의도 삭제"""
        pass

    @abstractmethod
    async def apply_plan(self, subject_id: str, plan_id: str, usage_limit: int) -> None:
        """플랜/사용 한도/사용량/시작 시각 갱신"""
        pass

    @abstractmethod
    async def record_webhook_event(self, provider: str, reference: str, status: str, payload: Dict[str, Any] = None) -> bool:
        """웹훅 처리 결과 기록"""
        pass


class ICreditApplier(ABC):
    """크레딧 적용 위임 인터페이스 (로컬 또는 HTTP)"""

    @abstractmethod
    async def apply_credits(self, reference: str, subject: str, credits: int) -> ApplyResult:
        """reference 당 최대 1회 크레딧 적용"""
        pass
