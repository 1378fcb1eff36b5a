"""
Supabase 기반 크레딧 저장소 헬퍼 모듈

테이블
- subjects: id, email, balance, plan, plan_limit, plan_used, plan_start
- credit_ledger: reference(PK), subject_id, subject_identifier, credits_applied, applied_at
- pending_purchase_intents: subject_id(PK), credits_requested, plan_id, created_at
- system_logs: event_type, event_data, user_id
RPC
- apply_credit_once(p_reference, p_subject_id, p_subject_identifier, p_delta, p_applied_at)
  -> (applied, balance). 원장 insert 와 잔액 증가를 한 트랜잭션으로 처리
"""

from typing import Dict, Optional, Any, Tuple
from datetime import datetime, timezone
from supabase import Client
from postgrest.exceptions import APIError
import logging

from calevid.core.interfaces import ICreditStore
from calevid.core.responses import DelegateUnreachableException, SubjectNotFoundException
from calevid.schemas.ledger import CreditLedgerEntry, PendingPurchaseIntent

logger = logging.getLogger(__name__)

SUBJECT_MISSING = 'P0002'


class DatabaseHelper(ICreditStore):
    def __init__(self, supabase_client: Client, admin_client: Client = None):
        self.supabase = supabase_client
        self.admin_client = admin_client or supabase_client

    def _get_client(self, use_admin: bool = False):
        """적절한 클라이언트 반환 - 일반적으로 admin client 사용"""
        return self.admin_client if use_admin or self.admin_client else self.supabase

    @staticmethod
    def _error_code(error: APIError) -> str:
        return str(getattr(error, 'code', '') or '')

    async def get_subject(self, identifier: str) -> Optional[Dict[str, Any]]:
        """이메일(@ 포함) 또는 ID로 사용자 조회"""
        column = 'email' if '@' in identifier else 'id'
        value = identifier.strip().lower() if column == 'email' else identifier.strip()
        try:
            client = self._get_client(use_admin=True)
            result = client.table('subjects').select('*').eq(column, value).limit(1).execute()
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"사용자 조회 실패: {e}")
            raise DelegateUnreachableException("사용자 저장소 조회에 실패했습니다") from e

    async def get_ledger_entry(self, reference: str) -> Optional[CreditLedgerEntry]:
        """reference 원장 기록 조회"""
        try:
            client = self._get_client(use_admin=True)
            result = client.table('credit_ledger').select('*').eq('reference', reference).limit(1).execute()
            return CreditLedgerEntry.from_record(result.data[0]) if result.data else None
        except Exception as e:
            logger.error(f"원장 기록 조회 실패: {e}")
            raise DelegateUnreachableException("원장 조회에 실패했습니다") from e

    async def apply_credit_once(self, entry: CreditLedgerEntry) -> Tuple[bool, Optional[int]]:
        """RPC apply_credit_once: 원장 insert 와 잔액 증가를 한 트랜잭션으로 수행

        응답이 유실돼도 원장과 잔액은 함께 커밋되었거나 함께 롤백된 상태이므로
        재시도는 기존 원장을 보고 already_processed 로 끝난다.
        """
        params = {
            'p_reference': entry.reference,
            'p_subject_id': entry.subject_id,
            'p_subject_identifier': entry.subject_identifier,
            'p_delta': int(entry.credits_applied),
            'p_applied_at': entry.applied_at.isoformat(),
        }
        try:
            client = self._get_client(use_admin=True)
            rpc_res = client.rpc('apply_credit_once', params).execute()
        except APIError as e:
            if self._error_code(e) == SUBJECT_MISSING:
                raise SubjectNotFoundException("대상 사용자를 찾을 수 없습니다") from e
            logger.error(f"크레딧 반영 실패 reference={entry.reference}: {e}")
            raise DelegateUnreachableException("크레딧 반영에 실패했습니다") from e
        except Exception as e:
            logger.error(f"크레딧 반영 실패 reference={entry.reference}: {e}")
            raise DelegateUnreachableException("크레딧 반영에 실패했습니다") from e

        row = rpc_res.data if hasattr(rpc_res, 'data') else None
        if isinstance(row, list):
            row = row[0] if row else None
        if not isinstance(row, dict) or 'applied' not in row:
            logger.error(f"[LEDGER] unexpected apply_credit_once result for {entry.reference}: {row!r}")
            raise DelegateUnreachableException("크레딧 반영 결과를 확인할 수 없습니다")

        balance = row.get('balance')
        applied = bool(row['applied'])
        if not applied:
            logger.info(f"[LEDGER] reference already applied: {entry.reference}")
        return applied, int(balance) if balance is not None else None

    async def get_pending_intent(self, subject_id: str) -> Optional[PendingPurchaseIntent]:
        """대기 중인 구매 의도 조회"""
        try:
            client = self._get_client(use_admin=True)
            result = client.table('pending_purchase_intents').select('*').eq('subject_id', subject_id).limit(1).execute()
            return PendingPurchaseIntent.from_record(result.data[0]) if result.data else None
        except Exception as e:
            logger.error(f"구매 의도 조회 실패: {e}")
            raise DelegateUnreachableException("구매 의도 조회에 실패했습니다") from e

    async def save_pending_intent(self, intent: PendingPurchaseIntent) -> None:
        """구매 의도 저장 (subject_id 기준 upsert)"""
        try:
            client = self._get_client(use_admin=True)
            client.table('pending_purchase_intents').upsert(intent.to_record(), on_conflict='subject_id').execute()
        except Exception as e:
            logger.error(f"구매 의도 저장 실패: {e}")
            raise DelegateUnreachableException("구매 의도 저장에 실패했습니다") from e

    async def delete_pending_intent(self, subject_id: str) -> None:
        """구매 의도 삭제"""
        try:
            client = self._get_client(use_admin=True)
            client.table('pending_purchase_intents').delete().eq('subject_id', subject_id).execute()
        except Exception as e:
            logger.error(f"구매 의도 삭제 실패: {e}")
            raise DelegateUnreachableException("구매 의도 삭제에 실패했습니다") from e

    async def apply_plan(self, subject_id: str, plan_id: str, usage_limit: int) -> None:
        """플랜 정보 갱신 (사용량 0으로 초기화)"""
        try:
            client = self._get_client(use_admin=True)
            client.table('subjects').update({
                'plan': plan_id,
                'plan_limit': usage_limit,
                'plan_used': 0,
                'plan_start': datetime.now(timezone.utc).isoformat(),
            }).eq('id', subject_id).execute()
        except Exception as e:
            logger.error(f"플랜 갱신 실패: {e}")
            raise DelegateUnreachableException("플랜 갱신에 실패했습니다") from e

    async def log_system_event(self, user_id: str = None, event_type: str = 'info',
                               event_data: Dict[str, Any] = None) -> bool:
        """시스템 이벤트 로깅"""
        try:
            log_data = {
                'user_id': user_id,
                'event_type': event_type,
                'event_data': event_data or {},
            }
            result = self.admin_client.table('system_logs').insert(log_data).execute()
            return bool(result.data)
        except Exception as e:
            logger.error(f"시스템 로그 기록 실패: {e}")
            return False

    async def record_webhook_event(self, provider: str, reference: str, status: str, payload: Dict[str, Any] = None) -> bool:
        """웹훅 이벤트 처리 기록"""
        if not reference:
            return False

        event_payload = {
            'reference': reference,
            'status': status,
        }
        if payload:
            event_payload['payload'] = payload

        return await self.log_system_event(event_type=f"{provider}_webhook", event_data=event_payload)
