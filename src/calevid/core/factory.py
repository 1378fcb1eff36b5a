"""
서비스 팩토리 - 의존성 주입 설정
"""
import logging
from typing import Optional

from supabase import create_client

from calevid.core.config import Settings
from calevid.core.container import container
from calevid.core.credit_calculator import CreditCalculator
from calevid.core.interfaces import ICreditApplier, ICreditStore
from calevid.database_helper import DatabaseHelper
from calevid.inmemory_store import InMemoryCreditStore
from calevid.services.credit_apply_client import HttpCreditApplier
from calevid.services.credit_ledger_service import CreditLedgerService, LocalCreditApplier
from calevid.services.payment_verification_service import PaymentVerificationService
from calevid.services.paystack_client import PaystackClient
from calevid.services.video_generation_client import VideoGenerationClient

logger = logging.getLogger(__name__)


class ServiceFactory:
    """서비스 의존성 등록 및 초기화"""

    @staticmethod
    def build_store(settings: Settings) -> ICreditStore:
        if settings.STORE_BACKEND == "memory":
            logger.warning("[LEDGER] STORE_BACKEND=memory: 프로세스 재시작 시 원장이 초기화됩니다")
            return InMemoryCreditStore()

        supabase_admin = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
        return DatabaseHelper(supabase_admin)

    @staticmethod
    def configure_dependencies(settings: Settings, store: Optional[ICreditStore] = None):
        """의존성 주입 컨테이너 설정"""
        container.reset()
        container.register_singleton(Settings, settings)

        store = store or ServiceFactory.build_store(settings)
        container.register_singleton(ICreditStore, store)

        calculator = CreditCalculator(settings.CREDIT_PRICE)
        container.register_singleton(CreditCalculator, calculator)

        ledger_service = CreditLedgerService(store)
        container.register_singleton(CreditLedgerService, ledger_service)

        # 크레딧 적용 위임 대상 선택
        if settings.CREDIT_APPLY_MODE == "http":
            applier: ICreditApplier = HttpCreditApplier(
                url=settings.credit_apply_url,
                secret=settings.CREDIT_APPLY_SECRET,
                timeout=settings.CREDIT_APPLY_TIMEOUT,
                max_retries=settings.CREDIT_APPLY_MAX_RETRIES,
                backoff_factor=settings.CREDIT_APPLY_BACKOFF,
            )
            logger.info("[CREDIT_APPLY] delegating to %s", settings.credit_apply_url)
        else:
            applier = LocalCreditApplier(ledger_service)
        container.register_singleton(ICreditApplier, applier)

        paystack_client = PaystackClient(
            secret_key=settings.PAYSTACK_SECRET_KEY,
            base_url=settings.PAYSTACK_API_BASE_URL,
            timeout=settings.PAYSTACK_VERIFY_TIMEOUT,
        )
        container.register_singleton(PaystackClient, paystack_client)
        container.register_singleton(
            PaymentVerificationService,
            PaymentVerificationService(paystack_client, ledger_service, calculator),
        )

        container.register_singleton(
            VideoGenerationClient,
            VideoGenerationClient(
                api_key=settings.FAL_KEY,
                base_url=settings.FAL_API_BASE_URL,
                model=settings.FAL_MODEL,
                timeout=settings.VIDEO_TIMEOUT,
            ),
        )

    @staticmethod
    def get_settings() -> Settings:
        return container.get(Settings)

    @staticmethod
    def get_store() -> ICreditStore:
        """크레딧 저장소 조회"""
        return container.get(ICreditStore)

    @staticmethod
    def get_calculator() -> CreditCalculator:
        return container.get(CreditCalculator)

    @staticmethod
    def get_ledger_service() -> CreditLedgerService:
        """크레딧 원장 서비스 조회"""
        return container.get(CreditLedgerService)

    @staticmethod
    def get_credit_applier() -> ICreditApplier:
        """크레딧 적용 위임 대상 조회"""
        return container.get(ICreditApplier)

    @staticmethod
    def get_payment_verification_service() -> PaymentVerificationService:
        return container.get(PaymentVerificationService)

    @staticmethod
    def get_video_client() -> VideoGenerationClient:
        return container.get(VideoGenerationClient)
