from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from calevid.core.config import Settings, get_settings
from calevid.core.factory import ServiceFactory
from calevid.core.interfaces import ICreditStore
from calevid.core.middleware import setup_exception_handlers
from calevid.core.responses import success_response
from calevid.routers import credits_router, payments_router, paystack_router, video_router

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


def create_app(settings: Optional[Settings] = None, store: Optional[ICreditStore] = None) -> FastAPI:
    """FastAPI 애플리케이션 생성

    설정이 유효하지 않으면 Settings 생성 단계에서 예외가 발생해 앱이 기동되지 않는다.
    """
    settings = settings or get_settings()

    # 로깅 설정
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    ServiceFactory.configure_dependencies(settings, store)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        logger.info(
            f"서버 시작: mode={settings.CREDIT_APPLY_MODE} store={settings.STORE_BACKEND} "
            f"credit_price={settings.CREDIT_PRICE}"
        )
        yield
        logger.info("서버 종료")

    app = FastAPI(
        title="Calevid Billing Server",
        description="Paystack 결제 웹훅을 영상 생성 크레딧으로 전환하는 서버",
        version=APP_VERSION,
        lifespan=lifespan,
        debug=settings.DEBUG
    )

    # 예외 처리 미들웨어 설정
    setup_exception_handlers(app)

    # CORS 미들웨어 추가
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 기본 엔드포인트
    @app.get("/")
    async def root():
        return success_response(
            data={"message": "Calevid billing server"},
            message="서버가 정상적으로 실행 중입니다"
        )

    @app.get("/health")
    async def health_check():
        return success_response(
            data={
                "timestamp": datetime.now().isoformat(),
                "version": APP_VERSION,
                "credit_apply_mode": settings.CREDIT_APPLY_MODE,
                "environment": "development" if settings.DEBUG else "production"
            },
            message="헬스 체크"
        )

    # 라우터 등록
    app.include_router(paystack_router.router)  # Paystack 웹훅 라우터
    app.include_router(credits_router.router)  # 크레딧 적용 RPC
    app.include_router(payments_router.router)  # 결제 검증
    app.include_router(video_router.router)  # 영상 생성 프록시

    return app


def run():
    settings = get_settings()
    uvicorn.run(
        "calevid.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=settings.DEBUG
    )


if __name__ == "__main__":
    run()
