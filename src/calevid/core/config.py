"""
애플리케이션 설정 관리

필수 시크릿(PAYSTACK_SECRET_KEY, CREDIT_APPLY_SECRET, SITE_BASE_URL, FAL_KEY)이
비어 있으면 Settings 생성 자체가 실패하므로 웹훅 로직은 절대 기동되지 않는다.
"""
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_FILE_PATH = Path(__file__).resolve()


def _collect_env_files(file_path: Path) -> tuple[Path, ...]:
    """환경 파일 후보를 가까운 디렉터리부터 수집"""

    collected: list[Path] = []
    seen: set[Path] = set()

    for directory in file_path.parents:
        for name in (".env", ".env.local"):
            candidate = directory / name
            if candidate.exists() and candidate not in seen:
                collected.append(candidate)
                seen.add(candidate)

    return tuple(collected)


_ENV_FILES = _collect_env_files(_FILE_PATH)


def _load_dotenv_files() -> None:
    """프로젝트 전체에서 활용할 .env 파일들을 순차적으로 로드"""

    for dotenv_path in _ENV_FILES:
        load_dotenv(dotenv_path, override=False)


class Settings(BaseSettings):
    """애플리케이션 설정"""

    model_config = SettingsConfigDict(
        env_file=tuple(str(path) for path in _ENV_FILES) if _ENV_FILES else None,
        case_sensitive=True,
        extra="ignore",
    )

    # 서버 설정
    HOST: str = "0.0.0.0"
    PORT: int = 10000
    DEBUG: bool = False

    # 로깅 설정
    LOG_LEVEL: str = "INFO"

    # Paystack 설정 (웹훅 HMAC 서명 + REST 검증 API 공용 키)
    PAYSTACK_SECRET_KEY: str
    PAYSTACK_API_BASE_URL: str = "https://api.paystack.co"
    PAYSTACK_VERIFY_TIMEOUT: float = 30.0

    # 크레딧 적용 RPC 설정
    CREDIT_APPLY_SECRET: str
    SITE_BASE_URL: str
    CREDIT_APPLY_MODE: Literal["local", "http"] = "local"
    CREDIT_APPLY_PATH: str = "/api/v1/credits/apply"
    CREDIT_APPLY_TIMEOUT: float = 15.0
    CREDIT_APPLY_MAX_RETRIES: int = 2
    CREDIT_APPLY_BACKOFF: float = 0.5

    # 1 크레딧 가격 (주 통화 단위, 예: KSh 150)
    CREDIT_PRICE: Decimal = Decimal("150")

    # 저장소 설정
    STORE_BACKEND: Literal["supabase", "memory"] = "supabase"
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None

    # 영상 생성 API 설정
    FAL_KEY: str
    FAL_API_BASE_URL: str = "https://fal.run"
    FAL_MODEL: str = "fal-ai/ovi"
    VIDEO_TIMEOUT: float = 300.0

    @field_validator("PAYSTACK_SECRET_KEY", "CREDIT_APPLY_SECRET", "FAL_KEY")
    @classmethod
    def validate_required_secret(cls, v: str, info):
        if not v or not v.strip():
            raise ValueError(f"{info.field_name}은(는) 필수입니다")
        return v.strip()

    @field_validator("SITE_BASE_URL")
    @classmethod
    def validate_site_base_url(cls, v: str):
        cleaned = (v or "").strip().rstrip("/")
        if not cleaned:
            raise ValueError("SITE_BASE_URL은 필수입니다")
        return cleaned

    @field_validator("CREDIT_PRICE")
    @classmethod
    def validate_credit_price(cls, v: Decimal):
        if v <= 0:
            raise ValueError("CREDIT_PRICE는 0보다 커야 합니다")
        return v

    @field_validator("CREDIT_APPLY_MAX_RETRIES")
    @classmethod
    def validate_max_retries(cls, v: int):
        return max(0, v)

    @model_validator(mode="after")
    def validate_dependencies(self):
        if self.CREDIT_APPLY_SECRET == self.PAYSTACK_SECRET_KEY:
            raise ValueError("CREDIT_APPLY_SECRET은 PAYSTACK_SECRET_KEY와 달라야 합니다")
        if self.STORE_BACKEND == "supabase" and not (self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE_KEY):
            raise ValueError("STORE_BACKEND=supabase 이면 SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY가 필요합니다")
        return self

    @property
    def credit_apply_url(self) -> str:
        path = self.CREDIT_APPLY_PATH if self.CREDIT_APPLY_PATH.startswith("/") else f"/{self.CREDIT_APPLY_PATH}"
        return f"{self.SITE_BASE_URL}{path}"


@lru_cache
def get_settings() -> Settings:
    """프로세스 전역 설정 (최초 1회 생성)"""
    _load_dotenv_files()
    return Settings()
