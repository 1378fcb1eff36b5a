"""공용 테스트 픽스처"""
from typing import Any, Dict

import pytest

from calevid.core.config import Settings
from calevid.inmemory_store import InMemoryCreditStore


PAYSTACK_SECRET = "sk_test_paystack"
APPLY_SECRET = "apply-shared-secret"


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "PAYSTACK_SECRET_KEY": PAYSTACK_SECRET,
        "CREDIT_APPLY_SECRET": APPLY_SECRET,
        "SITE_BASE_URL": "https://site.example.com/",
        "FAL_KEY": "fal-test-key",
        "STORE_BACKEND": "memory",
        "CREDIT_APPLY_MODE": "local",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store() -> InMemoryCreditStore:
    return InMemoryCreditStore()


@pytest.fixture
def settings_factory():
    return make_settings
