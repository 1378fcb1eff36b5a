"""Settings 검증 테스트 (필수 시크릿 누락 시 기동 불가)"""
from decimal import Decimal

import pytest
from pydantic import ValidationError


def test_defaults(settings):
    assert settings.CREDIT_PRICE == Decimal("150")
    assert settings.CREDIT_APPLY_TIMEOUT == 15.0
    assert settings.CREDIT_APPLY_MODE == "local"
    assert settings.PORT == 10000


def test_site_base_url_trailing_slash_is_stripped(settings):
    assert settings.SITE_BASE_URL == "https://site.example.com"
    assert settings.credit_apply_url == "https://site.example.com/api/v1/credits/apply"


def test_credit_apply_path_without_leading_slash(settings_factory):
    settings = settings_factory(CREDIT_APPLY_PATH="wp-json/calevid/v1/apply-credits")
    assert settings.credit_apply_url == "https://site.example.com/wp-json/calevid/v1/apply-credits"


@pytest.mark.parametrize("field", ["PAYSTACK_SECRET_KEY", "CREDIT_APPLY_SECRET", "FAL_KEY", "SITE_BASE_URL"])
def test_blank_required_value_fails_closed(settings_factory, field):
    with pytest.raises(ValidationError):
        settings_factory(**{field: "   "})


def test_apply_secret_must_differ_from_paystack_secret(settings_factory):
    with pytest.raises(ValidationError):
        settings_factory(CREDIT_APPLY_SECRET="sk_test_paystack")


def test_supabase_backend_requires_credentials(settings_factory):
    with pytest.raises(ValidationError):
        settings_factory(STORE_BACKEND="supabase", SUPABASE_URL=None, SUPABASE_SERVICE_ROLE_KEY=None)


def test_credit_price_must_be_positive(settings_factory):
    with pytest.raises(ValidationError):
        settings_factory(CREDIT_PRICE=Decimal("0"))


def test_unknown_apply_mode_is_rejected(settings_factory):
    with pytest.raises(ValidationError):
        settings_factory(CREDIT_APPLY_MODE="queue")
