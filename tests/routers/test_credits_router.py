"""크레딧 적용 RPC / 결제 검증 / 영상 생성 라우터 테스트"""
import httpx
import pytest
from fastapi.testclient import TestClient

from calevid.main import create_app


APPLY_SECRET = "apply-shared-secret"


@pytest.fixture
def client(settings, store):
    store.add_subject("a@b.com", subject_id="u-ab", balance=2)
    with TestClient(create_app(settings, store)) as test_client:
        yield test_client


def test_apply_via_get_query(client, store):
    response = client.get(
        "/api/v1/credits/apply",
        params={"secret": APPLY_SECRET, "email": "a@b.com", "credits": "3", "reference": "R1"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["data"]["status"] == "applied"
    assert body["data"]["new_balance"] == 5
    assert store.subjects["u-ab"]["balance"] == 5


def test_apply_via_json_then_replay(client, store):
    payload = {"secret": APPLY_SECRET, "user_id": "u-ab", "credits": 3, "reference": "R1"}

    first = client.post("/api/v1/credits/apply", json=payload)
    second = client.post("/api/v1/credits/apply", json=payload)

    assert first.json()["data"]["status"] == "applied"
    assert second.status_code == 200
    assert second.json()["data"]["status"] == "already_processed"
    assert second.json()["data"]["applied_at"] == first.json()["data"]["applied_at"]
    assert store.subjects["u-ab"]["balance"] == 5


def test_apply_via_form(client, store):
    response = client.post(
        "/api/v1/credits/apply",
        data={"secret": APPLY_SECRET, "email": "A@B.com", "credits": "1", "reference": "R-form"},
    )

    assert response.status_code == 200
    assert store.subjects["u-ab"]["balance"] == 3


def test_wrong_secret_never_mutates(client, store):
    response = client.post(
        "/api/v1/credits/apply",
        json={"secret": "nope", "email": "a@b.com", "credits": 3, "reference": "R1"},
    )

    assert response.status_code == 401
    assert store.subjects["u-ab"]["balance"] == 2
    assert store.ledger == {}


def test_secret_checked_before_validation(client):
    response = client.post("/api/v1/credits/apply", json={"secret": "nope", "credits": -1})

    assert response.status_code == 401


def test_unknown_subject(client, store):
    response = client.post(
        "/api/v1/credits/apply",
        json={"secret": APPLY_SECRET, "email": "ghost@example.com", "credits": 1, "reference": "R1"},
    )

    assert response.status_code == 404
    assert response.json()["error_code"] == "SUBJECT_NOT_FOUND"
    assert store.ledger == {}


@pytest.mark.parametrize("credits", [0, -3, "abc", None])
def test_invalid_credits(client, store, credits):
    response = client.post(
        "/api/v1/credits/apply",
        json={"secret": APPLY_SECRET, "email": "a@b.com", "credits": credits, "reference": "R1"},
    )

    assert response.status_code == 422
    assert store.subjects["u-ab"]["balance"] == 2


def test_missing_subject(client):
    response = client.post("/api/v1/credits/apply", json={"secret": APPLY_SECRET, "credits": 1, "reference": "R1"})

    assert response.status_code == 422
    assert response.json()["error_code"] == "MISSING_SUBJECT"


def test_intent_then_apply_sets_plan(client, store):
    intent = client.post(
        "/api/v1/credits/intent",
        json={"secret": APPLY_SECRET, "email": "a@b.com", "plan": "starter"},
    )
    assert intent.status_code == 200
    assert intent.json()["data"]["plan_id"] == "starter"

    applied = client.post(
        "/api/v1/credits/apply",
        json={"secret": APPLY_SECRET, "email": "a@b.com", "credits": 15, "reference": "R-plan"},
    )

    assert applied.json()["data"]["plan"] == "starter"
    assert store.subjects["u-ab"]["plan_limit"] == 15
    assert store.intents == {}


def test_intent_rejects_unknown_plan_and_bad_secret(client):
    unknown = client.post(
        "/api/v1/credits/intent",
        json={"secret": APPLY_SECRET, "email": "a@b.com", "plan": "enterprise"},
    )
    forbidden = client.post(
        "/api/v1/credits/intent",
        json={"secret": "nope", "email": "a@b.com", "plan": "pro"},
    )

    assert unknown.status_code == 422
    assert forbidden.status_code == 401


def test_ledger_lookup(client):
    client.post(
        "/api/v1/credits/apply",
        json={"secret": APPLY_SECRET, "email": "a@b.com", "credits": 2, "reference": "R-look"},
    )

    found = client.get("/api/v1/credits/ledger/R-look", params={"secret": APPLY_SECRET})
    missing = client.get("/api/v1/credits/ledger/unknown", params={"secret": APPLY_SECRET})
    forbidden = client.get("/api/v1/credits/ledger/R-look")

    assert found.status_code == 200
    assert found.json()["data"]["credits_applied"] == 2
    assert missing.status_code == 404
    assert forbidden.status_code == 401


def _patch_paystack(monkeypatch, payer_email: str) -> None:
    class _Paystack:
        def __init__(self, *args, **kwargs):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            return False

        async def request(self, method, url, headers=None, json=None):
            data = {"status": "success", "amount": 30000, "customer": {"email": payer_email}}
            return httpx.Response(status_code=200, json={"status": True, "data": data})

    monkeypatch.setattr("calevid.services.paystack_client.httpx.AsyncClient", _Paystack)


def test_payment_verify_route(monkeypatch, client, store):
    _patch_paystack(monkeypatch, "a@b.com")

    response = client.post("/api/v1/payments/verify", json={"reference": "T-1", "email": "a@b.com"})
    unknown = client.post("/api/v1/payments/verify", json={"reference": "T-2", "user_id": "nobody"})

    assert response.status_code == 200
    assert response.json()["data"]["credits_applied"] == 2
    assert store.subjects["u-ab"]["balance"] == 4
    assert unknown.status_code == 404


def test_payment_verify_route_rejects_other_payer(monkeypatch, client, store):
    store.add_subject("victim@example.com", subject_id="u-victim")
    _patch_paystack(monkeypatch, "victim@example.com")

    response = client.post("/api/v1/payments/verify", json={"reference": "T-victim", "user_id": "u-ab"})

    assert response.status_code == 403
    assert response.json()["error_code"] == "SUBJECT_MISMATCH"
    assert store.subjects["u-ab"]["balance"] == 2
    assert store.subjects["u-victim"]["balance"] == 0
    assert store.ledger == {}


def test_generate_video_requires_prompt(client):
    response = client.post("/generate-video", json={"prompt": "  "})

    assert response.status_code == 422


def test_health_endpoints(client):
    assert client.get("/").status_code == 200
    health = client.get("/health")
    assert health.json()["data"]["credit_apply_mode"] == "local"
