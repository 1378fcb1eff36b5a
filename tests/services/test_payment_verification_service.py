"""PaystackClient / PaymentVerificationService 테스트"""
import asyncio
from typing import Any, Dict, List

import httpx
import pytest

from calevid.core.credit_calculator import CreditCalculator
from calevid.core.responses import (
    AuthorizationException,
    BusinessException,
    ExternalServiceException,
    InvalidAmountException,
    SubjectNotFoundException,
)
from calevid.services.credit_ledger_service import CreditLedgerService
from calevid.services.payment_verification_service import PaymentVerificationService
from calevid.services.paystack_client import PaystackAPIError, PaystackClient


class _DummyAsyncClient:
    def __init__(self, responses: List[Any], calls: List[Dict[str, Any]]) -> None:
        self._responses = responses
        self._calls = calls

    async def __aenter__(self) -> "_DummyAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False

    async def request(self, method: str, url: str, headers=None, json=None) -> httpx.Response:
        self._calls.append({"method": method, "url": url, "headers": headers})
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _patch_async_client(monkeypatch, responses: List[Any]) -> List[Dict[str, Any]]:
    response_queue = list(responses)
    calls: List[Dict[str, Any]] = []

    def _factory(*args, **kwargs):
        return _DummyAsyncClient(response_queue, calls)

    monkeypatch.setattr("calevid.services.paystack_client.httpx.AsyncClient", _factory)
    return calls


def _verified(amount: int = 15000, status: str = "success", email: str = "a@b.com") -> httpx.Response:
    return httpx.Response(
        status_code=200,
        json={
            "status": True,
            "message": "Verification successful",
            "data": {"status": status, "amount": amount, "customer": {"email": email}},
        },
    )


def _service(store) -> PaymentVerificationService:
    client = PaystackClient(secret_key="sk_test", base_url="https://paystack.test", backoff_factor=0)
    return PaymentVerificationService(client, CreditLedgerService(store), CreditCalculator(150))


def test_verify_transaction_sends_bearer_and_quotes_reference(monkeypatch):
    calls = _patch_async_client(monkeypatch, [_verified()])
    client = PaystackClient(secret_key="sk_test", base_url="https://paystack.test/")

    payload = asyncio.run(client.verify_transaction("ref/1"))

    assert payload["data"]["amount"] == 15000
    assert calls[0]["method"] == "GET"
    assert calls[0]["url"] == "https://paystack.test/transaction/verify/ref%2F1"
    assert calls[0]["headers"]["Authorization"] == "Bearer sk_test"


def test_verify_transaction_network_error(monkeypatch):
    _patch_async_client(monkeypatch, [httpx.ConnectError("down"), httpx.ConnectError("down")])
    client = PaystackClient(secret_key="sk_test", max_retries=1, backoff_factor=0)

    with pytest.raises(PaystackAPIError) as exc:
        asyncio.run(client.verify_transaction("ref"))

    assert exc.value.is_network_error


def test_verify_transaction_not_found_is_not_retried(monkeypatch):
    calls = _patch_async_client(
        monkeypatch,
        [httpx.Response(status_code=404, json={"status": False, "message": "Transaction reference not found"})],
    )
    client = PaystackClient(secret_key="sk_test", max_retries=2, backoff_factor=0)

    with pytest.raises(PaystackAPIError) as exc:
        asyncio.run(client.verify_transaction("missing"))

    assert exc.value.status_code == 404
    assert str(exc.value) == "Transaction reference not found"
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_verify_and_apply_credits_once(monkeypatch, store):
    store.add_subject("a@b.com", subject_id="u1")
    _patch_async_client(monkeypatch, [_verified(45000), _verified(45000)])
    service = _service(store)

    first = await service.verify_and_apply("ref-1", "u1")
    second = await service.verify_and_apply("ref-1", "u1")

    assert first.status == "applied"
    assert first.credits_applied == 3
    assert second.already_processed
    assert store.subjects["u1"]["balance"] == 3


@pytest.mark.asyncio
async def test_verify_unknown_subject_skips_gateway(monkeypatch, store):
    calls = _patch_async_client(monkeypatch, [])

    with pytest.raises(SubjectNotFoundException):
        await _service(store).verify_and_apply("ref-1", "ghost")

    assert calls == []


@pytest.mark.asyncio
async def test_verify_failed_transaction(monkeypatch, store):
    store.add_subject("a@b.com", subject_id="u1")
    _patch_async_client(monkeypatch, [_verified(status="failed")])

    with pytest.raises(BusinessException) as exc:
        await _service(store).verify_and_apply("ref-1", "u1")

    assert exc.value.error_code == "PAYMENT_VERIFICATION_FAILED"
    assert exc.value.status_code == 400
    assert store.ledger == {}


@pytest.mark.asyncio
async def test_verify_amount_below_one_credit(monkeypatch, store):
    store.add_subject("a@b.com", subject_id="u1")
    _patch_async_client(monkeypatch, [_verified(amount=14999)])

    with pytest.raises(InvalidAmountException):
        await _service(store).verify_and_apply("ref-1", "u1")

    assert store.subjects["u1"]["balance"] == 0


@pytest.mark.asyncio
async def test_verify_gateway_unreachable(monkeypatch, store):
    store.add_subject("a@b.com", subject_id="u1")
    _patch_async_client(monkeypatch, [httpx.ConnectError("down"), httpx.ConnectError("down")])

    with pytest.raises(ExternalServiceException) as exc:
        await _service(store).verify_and_apply("ref-1", "a@b.com")

    assert exc.value.status_code == 502


@pytest.mark.asyncio
async def test_verify_rejects_payment_made_by_another_customer(monkeypatch, store):
    store.add_subject("attacker@example.com", subject_id="attacker")
    store.add_subject("victim@example.com", subject_id="victim")
    _patch_async_client(monkeypatch, [_verified(45000, email="victim@example.com")])

    with pytest.raises(AuthorizationException) as exc:
        await _service(store).verify_and_apply("victim-ref", "attacker")

    assert exc.value.status_code == 403
    assert exc.value.error_code == "SUBJECT_MISMATCH"
    assert store.subjects["attacker"]["balance"] == 0
    assert store.subjects["victim"]["balance"] == 0
    assert store.ledger == {}


@pytest.mark.asyncio
async def test_verify_matches_payer_email_case_insensitively(monkeypatch, store):
    store.add_subject("a@b.com", subject_id="u1")
    _patch_async_client(monkeypatch, [_verified(15000, email=" A@B.COM ")])

    result = await _service(store).verify_and_apply("ref-2", "u1")

    assert result.status == "applied"
    assert store.subjects["u1"]["balance"] == 1


@pytest.mark.asyncio
async def test_verify_without_customer_email_is_rejected(monkeypatch, store):
    store.add_subject("a@b.com", subject_id="u1")
    _patch_async_client(
        monkeypatch,
        [httpx.Response(status_code=200, json={"status": True, "data": {"status": "success", "amount": 15000}})],
    )

    with pytest.raises(AuthorizationException):
        await _service(store).verify_and_apply("ref-3", "u1")

    assert store.ledger == {}
