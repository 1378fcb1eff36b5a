"""
Paystack Webhook Router

Handles Paystack webhook deliveries:
- HMAC-SHA512 signature verification over the raw request body
- immediate acknowledgement (Paystack retries slow or non-2xx deliveries)
- charge.success filter and amount → credits conversion
- credit application delegated to a background task after the response is sent
- delivery outcomes tracked via the store's webhook event log
"""
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request

from calevid.core.config import Settings
from calevid.core.credit_calculator import CreditCalculator
from calevid.core.factory import ServiceFactory
from calevid.core.interfaces import ICreditApplier, ICreditStore
from calevid.core.responses import (
    AuthenticationException,
    BusinessException,
    MalformedPayloadException,
    success_response,
)
from calevid.schemas.ledger import PaymentEvent
from calevid.utils.signature import verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks", "paystack"])

PROVIDER = "paystack"


def _parse_payload(raw: bytes) -> Dict[str, Any]:
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"[PAYSTACK] invalid JSON body: {e}")
        raise MalformedPayloadException() from e

    if not isinstance(payload, dict):
        logger.warning("[PAYSTACK] JSON body is not an object")
        raise MalformedPayloadException("요청 본문은 JSON 객체여야 합니다")
    return payload


async def _record(store: ICreditStore, reference: Optional[str], status: str, data: Dict[str, Any]) -> None:
    try:
        await store.record_webhook_event(PROVIDER, reference, status, data)
    except Exception as e:
        logger.warning(f"[PAYSTACK] webhook event record failed reference={reference} status={status}: {e}")


async def deliver_credits(
    applier: ICreditApplier,
    store: ICreditStore,
    event: PaymentEvent,
    credits: int,
) -> None:
    """응답 전송 이후 실행되는 크레딧 적용 위임"""

    details = {"subject": event.subject_identifier, "credits": credits, "amount": event.amount_minor_units}
    try:
        result = await applier.apply_credits(event.reference, event.subject_identifier, credits)
    except BusinessException as e:
        logger.error(
            f"[PAYSTACK] credit delegation failed reference={event.reference} "
            f"error_code={e.error_code} message={e.message}"
        )
        await _record(store, event.reference, "failed", {**details, "error_code": e.error_code})
        return
    except Exception as e:
        logger.error(f"[PAYSTACK] credit delegation error reference={event.reference}: {e}", exc_info=True)
        await _record(store, event.reference, "failed", {**details, "error_code": "INTERNAL_ERROR"})
        return

    status = "duplicate" if result.already_processed else "processed"
    logger.info(
        f"[PAYSTACK] credit delegation {status} reference={event.reference} "
        f"credits={credits} balance={result.new_balance}"
    )
    await _record(store, event.reference, status, {**details, "new_balance": result.new_balance})


@router.get("/paystack-webhook")
async def paystack_webhook_health():
    return success_response(data={"ok": True}, message="paystack webhook ready")


@router.post("/paystack-webhook")
async def paystack_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    x_paystack_signature: Optional[str] = Header(None, alias="x-paystack-signature"),
    settings: Settings = Depends(ServiceFactory.get_settings),
    calculator: CreditCalculator = Depends(ServiceFactory.get_calculator),
    applier: ICreditApplier = Depends(ServiceFactory.get_credit_applier),
    store: ICreditStore = Depends(ServiceFactory.get_store),
):
    raw = await request.body()

    if not verify_signature(raw, settings.PAYSTACK_SECRET_KEY, x_paystack_signature):
        logger.warning("[PAYSTACK] signature verification failed")
        raise AuthenticationException("웹훅 서명이 유효하지 않습니다")

    payload = _parse_payload(raw)
    event = PaymentEvent.from_payload(payload)

    if not event.is_successful_charge:
        logger.info(f"[PAYSTACK] ignored event={event.event_type or '-'} status={event.status or '-'}")
        background_tasks.add_task(_record, store, event.reference or None, "ignored", {"event": event.event_type})
        return success_response(data={"accepted": False}, message="ignored")

    credits = calculator.credits_for(event.amount_minor_units)
    if not event.reference or not event.subject_identifier or credits <= 0:
        logger.warning(
            f"[PAYSTACK] dropped charge reference={event.reference or '-'} "
            f"has_subject={bool(event.subject_identifier)} amount={event.amount_minor_units} credits={credits}"
        )
        background_tasks.add_task(
            _record,
            store,
            event.reference or None,
            "dropped",
            {"amount": event.amount_minor_units, "credits": credits},
        )
        return success_response(data={"accepted": False}, message="dropped")

    logger.info(
        f"[PAYSTACK] charge.success reference={event.reference} amount={event.amount_minor_units} "
        f"currency={event.currency or '-'} credits={credits}"
    )
    background_tasks.add_task(deliver_credits, applier, store, event, credits)
    return success_response(data={"accepted": True, "credits": credits}, message="received")
