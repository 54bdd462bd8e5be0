"""
Service Paiements: vérification et réconciliation.

- verify_payment (polling, déclenché par le client au retour de Paystack):
  accélérateur UX, vérifie activement la transaction puis matérialise la commande.
- handle_webhook (déclenché par Paystack): source de vérité. Signature
  vérifiée avant toute lecture du corps.
Les deux chemins passent par orders.service.materialize_order: le second est un no-op.
"""
import json
import logging
from typing import Any, Dict, Optional

from storefront.orders import repository as orders_repo
from storefront.orders.service import materialize_order
from storefront.payments import repository as payments_repo
from storefront.payments.idempotency import LOCK_PREFIX
from storefront.payments.paystack_client import verify_signature
from storefront.payments.polling import PaymentPoller, PollPolicy, PollState
from storefront.utils.errors import PaymentTimeoutError, SignatureError, ValidationError

logger = logging.getLogger(__name__)

EXPIRED_MESSAGE = "Order data expired or missing"
CUSTOMER_MISMATCH_MESSAGE = "Customer does not match order"

SUCCESS_EVENTS = {"charge.success"}
FAILURE_EVENTS = {"charge.failed", "charge.canceled"}


def _paid_order(db, reference: str) -> Optional[dict]:
    order = orders_repo.find_order_by_reference(db, reference)
    if order and order.get("order_status") == "success":
        return order
    return None


async def verify_payment(ctx, user: Dict[str, Any], reference: str, order_data_key: str, poller: Optional[PaymentPoller] = None) -> Dict[str, Any]:
    existing = _paid_order(ctx.db, reference)
    if existing:
        return {"status": "success", "message": "Payment already verified", "order_id": existing.get("id")}

    pending = await ctx.staging.get(order_data_key)
    if pending is None or pending.user_id != str(user.get("id")):
        raise ValidationError(EXPIRED_MESSAGE)
    if pending.reference and pending.reference != reference:
        logger.warning("payments.verify reference mismatch staged=%s given=%s", pending.reference, reference)
        raise ValidationError(EXPIRED_MESSAGE)

    poller = poller or PaymentPoller(ctx.gateway, PollPolicy.from_settings(ctx.settings))
    state = await poller.poll(reference)
    logger.info("payments.verify reference=%s state=%s", reference, state.value)

    if state is PollState.SUCCESS:
        result = await materialize_order(ctx, pending, reference, staging_key=order_data_key)
        return {"status": "success", "message": "Payment verified", "order_id": result.order.get("id")}
    if state is PollState.TIMEOUT:
        raise PaymentTimeoutError("Payment verification timed out")
    raise ValidationError("Payment verification failed")


def _metadata(data: Dict[str, Any]) -> Dict[str, Any]:
    meta = data.get("metadata") or {}
    if isinstance(meta, str):
        try:
            meta = json.loads(meta)
        except ValueError:
            meta = {}
    return meta if isinstance(meta, dict) else {}


def parse_webhook(ctx, raw_body: bytes, signature: Optional[str]) -> Dict[str, Any]:
    if not verify_signature(ctx.settings.paystack_secret_key, raw_body, signature):
        raise SignatureError("Invalid signature")
    try:
        payload = json.loads(raw_body)
    except ValueError:
        raise ValidationError("Invalid webhook payload")
    if not isinstance(payload, dict):
        raise ValidationError("Invalid webhook payload")
    return payload


async def handle_webhook(ctx, raw_body: bytes, signature: Optional[str]) -> Dict[str, Any]:
    payload = parse_webhook(ctx, raw_body, signature)
    event = payload.get("event")
    data = payload.get("data") or {}
    logger.info("payments.webhook event=%s reference=%s", event, data.get("reference"))

    if event in SUCCESS_EVENTS:
        return await _on_charge_success(ctx, event, data)
    if event in FAILURE_EVENTS:
        return await _on_charge_failed(ctx, event, data)
    raise ValidationError("Unhandled event type")


async def _on_charge_success(ctx, event: str, data: Dict[str, Any]) -> Dict[str, Any]:
    reference = data.get("reference")
    meta = _metadata(data)
    email = (data.get("customer") or {}).get("email")
    user = payments_repo.get_user_by_email(ctx.db, email) if email else None
    if not user:
        logger.warning("payments.webhook unknown customer email=%s reference=%s", email, reference)
    payments_repo.upsert_transaction(ctx.db, payments_repo.transaction_row(event, data, (user or {}).get("id") or meta.get("user_id")))

    existing = _paid_order(ctx.db, reference)
    if existing:
        return {"status": "success", "message": "Order already confirmed", "order_id": existing.get("id")}

    key = meta.get("order_data_key")
    pending = await ctx.staging.get(key) if key else None
    if pending is None or (pending.reference and pending.reference != reference):
        logger.error("payments.webhook staged order missing reference=%s key=%s", reference, key)
        return {"status": "success", "message": EXPIRED_MESSAGE}
    if user and str(user.get("id")) != str(pending.user_id):
        logger.error(
            "payments.webhook customer mismatch reference=%s customer_id=%s order_user_id=%s",
            reference, user.get("id"), pending.user_id,
        )
        return {"status": "success", "message": CUSTOMER_MISMATCH_MESSAGE}

    result = await materialize_order(ctx, pending, reference, staging_key=key)
    return {"status": "success", "message": "Order confirmed", "order_id": result.order.get("id")}


async def _on_charge_failed(ctx, event: str, data: Dict[str, Any]) -> Dict[str, Any]:
    reference = data.get("reference")
    meta = _metadata(data)
    payments_repo.upsert_transaction(ctx.db, payments_repo.transaction_row(event, data, meta.get("user_id")))
    if meta.get("order_data_key"):
        await ctx.staging.discard(meta["order_data_key"])
    if reference:
        orders_repo.delete_pending_order_by_reference(ctx.db, reference)
    if str(meta.get("idempotency_key") or "").startswith(LOCK_PREFIX):
        await ctx.guard.release(meta["idempotency_key"])
    logger.info("payments.webhook payment failed reference=%s", reference)
    return {"status": "success", "message": "Payment failure recorded"}


async def list_transactions(ctx, page: int = 1, per_page: int = 50) -> Any:
    return await ctx.gateway.list_transactions(page=page, per_page=per_page)


async def fetch_transaction(ctx, transaction_id: str) -> Dict[str, Any]:
    return await ctx.gateway.fetch_transaction(transaction_id)
