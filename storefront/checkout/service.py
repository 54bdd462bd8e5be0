"""
Orchestration du checkout: panier -> commande en attente -> initialisation Paystack.

Étapes (toutes les validations avant toute écriture dans Redis):
1) lignes du panier sélectionnées, prix courants, sous-total
2) frais de livraison selon le type, total = sous-total + frais
3) montant éventuel du client comparé au total serveur
4) verrou d'idempotence (doublon -> 400)
5) mise en attente de la commande, job "initialize-payment" (priorité 1),
   attente bornée du résultat
En cas d'échec ou de délai dépassé, le verrou est libéré; la commande en
attente expire seule (le webhook peut encore la matérialiser).
"""
import logging
import uuid
from typing import Any, Dict

from storefront.cart import repository as cart_repo
from storefront.cart.pricing import build_order_items
from storefront.checkout.delivery import quote_delivery
from storefront.checkout.schemas import CheckoutRequest, PendingOrder
from storefront.jobs.payloads import InitializePaymentJob, JobUser
from storefront.payments.idempotency import order_fingerprint
from storefront.utils.errors import ConflictError, JobFailedError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

PAYMENT_JOB_PRIORITY = 1
DUPLICATE_MESSAGE = "Duplicate payment detected! Transaction already processed."


def new_reference() -> str:
    return f"sf-{uuid.uuid4().hex}"


async def initialize_checkout(ctx, user: Dict[str, Any], request: CheckoutRequest) -> Dict[str, Any]:
    db = ctx.db
    settings = ctx.settings
    user_id = str(user.get("id"))
    user_email = user.get("email") or ""

    lines = cart_repo.fetch_cart(db, user_id, selected_only=True)
    if not lines:
        raise ValidationError("Cart is empty")
    products = cart_repo.fetch_product_prices(db, [line.get("product_id") for line in lines])
    items, subtotal = build_order_items(lines, products)

    quote = quote_delivery(db, request)
    total = round(subtotal + quote.fee, 2)
    if total <= 0:
        logger.warning("checkout.non_positive_total user_id=%s total=%s", user_id, total)
        raise ValidationError("Order total must be greater than zero")
    if request.amount is not None and round(request.amount, 2) != total:
        logger.warning("checkout.amount_mismatch user_id=%s given=%s computed=%s", user_id, request.amount, total)
        raise ValidationError("Amount does not match cart total")

    fingerprint = order_fingerprint(user_id, total, [i.model_dump() for i in items])
    if not await ctx.guard.acquire(fingerprint):
        logger.info("checkout.duplicate user_id=%s total=%s", user_id, total)
        raise ConflictError(DUPLICATE_MESSAGE)

    order_id = str(uuid.uuid4())
    reference = new_reference()
    try:
        pending = PendingOrder(
            order_id=order_id,
            user_id=user_id,
            user_email=user_email,
            order_items=items,
            delivery_type=request.delivery_type,
            total_price=total,
            delivery_fee=quote.fee,
            stage_id=quote.stage_id,
            stage_name=quote.stage_name,
            county=request.county,
            store_address=request.store_address,
            delivery_location=request.delivery_location,
            reference=reference,
            idempotency_key=fingerprint,
        )
        order_data_key = await ctx.staging.stage(pending)
        handle = await ctx.queue.enqueue(
            InitializePaymentJob(
                user=JobUser(id=user_id, email=user_email),
                amount=total,
                idempotency_key=fingerprint,
                order_id=order_id,
                order_data_key=order_data_key,
                reference=reference,
            ),
            priority=PAYMENT_JOB_PRIORITY,
            attempts=settings.payment_job_attempts,
            backoff_seconds=settings.payment_job_backoff_seconds,
        )
        result = await handle.wait_until_finished(settings.payment_job_wait_seconds)
    except JobFailedError as e:
        await ctx.guard.release(fingerprint)
        logger.error("checkout.job_failed user_id=%s order_id=%s reason=%s", user_id, order_id, e.message)
        raise UpstreamError("Payment initialization failed") from e
    except Exception:
        await ctx.guard.release(fingerprint)
        raise

    logger.info("checkout.initialized user_id=%s order_id=%s reference=%s total=%s", user_id, order_id, reference, total)
    return {
        "status": "success",
        "message": "Payment initialized",
        "order_id": order_id,
        "total_price": total,
        "delivery_fee": quote.fee,
        "url": (result or {}).get("authorization_url"),
        "referenceId": (result or {}).get("reference") or reference,
        "orderDataKey": order_data_key,
    }
