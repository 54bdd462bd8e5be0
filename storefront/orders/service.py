"""
Service Commandes: transformation d'une PendingOrder payée en commande durable.

materialize_order est l'unique point d'écriture, partagé par le polling et le
webhook. Exécuté deux fois pour la même référence, le second appel ne crée rien.
"""
from dataclasses import dataclass
import logging
from typing import Optional

from storefront.cart import repository as cart_repo
from storefront.checkout.schemas import PendingOrder
from storefront.jobs.payloads import OrderConfirmationEmailJob
from storefront.orders import repository as orders_repo
from storefront.utils.errors import NotFoundError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

EMAIL_JOB_PRIORITY = 10

TRACKING_TRANSITIONS = {
    "Pending": {"Dispatched", "Cancelled"},
    "Dispatched": {"Delivered", "Cancelled"},
    "Delivered": set(),
    "Cancelled": set(),
}


@dataclass
class MaterializedOrder:
    order: dict
    created: bool


def _existing_order(db, order_id: str, reference: str) -> Optional[dict]:
    order = orders_repo.get_order(db, order_id) or orders_repo.find_order_by_reference(db, reference)
    if order and order.get("order_status") == "success":
        return order
    return None


def _order_row(pending: PendingOrder, reference: str) -> dict:
    return {
        "id": pending.order_id,
        "user_id": pending.user_id,
        "total_price": pending.total_price,
        "number_of_items_bought": pending.number_of_items,
        "delivery_type": pending.delivery_type.value,
        "delivery_stage_id": pending.stage_id,
        "delivery_location": pending.delivery_location or pending.stage_name,
        "store_address": pending.store_address,
        "county": pending.county,
        "delivery_fee": pending.delivery_fee,
        "order_status": "success",
        "tracking_status": "Pending",
        "payment_reference": reference,
    }


async def materialize_order(ctx, pending: PendingOrder, reference: str, staging_key: Optional[str] = None) -> MaterializedOrder:
    """
    Crée Order + OrderItems pour un paiement confirmé, exactement une fois.
    - Commande déjà présente (id ou référence) -> no-op, created=False.
    - Échec d'insertion des lignes -> suppression de la commande (compensation) et UpstreamError.
    - Ensuite: suppression de la copie en attente et des lignes de panier passées
      en caisse, puis envoi (best-effort) de l'e-mail de confirmation.
    """
    db = ctx.db
    existing = _existing_order(db, pending.order_id, reference)
    if existing:
        logger.info("orders.materialize no-op order_id=%s reference=%s", pending.order_id, reference)
        return MaterializedOrder(order=existing, created=False)

    try:
        order = orders_repo.insert_order(db, _order_row(pending, reference))
    except orders_repo.DuplicateOrderError:
        logger.info("orders.materialize concurrent insert order_id=%s reference=%s", pending.order_id, reference)
        existing = _existing_order(db, pending.order_id, reference)
        if not existing:
            raise UpstreamError("Error creating order")
        return MaterializedOrder(order=existing, created=False)

    items = [
        {"order_id": pending.order_id, "product_id": i.product_id, "quantity": i.quantity, "unit_price": i.unit_price}
        for i in pending.order_items
    ]
    try:
        orders_repo.insert_order_items(db, items)
    except Exception as e:
        logger.exception("orders.materialize items failed order_id=%s: compensating", pending.order_id)
        orders_repo.delete_order(db, pending.order_id)
        raise UpstreamError("Error creating order items") from e

    if staging_key:
        await ctx.staging.discard(staging_key)
    try:
        cart_repo.delete_checked_out_lines(db, pending.user_id, [i.product_id for i in pending.order_items])
    except UpstreamError:
        # la commande est payée et enregistrée: un panier non vidé n'est pas bloquant
        logger.warning("orders.materialize cart cleanup failed user_id=%s", pending.user_id)

    await _enqueue_confirmation_email(ctx, pending)
    logger.info("orders.materialize created order_id=%s reference=%s total=%s", pending.order_id, reference, pending.total_price)
    return MaterializedOrder(order=order, created=True)


async def _enqueue_confirmation_email(ctx, pending: PendingOrder) -> None:
    try:
        await ctx.queue.enqueue(
            OrderConfirmationEmailJob(
                to=pending.user_email,
                order_id=pending.order_id,
                total_price=pending.total_price,
                delivery_fee=pending.delivery_fee,
                delivery_type=pending.delivery_type.value,
            ),
            priority=EMAIL_JOB_PRIORITY,
            attempts=3,
        )
    except Exception:
        logger.exception("orders.materialize email enqueue failed order_id=%s", pending.order_id)


def list_orders_for_user(ctx, user_id: str) -> list:
    return orders_repo.list_user_orders(ctx.db, user_id)


def update_tracking(ctx, order_id: str, tracking_status: str) -> dict:
    """
    Transitions autorisées: Pending -> Dispatched -> Delivered, Pending|Dispatched -> Cancelled.
    Seules les commandes payées (order_status=success) ont un suivi.
    """
    if tracking_status not in TRACKING_TRANSITIONS:
        raise ValidationError(f"Unknown tracking status '{tracking_status}'")
    order = orders_repo.get_order(ctx.db, order_id)
    if not order:
        raise NotFoundError("Order not found")
    if order.get("order_status") != "success":
        raise ValidationError("Order is not paid")
    current = order.get("tracking_status") or "Pending"
    if tracking_status not in TRACKING_TRANSITIONS.get(current, set()):
        raise ValidationError(f"Cannot change tracking status from {current} to {tracking_status}")
    updated = orders_repo.update_tracking_status(ctx.db, order_id, tracking_status)
    logger.info("orders.tracking order_id=%s %s -> %s", order_id, current, tracking_status)
    return updated or {**order, "tracking_status": tracking_status}
