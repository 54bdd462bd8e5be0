"""
Service Frais de livraison (arrêts PSV et leur tarif).
Lecture pour tout utilisateur connecté, écriture réservée aux admins.
"""
import logging
import uuid
from typing import Any, Dict, Optional

from storefront.shipping import repository as shipping_repo
from storefront.utils.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Shipping fee not found"
MAX_PAGE_SIZE = 100


def list_fees(ctx, page: int = 1, limit: int = 10, location: Optional[str] = None) -> Dict[str, Any]:
    page = max(1, page)
    limit = min(max(1, limit), MAX_PAGE_SIZE)
    start = (page - 1) * limit
    rows, total = shipping_repo.list_fees(ctx.db, start, start + limit - 1, (location or "").strip() or None)
    return {"data": rows, "page": page, "limit": limit, "totalCount": total}


def get_fee(ctx, fee_id: str) -> dict:
    fee = shipping_repo.get_fee(ctx.db, fee_id)
    if not fee:
        raise NotFoundError(NOT_FOUND_MESSAGE)
    return fee


def create_fee(ctx, name: Optional[str], delivery_fee: Optional[float]) -> dict:
    name = (name or "").strip()
    if not name or delivery_fee is None:
        raise ValidationError("Location name and delivery fees are required")
    if delivery_fee < 0:
        raise ValidationError("Delivery fee cannot be negative")
    fee = shipping_repo.insert_fee(ctx.db, {"id": str(uuid.uuid4()), "name": name, "delivery_fee": delivery_fee})
    logger.info("shipping.create id=%s name=%s fee=%s", fee.get("id"), name, delivery_fee)
    return fee


def update_fee(ctx, fee_id: str, name: Optional[str] = None, delivery_fee: Optional[float] = None) -> dict:
    """Mise à jour partielle: seuls les champs fournis sont modifiés."""
    fields: Dict[str, Any] = {}
    if name is not None:
        if not name.strip():
            raise ValidationError("Location name cannot be empty")
        fields["name"] = name.strip()
    if delivery_fee is not None:
        if delivery_fee < 0:
            raise ValidationError("Delivery fee cannot be negative")
        fields["delivery_fee"] = delivery_fee
    if not fields:
        return get_fee(ctx, fee_id)
    fee = shipping_repo.update_fee(ctx.db, fee_id, fields)
    if not fee:
        raise NotFoundError(NOT_FOUND_MESSAGE)
    logger.info("shipping.update id=%s fields=%s", fee_id, sorted(fields))
    return fee


def delete_fee(ctx, fee_id: str) -> None:
    if not shipping_repo.delete_fee(ctx.db, fee_id):
        raise NotFoundError(NOT_FOUND_MESSAGE)
    logger.info("shipping.delete id=%s", fee_id)
