from typing import Any, Dict, List, Optional
import logging

from postgrest.exceptions import APIError

from storefront.infra.supabase_client import first_row
from storefront.utils.errors import UpstreamError

logger = logging.getLogger(__name__)

ORDER_COLUMNS = (
    "id, user_id, total_price, number_of_items_bought, delivery_type, delivery_stage_id, "
    "delivery_location, store_address, county, delivery_fee, order_status, tracking_status, "
    "payment_reference, created_at"
)

UNIQUE_VIOLATION = "23505"


class DuplicateOrderError(Exception):
    """Une commande existe déjà pour cet id ou cette payment_reference."""


def get_order(db, order_id: str) -> Optional[dict]:
    try:
        res = db.table("orders").select(ORDER_COLUMNS).eq("id", order_id).limit(1).execute()
        return first_row(res)
    except Exception as e:
        logger.exception("orders.repository.get_order failed order_id=%s", order_id)
        raise UpstreamError("Error fetching order") from e


def find_order_by_reference(db, reference: str) -> Optional[dict]:
    try:
        res = db.table("orders").select(ORDER_COLUMNS).eq("payment_reference", reference).limit(1).execute()
        return first_row(res)
    except Exception as e:
        logger.exception("orders.repository.find_order_by_reference failed reference=%s", reference)
        raise UpstreamError("Error fetching order") from e


def insert_order(db, row: Dict[str, Any]) -> dict:
    """
    Insère la commande. Violation d'unicité (id ou payment_reference) ->
    DuplicateOrderError: un autre chemin (webhook/polling) l'a déjà créée.
    """
    try:
        res = db.table("orders").insert(row).execute()
    except APIError as e:
        if getattr(e, "code", None) == UNIQUE_VIOLATION:
            raise DuplicateOrderError(row.get("id")) from e
        logger.exception("orders.repository.insert_order failed order_id=%s", row.get("id"))
        raise UpstreamError("Error creating order") from e
    except Exception as e:
        logger.exception("orders.repository.insert_order failed order_id=%s", row.get("id"))
        raise UpstreamError("Error creating order") from e
    return first_row(res) or row


def insert_order_items(db, rows: List[Dict[str, Any]]) -> None:
    # Pas de try ici: l'appelant compense (suppression de la commande) puis lève UpstreamError
    db.table("order_items").insert(rows).execute()


def delete_order(db, order_id: str) -> None:
    try:
        db.table("orders").delete().eq("id", order_id).execute()
    except Exception:
        logger.exception("orders.repository.delete_order failed order_id=%s", order_id)


def delete_pending_order_by_reference(db, reference: str) -> None:
    try:
        db.table("orders").delete().eq("payment_reference", reference).eq("order_status", "pending").execute()
    except Exception as e:
        logger.exception("orders.repository.delete_pending_order_by_reference failed reference=%s", reference)
        raise UpstreamError("Error deleting order") from e


def update_tracking_status(db, order_id: str, tracking_status: str) -> Optional[dict]:
    try:
        res = db.table("orders").update({"tracking_status": tracking_status}).eq("id", order_id).execute()
        return first_row(res)
    except Exception as e:
        logger.exception("orders.repository.update_tracking_status failed order_id=%s", order_id)
        raise UpstreamError("Error updating order") from e


def list_user_orders(db, user_id: str, limit: int = 50) -> List[dict]:
    try:
        res = (
            db.table("orders")
            .select(ORDER_COLUMNS + ", order_items(product_id, quantity, unit_price)")
            .eq("user_id", user_id)
            .eq("order_status", "success")
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
    except Exception as e:
        logger.exception("orders.repository.list_user_orders failed user_id=%s", user_id)
        raise UpstreamError("Error fetching orders") from e
