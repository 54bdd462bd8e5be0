from typing import Any, Dict, List, Optional, Tuple
import logging

from storefront.infra.supabase_client import first_row
from storefront.utils.errors import UpstreamError

logger = logging.getLogger(__name__)

# Les frais de livraison PSV vivent dans la table des arrêts (psv_stages),
# celle que lit le checkout pour le type "PSV".
TABLE = "psv_stages"
COLUMNS = "id, name, delivery_fee"


def list_fees(db, start: int, end: int, location: Optional[str] = None) -> Tuple[List[dict], int]:
    """Page [start, end] (bornes incluses) et nombre total de lignes correspondant au filtre."""
    try:
        query = db.table(TABLE).select(COLUMNS, count="exact")
        if location:
            query = query.ilike("name", f"%{location}%")
        res = query.order("name").range(start, end).execute()
    except Exception as e:
        logger.exception("shipping.repository.list_fees failed location=%s", location)
        raise UpstreamError("Error fetching shipping fees") from e
    rows = res.data or []
    total = getattr(res, "count", None)
    return rows, total if total is not None else len(rows)


def get_fee(db, fee_id: str) -> Optional[dict]:
    try:
        res = db.table(TABLE).select(COLUMNS).eq("id", fee_id).limit(1).execute()
        return first_row(res)
    except Exception as e:
        logger.exception("shipping.repository.get_fee failed id=%s", fee_id)
        raise UpstreamError("Error fetching shipping fee") from e


def insert_fee(db, row: Dict[str, Any]) -> dict:
    try:
        res = db.table(TABLE).insert(row).execute()
    except Exception as e:
        logger.exception("shipping.repository.insert_fee failed name=%s", row.get("name"))
        raise UpstreamError("Error creating shipping fee") from e
    return first_row(res) or row


def update_fee(db, fee_id: str, fields: Dict[str, Any]) -> Optional[dict]:
    try:
        res = db.table(TABLE).update(fields).eq("id", fee_id).execute()
    except Exception as e:
        logger.exception("shipping.repository.update_fee failed id=%s", fee_id)
        raise UpstreamError("Error updating shipping fee") from e
    return first_row(res)


def delete_fee(db, fee_id: str) -> bool:
    try:
        res = db.table(TABLE).delete().eq("id", fee_id).execute()
    except Exception as e:
        logger.exception("shipping.repository.delete_fee failed id=%s", fee_id)
        raise UpstreamError("Error deleting shipping fee") from e
    return bool(res.data)
