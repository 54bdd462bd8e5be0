from typing import Any, Dict, Optional
import logging

from storefront.infra.supabase_client import first_row
from storefront.utils.errors import UpstreamError

logger = logging.getLogger(__name__)


def get_user_by_email(db, email: str) -> Optional[dict]:
    try:
        res = db.table("users").select("id, email, username, role").eq("email", email).limit(1).execute()
        return first_row(res)
    except Exception as e:
        logger.exception("payments.repository.get_user_by_email failed email=%s", email)
        raise UpstreamError("Error fetching user") from e


def upsert_transaction(db, row: Dict[str, Any]) -> None:
    """Une ligne par référence Paystack; un événement rejoué écrase la précédente."""
    try:
        db.table("transactions").upsert(row, on_conflict="reference").execute()
    except Exception as e:
        logger.exception("payments.repository.upsert_transaction failed reference=%s", row.get("reference"))
        raise UpstreamError("Error recording transaction") from e


def transaction_row(event: str, data: Dict[str, Any], user_id: Optional[str]) -> Dict[str, Any]:
    customer = data.get("customer") or {}
    amount_minor = data.get("amount") or 0
    return {
        "reference": data.get("reference"),
        "user_id": user_id,
        "email": customer.get("email"),
        "amount": round(float(amount_minor) / 100, 2),
        "currency": data.get("currency"),
        "status": data.get("status"),
        "channel": data.get("channel"),
        "event": event,
        "paid_at": data.get("paid_at") or data.get("paidAt"),
    }
