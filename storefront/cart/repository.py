"""
Accès aux données du panier (table 'cart') et des prix produits.
- Invariant: quantity >= 1; une ligne qui tomberait à 0 est supprimée.
- Les erreurs Supabase sont journalisées puis remontées en UpstreamError.
"""
from typing import Any, Dict, Iterable, List, Optional
import logging

from storefront.infra.supabase_client import first_row
from storefront.utils.errors import UpstreamError

logger = logging.getLogger(__name__)


def fetch_cart(db, user_id: str, selected_only: bool = False) -> List[dict]:
    try:
        query = db.table("cart").select("product_id, quantity, selected_for_checkout").eq("user_id", user_id)
        if selected_only:
            query = query.eq("selected_for_checkout", True)
        res = query.execute()
        return res.data or []
    except Exception as e:
        logger.exception("cart.repository.fetch_cart failed user_id=%s", user_id)
        raise UpstreamError("Error fetching cart") from e


def get_cart_line(db, user_id: str, product_id: str) -> Optional[dict]:
    try:
        res = (
            db.table("cart")
            .select("product_id, quantity, selected_for_checkout")
            .eq("user_id", user_id)
            .eq("product_id", product_id)
            .limit(1)
            .execute()
        )
        return first_row(res)
    except Exception as e:
        logger.exception("cart.repository.get_cart_line failed user_id=%s product_id=%s", user_id, product_id)
        raise UpstreamError("Error fetching cart") from e


def insert_cart_line(db, user_id: str, product_id: str, quantity: int) -> None:
    try:
        db.table("cart").insert({
            "user_id": user_id,
            "product_id": product_id,
            "quantity": quantity,
            "selected_for_checkout": True,
        }).execute()
    except Exception as e:
        logger.exception("cart.repository.insert_cart_line failed user_id=%s product_id=%s", user_id, product_id)
        raise UpstreamError("Error updating cart") from e


def update_cart_line(db, user_id: str, product_id: str, **fields: Any) -> None:
    try:
        db.table("cart").update(fields).eq("user_id", user_id).eq("product_id", product_id).execute()
    except Exception as e:
        logger.exception("cart.repository.update_cart_line failed user_id=%s product_id=%s", user_id, product_id)
        raise UpstreamError("Error updating cart") from e


def delete_cart_line(db, user_id: str, product_id: str) -> None:
    try:
        db.table("cart").delete().eq("user_id", user_id).eq("product_id", product_id).execute()
    except Exception as e:
        logger.exception("cart.repository.delete_cart_line failed user_id=%s product_id=%s", user_id, product_id)
        raise UpstreamError("Error updating cart") from e


def delete_checked_out_lines(db, user_id: str, product_ids: Iterable[str]) -> None:
    """Supprime les lignes passées en caisse (sélectionnées), sans toucher au reste du panier."""
    ids = [str(p) for p in product_ids]
    if not ids:
        return
    try:
        (
            db.table("cart")
            .delete()
            .eq("user_id", user_id)
            .eq("selected_for_checkout", True)
            .in_("product_id", ids)
            .execute()
        )
    except Exception as e:
        logger.exception("cart.repository.delete_checked_out_lines failed user_id=%s", user_id)
        raise UpstreamError("Error clearing cart") from e


def fetch_product_prices(db, product_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Retourne {product_id: {id, name, price}} pour les IDs demandés."""
    ids = [str(i) for i in product_ids]
    if not ids:
        return {}
    try:
        res = db.table("products").select("id, name, price").in_("id", ids).execute()
    except Exception as e:
        logger.exception("cart.repository.fetch_product_prices failed ids=%s", ids)
        raise UpstreamError("Error fetching products") from e
    return {str(p.get("id")): p for p in (res.data or [])}


def fetch_psv_stage(db, stage_id: str) -> Optional[dict]:
    try:
        res = db.table("psv_stages").select("id, name, delivery_fee").eq("id", stage_id).limit(1).execute()
        return first_row(res)
    except Exception as e:
        logger.exception("cart.repository.fetch_psv_stage failed stage_id=%s", stage_id)
        raise UpstreamError("Error fetching stage") from e
