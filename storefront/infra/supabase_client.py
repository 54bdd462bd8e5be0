from typing import Optional
from supabase import create_client, Client
from storefront.config import Settings


def create_service_supabase(settings: Settings) -> Client:
    """
    Client Supabase 'service' (opérations serveur: commandes, panier, transactions).
    Construit une seule fois par AppContext au démarrage (lifespan).
    """
    if not settings.supabase_url or not settings.supabase_key:
        raise RuntimeError("SUPABASE_URL/SUPABASE_SERVICE_KEY manquants pour create_service_supabase()")
    return create_client(settings.supabase_url, settings.supabase_key)


def first_row(res) -> Optional[dict]:
    """Première ligne d'une réponse PostgREST (ou None)."""
    rows = getattr(res, "data", None) or []
    if isinstance(rows, dict):
        return rows
    return rows[0] if rows else None
