"""
Garde d'idempotence des initialisations de paiement.

Une empreinte stable (utilisateur, montant[, contenu du panier]) sert de clé
de verrou dans Redis. Tant que le verrou existe, une seconde initialisation
pour la même empreinte est refusée. Le verrou vaut "Processing" pendant
l'initialisation puis la référence Paystack une fois résolu; il expire seul
(IDEMPOTENCY_TTL_SECONDS) ou est supprimé par le worker en cas d'échec.
"""
import hashlib
import json
import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from redis.exceptions import RedisError

from storefront.utils.errors import UpstreamError

logger = logging.getLogger(__name__)

LOCK_PREFIX = "payment:lock:"
PROCESSING = "Processing"


def order_fingerprint(user_id: str, amount: Any, cart_lines: Optional[Iterable[Dict[str, Any]]] = None) -> str:
    """
    Clé de verrou déterministe pour (user_id, amount[, cart]).
    - amount est normalisé en Decimal à 2 décimales (500 == 500.0 == "500.00").
    - cart_lines: [{product_id, quantity}, ...], trié par product_id; distingue
      deux paniers différents au même prix.
    """
    payload: Dict[str, Any] = {
        "user_id": str(user_id),
        "amount": str(Decimal(str(amount)).quantize(Decimal("0.01"))),
    }
    if cart_lines is not None:
        payload["cart"] = sorted(
            ({"product_id": str(c["product_id"]), "quantity": int(c["quantity"])} for c in cart_lines),
            key=lambda c: c["product_id"],
        )
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return LOCK_PREFIX + hashlib.sha256(body.encode("utf-8")).hexdigest()


class IdempotencyGuard:
    def __init__(self, redis, ttl_seconds: int = 300):
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    async def acquire(self, fingerprint: str) -> bool:
        """
        Pose le verrou (SET NX EX). True si acquis, False s'il existe déjà.
        Cache indisponible -> UpstreamError: ne jamais continuer sans verrou.
        """
        try:
            created = await self.redis.set(fingerprint, PROCESSING, ex=self.ttl_seconds, nx=True)
        except RedisError as e:
            logger.exception("idempotency.acquire failed key=%s", fingerprint)
            raise UpstreamError("Payment processing error") from e
        return bool(created)

    async def release(self, fingerprint: str) -> None:
        """Supprime le verrou pour permettre une nouvelle tentative (best-effort)."""
        try:
            await self.redis.delete(fingerprint)
        except RedisError:
            logger.exception("idempotency.release failed key=%s", fingerprint)

    async def resolve(self, fingerprint: str, reference: str) -> None:
        """
        Remplace le marqueur par la référence Paystack, en conservant le TTL restant.
        Verrou déjà supprimé (timeout côté API) -> rien n'est recréé (XX).
        """
        try:
            ttl = await self.redis.ttl(fingerprint)
            await self.redis.set(fingerprint, reference, ex=ttl if ttl and ttl > 0 else self.ttl_seconds, xx=True)
        except RedisError:
            logger.exception("idempotency.resolve failed key=%s", fingerprint)

    async def status(self, fingerprint: str) -> Optional[str]:
        return await self.redis.get(fingerprint)
