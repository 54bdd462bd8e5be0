"""
Zone de transit des commandes non payées (Redis).
- stage: sérialise la PendingOrder sous une clé générée, avec TTL borné.
- get: None si la clé a expiré ou n'a jamais existé.
- discard: suppression après matérialisation (ou échec de paiement).
"""
import logging
import uuid
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import RedisError

from storefront.checkout.schemas import PendingOrder
from storefront.utils.errors import UpstreamError

logger = logging.getLogger(__name__)

STAGE_PREFIX = "order:pending:"


def new_staging_key() -> str:
    return f"{STAGE_PREFIX}{uuid.uuid4().hex}"


class OrderStagingStore:
    def __init__(self, redis, ttl_seconds: int = 3600):
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    async def stage(self, pending: PendingOrder, key: Optional[str] = None) -> str:
        key = key or new_staging_key()
        try:
            await self.redis.set(key, pending.model_dump_json(by_alias=True), ex=self.ttl_seconds)
        except RedisError as e:
            logger.exception("staging.stage failed key=%s order_id=%s", key, pending.order_id)
            raise UpstreamError("Payment processing error") from e
        return key

    async def get(self, key: str) -> Optional[PendingOrder]:
        if not key or not key.startswith(STAGE_PREFIX):
            return None
        raw = await self.redis.get(key)
        if not raw:
            return None
        try:
            return PendingOrder.model_validate_json(raw)
        except PydanticValidationError:
            logger.error("staging.get corrupted payload key=%s", key)
            return None

    async def discard(self, key: str) -> None:
        try:
            await self.redis.delete(key)
        except RedisError:
            logger.exception("staging.discard failed key=%s", key)
