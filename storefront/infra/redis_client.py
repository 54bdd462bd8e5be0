"""
Client Redis asynchrone partagé (cache + file de jobs).
- Production: redis.asyncio depuis REDIS_URL.
- Tests / dev sans Redis: USE_FAKE_REDIS=1 bascule sur fakeredis.
"""
import redis.asyncio as aioredis
from storefront.config import Settings

try:
    from fakeredis.aioredis import FakeRedis  # tests only
except Exception:
    FakeRedis = None


def create_redis(settings: Settings) -> aioredis.Redis:
    """Toutes les valeurs sont des chaînes (decode_responses=True): l'appelant sérialise."""
    if settings.use_fake_redis:
        if not FakeRedis:
            raise RuntimeError("USE_FAKE_REDIS=1 mais fakeredis n'est pas installé.")
        return FakeRedis(decode_responses=True)
    return aioredis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
