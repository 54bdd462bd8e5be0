"""
Contexte applicatif: clients partagés construits une fois par process.
- build_context: au démarrage (lifespan API ou process worker).
- close: à l'arrêt (connexions Redis et HTTP).
- get_context: dépendance FastAPI; les tests injectent un contexte de fakes
  via create_app(context=...).
"""
from dataclasses import dataclass, field
import logging
from typing import Any, Optional

from fastapi import Request

from storefront.config import Settings
from storefront.checkout.staging import OrderStagingStore
from storefront.jobs.queue import JobQueue
from storefront.payments.idempotency import IdempotencyGuard

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    db: Any
    redis: Any
    gateway: Any
    mailer: Any
    queue: JobQueue = field(init=False)
    guard: IdempotencyGuard = field(init=False)
    staging: OrderStagingStore = field(init=False)

    def __post_init__(self):
        self.queue = JobQueue(self.redis, name="payments", lease_seconds=self.settings.queue_lease_seconds)
        self.guard = IdempotencyGuard(self.redis, ttl_seconds=self.settings.idempotency_ttl_seconds)
        self.staging = OrderStagingStore(self.redis, ttl_seconds=self.settings.staged_order_ttl_seconds)

    async def close(self) -> None:
        for name, resource in (("gateway", self.gateway), ("mailer", self.mailer)):
            closer = getattr(resource, "aclose", None)
            if closer:
                try:
                    await closer()
                except Exception:
                    logger.exception("context.close %s failed", name)
        closer = getattr(self.redis, "aclose", None) or getattr(self.redis, "close", None)
        if closer:
            await closer()


def build_context(settings: Optional[Settings] = None) -> AppContext:
    from storefront.infra.redis_client import create_redis
    from storefront.infra.supabase_client import create_service_supabase
    from storefront.notifications.email import build_email_sender
    from storefront.payments.paystack_client import PaystackClient

    settings = settings or Settings()
    return AppContext(
        settings=settings,
        db=create_service_supabase(settings),
        redis=create_redis(settings),
        gateway=PaystackClient.from_settings(settings),
        mailer=build_email_sender(settings),
    )


def get_context(request: Request) -> AppContext:
    return request.app.state.context
