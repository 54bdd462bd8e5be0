import asyncio
import os
from typing import Any, Dict

import httpx
import pytest
import pytest_asyncio
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis

# Pas de FastAPILimiter réel pendant les tests (avant import de l'app)
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

from storefront.app import create_app
from storefront.config import Settings
from storefront.infra.context import AppContext
from storefront.utils.security import require_admin, require_user
from storefront.worker import build_worker
from tests.fakes import WEBHOOK_SECRET, FakeGateway, FakeSupabase, RecordingMailer

TEST_USER: Dict[str, Any] = {"id": "user-1", "email": "buyer@example.com", "username": "buyer", "role": "user"}
ADMIN_USER: Dict[str, Any] = {"id": "admin-1", "email": "admin@example.com", "username": "admin", "role": "admin"}


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def settings() -> Settings:
    # Délais de polling nuls et backoff court: tests déterministes et rapides
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_key="service-key",
        use_fake_redis=True,
        jwt_secret="test-jwt-secret",
        paystack_secret_key=WEBHOOK_SECRET,
        paystack_currency="KES",
        paystack_channels=["card", "mobile_money"],
        paystack_callback_url="https://shop.example.com/payment/callback",
        payment_job_wait_seconds=2.0,
        payment_job_attempts=2,
        payment_job_backoff_seconds=0.05,
        run_worker_in_process=False,
        poll_initial_delay_seconds=0,
        poll_max_retries=3,
        poll_base_delay_seconds=0,
        poll_step_seconds=0,
        poll_max_delay_seconds=0,
        poll_error_delay_seconds=0,
    )


@pytest.fixture
def db() -> FakeSupabase:
    return FakeSupabase({
        "products": [
            {"id": "A", "name": "Shea butter", "price": 500},
            {"id": "B", "name": "Rose water", "price": "250.50"},
        ],
        "psv_stages": [
            {"id": "stage-1", "name": "Kencom", "delivery_fee": 200},
        ],
        "users": [TEST_USER, ADMIN_USER],
        "cart": [],
        "orders": [],
        "order_items": [],
        "transactions": [],
    })


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def redis():
    return FakeRedis(server=FakeServer(), decode_responses=True)


@pytest.fixture
def ctx(settings, db, redis, gateway, mailer) -> AppContext:
    return AppContext(settings=settings, db=db, redis=redis, gateway=gateway, mailer=mailer)


@pytest.fixture
def user() -> Dict[str, Any]:
    return dict(TEST_USER)


@pytest.fixture
def app(ctx, user):
    application = create_app(context=ctx)
    application.dependency_overrides[require_user] = lambda: user
    application.dependency_overrides[require_admin] = lambda: dict(ADMIN_USER)
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def api(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest_asyncio.fixture
async def running_worker(ctx):
    """Worker de la file en tâche de fond, dans la boucle du test."""
    stop = asyncio.Event()
    worker = build_worker(ctx)
    worker.poll_interval = 0.01
    task = asyncio.create_task(worker.run(stop))
    yield worker
    stop.set()
    await task

