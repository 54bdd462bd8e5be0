"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Construit l'AppContext (Supabase, Redis, Paystack, MailerSend) sauf s'il a été fourni à create_app.
- Démarre le worker de la file de paiement en tâche de fond si RUN_WORKER_IN_PROCESS=1.
- Initialise FastAPILimiter sur le Redis du contexte.
- Variables d'environnement supportées:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive le rate limiting (tests)
  - LOCAL_RATE_LIMIT_FALLBACK=1: active un fallback local si l'init échoue
"""
import asyncio
import os
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

from storefront.infra.context import build_context


async def _init_rate_limiter(app: FastAPI, redis, logger: logging.Logger) -> None:
    try:
        if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
            app.state.rate_limit_enabled = False
            logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
            return
        await FastAPILimiter.init(redis)
        app.state.rate_limit_enabled = True
        logger.info("Rate limiting enabled")
    except Exception as e:
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            app.state.rate_limit_enabled = True
            logger.warning("Rate limiting falling back to local in-memory due to init error: %s", e)
        else:
            app.state.rate_limit_enabled = False
            logger.warning("Rate limiting disabled due to init error: %s", e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("uvicorn.error")
    owns_context = getattr(app.state, "context", None) is None
    if owns_context:
        app.state.context = build_context()
    ctx = app.state.context

    await _init_rate_limiter(app, ctx.redis, logger)

    stop = asyncio.Event()
    app.state.worker_task = None
    if ctx.settings.run_worker_in_process:
        from storefront.worker import build_worker

        app.state.worker_task = asyncio.create_task(build_worker(ctx).run(stop))
        logger.info("In-process payment worker started")

    try:
        yield
    finally:
        stop.set()
        if app.state.worker_task is not None:
            await app.state.worker_task
            logger.info("In-process payment worker stopped")
        if owns_context:
            await ctx.close()
