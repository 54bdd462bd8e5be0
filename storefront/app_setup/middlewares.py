"""
Middlewares transverses de l'application.
- register_basic_middlewares: CORS (CORS_ORIGINS), TrustedHost (ALLOWED_HOSTS, ouvert si
  CORS_ORIGINS contient "*") et confiance en X-Forwarded-* derrière un proxy.
- register_request_logging_middleware: identifiant de requête (X-Request-ID) et
  une ligne de log par requête (méthode, chemin, statut, durée).
Le webhook Paystack n'a pas de cookie de session: aucune protection CSRF ici.
"""
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
try:
    from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware
except ImportError:
    ProxyHeadersMiddleware = None

from storefront.config import CORS_ORIGINS, ALLOWED_HOSTS

REQUEST_ID_HEADER = "X-Request-ID"

logger = logging.getLogger("storefront.access")


def register_basic_middlewares(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    hosts = ALLOWED_HOSTS + ["*"] if "*" in CORS_ORIGINS else ALLOWED_HOSTS
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=hosts)
    if ProxyHeadersMiddleware:
        app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])


def register_request_logging_middleware(app: FastAPI) -> None:
    """
    Réutilise l'X-Request-ID entrant (proxy, client) ou en génère un;
    il est renvoyé dans la réponse et disponible dans request.state.request_id.
    """
    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "%s %s -> %s %.1fms request_id=%s",
            request.method, request.url.path, response.status_code, elapsed_ms, request_id,
        )
        return response
