# module storefront.app
from typing import Optional

from fastapi import FastAPI

from storefront.app_setup.exception_handlers import register_exception_handlers
from storefront.app_setup.lifespan import lifespan as app_lifespan
from storefront.app_setup.middlewares import register_basic_middlewares, register_request_logging_middleware
from storefront.app_setup.routers import register_routers
from storefront.infra.context import AppContext


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Crée et configure l'instance FastAPI de l'application.
    Étapes et ordre:
      1) context: contexte pré-construit (tests, scripts) ou construit par le lifespan.
      2) register_basic_middlewares: CORS, TrustedHost, ProxyHeaders;
         register_request_logging_middleware: X-Request-ID + une ligne de log par requête.
      3) register_exception_handlers: réponses d'erreur {status, message}.
      4) register_routers: cart, checkout, payment, orders, health.
    """
    app = FastAPI(title="Storefront API", lifespan=app_lifespan)
    app.state.context = context
    register_basic_middlewares(app)
    register_request_logging_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    return app
