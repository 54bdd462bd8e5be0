"""
Gestionnaires d'exceptions: toute réponse d'erreur a la forme {status, message}.
- AppError: code et message portés par l'exception (status "fail" 4xx, "error" 5xx).
- HTTPException (429 du rate limiter, 404 de routage...): detail -> message.
- RequestValidationError (corps/paramètres invalides): 400 avec le premier message lisible.
- Exception: 500 générique, trace complète côté serveur uniquement.
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.utils.errors import AppError

logger = logging.getLogger(__name__)


def _status_for(code: int) -> str:
    return "fail" if 400 <= code < 500 else "error"


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    msg = str(first.get("msg") or "Invalid request")
    # "Value error, stageId is required ..." -> message du validateur métier
    if msg.startswith("Value error, "):
        return msg[len("Value error, "):]
    loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path")]
    return f"{'.'.join(loc)}: {msg}" if loc else msg


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"status": _status_for(exc.status_code), "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"status": "fail", "message": _validation_message(exc)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"status": "error", "message": "Internal server error"})
