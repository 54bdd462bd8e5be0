from typing import Any, Dict
from fastapi import Request, Response, HTTPException
import os
import time
import hashlib

from storefront.utils.security import COOKIE_NAME


def _user_key_from_request(req: Request) -> str:
    # Priorité: jeton (hashé, Bearer ou cookie) puis IP
    auth_header = req.headers.get("Authorization", "")
    token = auth_header[7:].strip() if auth_header.startswith("Bearer ") else req.cookies.get(COOKIE_NAME)
    path = req.url.path
    if token:
        h = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        return f"user:{h}:{path}"
    ip = req.client.host if req.client else "local"
    return f"ip:{ip}:{path}"


def _sweep_expired(store: Dict[str, Any], now: float) -> None:
    # clés "<fenêtre>:<identité>": on supprime celles dont le dernier hit est hors fenêtre
    for key in [k for k, hits in store.items() if not hits or now - hits[-1] >= int(k.split(":", 1)[0])]:
        del store[key]


def optional_rate_limit(times: int, seconds: int):
    async def _dep(request: Request, response: Response):
        # Forcer le fallback mémoire en DEV si demandé
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            now = time.time()
            key = f"{seconds}:{_user_key_from_request(request)}"
            store = getattr(request.app.state, "_rl_store", {})
            _sweep_expired(store, now)
            hits = [t for t in store.get(key, []) if now - t < seconds]
            if len(hits) >= times:
                raise HTTPException(status_code=429, detail="Too Many Requests")
            hits.append(now)
            store[key] = hits
            request.app.state._rl_store = store
            return

        # Respecter le flag global
        if getattr(request.app.state, "rate_limit_enabled", None) is not True:
            return

        try:
            from fastapi_limiter.depends import RateLimiter

            async def _identifier(req: Request) -> str:
                return _user_key_from_request(req)
            return await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, response)
        except HTTPException:
            raise
        except Exception:
            # fastapi-limiter indisponible (ex: SCRIPT non supporté): pas de 429 en prod
            return
    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    try:
        from fastapi_limiter import FastAPILimiter
        limiter_ready = getattr(FastAPILimiter, "redis", None) is not None
    except Exception:
        limiter_ready = False
    return {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": limiter_ready,
        "backend": "redis" if limiter_ready else None,
        "local_fallback": os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1",
    }
