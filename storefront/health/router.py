from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from storefront.infra.context import AppContext, get_context
from storefront.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_root():
    return {"ok": True}


@router.get("/queue")
async def health_queue(request: Request, ctx: AppContext = Depends(get_context)):
    """Ping Redis + compteurs de la file de paiement; 503 si Redis ne répond pas."""
    try:
        await ctx.redis.ping()
        counts = await ctx.queue.counts()
    except Exception as e:
        return JSONResponse({"ok": False, "redis": False, "error": str(e)}, status_code=503)
    worker = getattr(request.app.state, "worker_task", None)
    return {
        "ok": True,
        "redis": True,
        "queue": ctx.queue.name,
        "counts": counts,
        "in_process_worker": bool(worker and not worker.done()),
        "rate_limit": rate_limit_health_info(request),
    }
