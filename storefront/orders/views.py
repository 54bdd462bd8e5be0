# module storefront.orders.views
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from typing import Dict, Any, Literal

from storefront.infra.context import AppContext, get_context
from storefront.orders import service as orders_service
from storefront.utils.security import require_admin, require_user

router = APIRouter(prefix="/api/v1", tags=["Orders API"])


class TrackingUpdate(BaseModel):
    tracking_status: Literal["Dispatched", "Delivered", "Cancelled"] = Field(alias="trackingStatus")


@router.get("/orders/me")
def my_orders(user: Dict[str, Any] = Depends(require_user), ctx: AppContext = Depends(get_context)):
    """Commandes payées de l'utilisateur connecté, avec leurs lignes."""
    orders = orders_service.list_orders_for_user(ctx, str(user.get("id")))
    return {"status": "success", "message": "Orders retrieved", "orders": orders}


@router.patch("/admin/orders/{order_id}/tracking")
def update_tracking(order_id: str, body: TrackingUpdate, admin: Dict[str, Any] = Depends(require_admin), ctx: AppContext = Depends(get_context)):
    order = orders_service.update_tracking(ctx, order_id, body.tracking_status)
    return {"status": "success", "message": "Tracking status updated", "order": order}
