"""
Registre central des routers.
- API v1: cart, checkout (order + payment/initialize), payment (verify, webhook, transactions), orders, shipping-fees
- Health: /health, /health/queue
"""
from fastapi import FastAPI
from storefront.cart import views as cart_views
from storefront.checkout import views as checkout_views
from storefront.orders import views as orders_views
from storefront.payments import views as payments_views
from storefront.shipping import views as shipping_views
from storefront.health.router import router as health_router


def register_routers(app: FastAPI) -> None:
    app.include_router(cart_views.router)
    app.include_router(checkout_views.router)
    app.include_router(payments_views.router)
    app.include_router(orders_views.router)
    app.include_router(shipping_views.router)
    app.include_router(health_router)
