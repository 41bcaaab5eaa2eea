"""
Registre central des routers.
- Checkout: sessions, livraison, taxe, paiements
- Stripe: webhook
- Health
"""
from fastapi import FastAPI
from checkout_backend.sessions import views as sessions_views
from checkout_backend.shipping import views as shipping_views
from checkout_backend.tax import views as tax_views
from checkout_backend.payments import views as payments_views
from checkout_backend.webhooks import views as webhooks_views
from checkout_backend.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # Checkout
    app.include_router(sessions_views.router)
    app.include_router(shipping_views.router)
    app.include_router(tax_views.router)
    app.include_router(payments_views.router)
    # Stripe
    app.include_router(webhooks_views.router)
    # Health & monitoring
    app.include_router(health_router)
