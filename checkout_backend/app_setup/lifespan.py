"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Store Redis (ou fakeredis en tests) pour sessions, dédup webhooks et rate limit
- Client Shopify Admin (création des commandes) et processeur de webhooks
- Variables d'environnement supportées:
  - USE_FAKE_REDIS_FOR_TESTS=1: utilise fakeredis (tests)
  - DISABLE_RATE_LIMIT_FOR_TESTS=1: désactive le rate limiting (tests)
Les instances passées à create_app() (app.state.overrides) remplacent celles par défaut.
"""
import os
import logging
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI

from checkout_backend import config
from checkout_backend.infra.redis_client import create_redis, describe_backend
from checkout_backend.orders.shopify_client import ShopifyAdminClient
from checkout_backend.store import CheckoutStore
from checkout_backend.utils.rate_limit import SlidingWindowRateLimiter
from checkout_backend.webhooks.processor import WebhookProcessor


def build_order_client():
    if not (config.SHOPIFY_STORE_DOMAIN and config.SHOPIFY_ADMIN_ACCESS_TOKEN):
        return None
    return ShopifyAdminClient(config.SHOPIFY_STORE_DOMAIN, config.SHOPIFY_ADMIN_ACCESS_TOKEN)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Construit les ressources et les attache à app.state.
    - Un store injoignable au démarrage n'empêche pas de démarrer (health "degraded").
    - Les logs indiquent l'état effectif (store, rate limiting, Shopify) pour observabilité.
    """
    logger = logging.getLogger("uvicorn.error")
    overrides = getattr(app.state, "overrides", None) or {}
    clock = overrides.get("clock") or time.time

    redis_client = overrides.get("redis_client")
    owns_redis = redis_client is None
    if owns_redis:
        redis_client = create_redis()
    store = CheckoutStore(redis_client)
    app.state.store = store

    app.state.rate_limiter = SlidingWindowRateLimiter(store, clock=clock)
    app.state.rate_limit_enabled = os.getenv("DISABLE_RATE_LIMIT_FOR_TESTS") != "1"
    logger.info("Rate limiting %s", "enabled" if app.state.rate_limit_enabled else "disabled by DISABLE_RATE_LIMIT_FOR_TESTS")

    order_client = overrides.get("order_client")
    owns_order_client = order_client is None
    if owns_order_client:
        order_client = build_order_client()
    if order_client is None:
        logger.warning("Shopify Admin API not configured: paid orders will not be dispatched")
    app.state.order_client = order_client

    processor = WebhookProcessor(
        store,
        order_client,
        secret=overrides.get("webhook_secret", config.STRIPE_WEBHOOK_SECRET),
        environment=app.state.environment,
        clock=clock,
    )
    app.state.webhook_processor = processor

    if await store.ping():
        logger.info("Checkout store ready backend=%s env=%s", describe_backend(redis_client), app.state.environment)
    else:
        logger.warning("Checkout store unreachable at startup backend=%s", describe_backend(redis_client))

    try:
        yield
    finally:
        await processor.drain()
        if owns_order_client and order_client is not None:
            await order_client.aclose()
        if owns_redis:
            await store.close()
