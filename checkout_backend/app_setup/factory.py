"""
Factory d'application pour les entrypoints (ex: checkout_backend.asgi).
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
from typing import Any, Dict, List, Optional, Tuple
from fastapi import FastAPI

from checkout_backend import config
from .lifespan import lifespan
from .middlewares import register_basic_middlewares, register_no_cache_middleware, register_security_middleware
from .exceptions import register_exception_handlers
from .routers import register_routers


def create_app(
    *,
    environment: Optional[str] = None,
    rate_limits: Optional[Dict[str, Tuple[int, int]]] = None,
    trusted_proxies: Optional[List[str]] = None,
    **overrides: Any,
) -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - middlewares CORS, sécurité, no-cache
      - gestionnaires d'exceptions
      - tous les routers (checkout, webhook, health)
    trusted_proxies: proxys autorisés à fixer l'IP client (défaut FORWARDED_ALLOW_IPS).
    overrides (tests): redis_client, order_client, webhook_secret, clock.
    Retour:
      FastAPI prêt à être utilisé par le serveur ASGI.
    """
    env = config.normalize_environment(environment or config.ENVIRONMENT)
    app = FastAPI(title="Checkout Backend", lifespan=lifespan)
    app.state.environment = env
    app.state.rate_limits = dict(rate_limits or config.RATE_LIMITS)
    app.state.overrides = overrides
    register_security_middleware(app)
    register_no_cache_middleware(app)
    register_basic_middlewares(app, environment=env, trusted_proxies=trusted_proxies)
    register_exception_handlers(app)
    register_routers(app)
    return app
