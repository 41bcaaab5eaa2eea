"""
ASGI entrypoint: expose `app` for process managers / deployments.

- En production, un process manager (ex: gunicorn -k uvicorn.workers.UvicornWorker) importe
  `checkout_backend.asgi:app` pour servir l'application FastAPI.
- Toute la configuration (routes, middlewares, ressources) est centralisée dans
  checkout_backend.app_setup.factory, ce fichier ne fait qu'exposer l'instance `app`.
"""

from checkout_backend.app import app

__all__ = ["app"]
