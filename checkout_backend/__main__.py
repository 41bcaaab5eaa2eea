"""
Lancement local: python -m checkout_backend

Variables lues:
- HOST / PORT: adresse d'écoute (0.0.0.0:8000 par défaut)
- UVICORN_RELOAD: reload auto, ignoré en production
- LOG_LEVEL: niveau de logs uvicorn
- FORWARDED_ALLOW_IPS: proxys de confiance pour X-Forwarded-For (lu par l'app, voir app_setup.middlewares)
"""
import os

import uvicorn

from checkout_backend import config


def main() -> None:
    reload_flag = os.environ.get("UVICORN_RELOAD", "").lower() in ("1", "true", "yes")
    uvicorn.run(
        "checkout_backend.asgi:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 8000)),
        reload=reload_flag and not config.IS_PRODUCTION,
        log_level=os.environ.get("LOG_LEVEL", "info"),
        proxy_headers=False,
    )


if __name__ == "__main__":
    main()
