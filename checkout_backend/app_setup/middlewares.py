"""
Middlewares transverses de l'application.
- register_basic_middlewares: CORS (vitrines autorisées, prévisualisations Shopify, localhost hors prod)
  et X-Forwarded-For accepté uniquement depuis les proxys de confiance
- register_security_middleware: en-têtes de sécurité et CSP d'une API JSON
- register_no_cache_middleware: empêche la mise en cache des réponses /api/*
Notes:
- L'ordre d'ajout est important: le dernier middleware ajouté s'exécute en premier.
"""
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from checkout_backend import config
from checkout_backend.utils.csrf import CSRF_HEADER_NAME
from checkout_backend.utils.origins import cors_origins


def cors_origin_regex(environment: str) -> str:
    pattern = r"https://[a-z0-9-]+(\.[a-z0-9-]+)*\.shopifypreview\.com"
    if environment != "production":
        pattern = rf"({pattern})|(https?://(localhost|127\.0\.0\.1)(:\d+)?)"
    return pattern


def register_basic_middlewares(
    app: FastAPI,
    environment: str = config.ENVIRONMENT,
    trusted_proxies: Optional[List[str]] = None,
) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(),
        allow_origin_regex=cors_origin_regex(environment),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", CSRF_HEADER_NAME],
        max_age=600,
    )
    # Ajouté en dernier: s'exécute en premier, avant le rate limit par IP
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=trusted_proxies or config.FORWARDED_ALLOW_IPS)


def register_security_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)

        # En-têtes de sécurité
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
        if config.COOKIE_SECURE:
            response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")

        # CSP: l'API ne sert que du JSON, la doc Swagger a besoin de ses CDNs
        if request.url.path.startswith(("/docs", "/redoc")):
            swagger_cdns = "https://cdn.jsdelivr.net https://fastapi.tiangolo.com"
            csp = f"default-src 'self'; img-src 'self' data: {swagger_cdns}; style-src 'self' 'unsafe-inline' {swagger_cdns}; script-src 'self' 'unsafe-inline' {swagger_cdns}"
        else:
            csp = "default-src 'none'; frame-ancestors 'none'; base-uri 'none'"
        response.headers["Content-Security-Policy"] = csp
        return response


def register_no_cache_middleware(app: FastAPI) -> None:
    """
    Empêche la mise en cache des réponses sensibles (tokens de session, devis, secrets client).
    """
    @app.middleware("http")
    async def no_cache_for_api(request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
            response.headers["Pragma"] = "no-cache"
        return response
