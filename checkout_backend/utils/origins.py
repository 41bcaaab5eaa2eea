"""
Contrôle des origines vitrines (Origin/Referer -> domaine).
- Liste blanche exacte (ALLOWED_STOREFRONT_DOMAINS + hôte de FRONTEND_URL)
- Prévisualisations Shopify (*.shopifypreview.com) toujours acceptées
- localhost / 127.0.0.1 acceptés hors production
"""
from typing import Iterable, Optional
from urllib.parse import urlparse
from fastapi import Request

from checkout_backend import config

LOCAL_HOSTS = {"localhost", "127.0.0.1"}
PREVIEW_SUFFIX = ".shopifypreview.com"


def hostname_of(url: Optional[str]) -> str:
    if not url:
        return ""
    parsed = urlparse(url if "://" in url else f"//{url}")
    return (parsed.hostname or "").lower()


def request_origin_domain(request: Request) -> str:
    """Domaine d'origine de la requête: Origin en priorité, sinon Referer."""
    return hostname_of(request.headers.get("origin")) or hostname_of(request.headers.get("referer"))


def allowed_domains() -> Iterable[str]:
    domains = {d.lower() for d in config.ALLOWED_STOREFRONT_DOMAINS}
    frontend = hostname_of(config.FRONTEND_URL)
    if frontend:
        domains.add(frontend)
    return domains


def is_allowed_origin(domain: str, environment: Optional[str] = None) -> bool:
    domain = (domain or "").lower()
    if not domain:
        return False
    if domain in allowed_domains():
        return True
    if domain.endswith(PREVIEW_SUFFIX):
        return True
    env = environment or config.ENVIRONMENT
    return env != "production" and domain in LOCAL_HOSTS


def cors_origins() -> list:
    """Origines CORS: liste explicite + https://<domaine> pour chaque vitrine autorisée."""
    origins = list(config.CORS_ORIGINS)
    origins.extend(f"https://{d}" for d in sorted(allowed_domains()))
    return origins
