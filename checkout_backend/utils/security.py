from typing import Any, Dict, Optional
from fastapi import Depends, Request

from checkout_backend.sessions import service as sessions_service
from checkout_backend.store import CheckoutStore


def get_store(request: Request) -> CheckoutStore:
    return request.app.state.store

def bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header[:7].lower() == "bearer ":
        return auth_header[7:].strip() or None
    return None

def client_ip(request: Request) -> str:
    # X-Forwarded-For est déjà résolu par ProxyHeadersMiddleware (proxys de confiance uniquement)
    return request.client.host if request.client else "unknown"

async def get_current_session(request: Request) -> Dict[str, Any]:
    """
    Session checkout du porteur (Authorization: Bearer <sessionToken>).
    - 401 si absente, inconnue ou expirée
    - Mémorisée dans request.state pour les dépendances suivantes (CSRF, rate limit)
    """
    cached = getattr(request.state, "checkout_session", None)
    if cached is not None:
        return cached
    session = await sessions_service.validate_session(get_store(request), bearer_token(request))
    request.state.checkout_session = session
    return session

def require_session(session: Dict[str, Any] = Depends(get_current_session)) -> Dict[str, Any]:
    return session
