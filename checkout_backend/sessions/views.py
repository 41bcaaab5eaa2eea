from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from checkout_backend.sessions import service as sessions_service
from checkout_backend.utils.csrf import csrf_protect
from checkout_backend.utils.origins import request_origin_domain
from checkout_backend.utils.rate_limit import rate_limit
from checkout_backend.utils.requests import read_json_object
from checkout_backend.utils.security import bearer_token, get_store, require_session

router = APIRouter(prefix="/api/checkout", tags=["Checkout Session"])


# module checkout_backend.sessions.views
@router.post("/session", dependencies=[Depends(rate_limit("session"))])
async def create_checkout_session(request: Request):
    """
    Ouvre une session checkout pour un panier Shopify.
    - Entrée JSON: { "cartToken": "...", "cartTotal": <number>?, "rep": "..."? }
    - Sécurité: Origin/Referer en liste blanche + rate limit par IP
    - Réponse: { success, sessionToken, csrfToken, expiresAt, expiresIn }
    - Erreurs: 400 cartToken manquant, 403 domaine refusé, 429 trop de requêtes
    """
    body = await read_json_object(request)
    session = await sessions_service.create_session(
        get_store(request),
        cart_token=body.get("cartToken"),
        cart_total=body.get("cartTotal"),
        origin_domain=request_origin_domain(request),
        rep=body.get("rep"),
    )
    return {
        "success": True,
        "sessionToken": session["sessionId"],
        "csrfToken": session["csrfToken"],
        "expiresAt": session["expiresAt"],
        "expiresIn": (session["expiresAt"] - session["createdAt"]) // 1000,
    }


@router.get("/csrf")
async def get_csrf_token(session: Dict[str, Any] = Depends(require_session)):
    return {"csrfToken": session["csrfToken"]}


@router.post("/logout")
async def logout(request: Request, session: Dict[str, Any] = Depends(csrf_protect)):
    await sessions_service.destroy_session(get_store(request), bearer_token(request))
    return {"success": True}
