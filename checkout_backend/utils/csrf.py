# module checkout_backend.utils.csrf
from typing import Any, Dict, Optional
from fastapi import Depends, Header

from checkout_backend.sessions.service import require_csrf
from checkout_backend.utils.security import require_session

CSRF_HEADER_NAME = "X-CSRF-Token"


def csrf_protect(
    session: Dict[str, Any] = Depends(require_session),
    x_csrf_token: Optional[str] = Header(default=None, alias=CSRF_HEADER_NAME),
) -> Dict[str, Any]:
    """
    Dépendance à utiliser sur les routes mutatives liées à une session.
    Valide que le header X-CSRF-Token correspond au token CSRF de la session.
    Renvoie la session pour les handlers qui en ont besoin.
    """
    require_csrf(session, x_csrf_token)
    return session
