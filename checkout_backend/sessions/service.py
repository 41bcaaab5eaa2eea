"""
Cas d'usage 'sessions': création, validation, CSRF, destruction.

- Token de session: 256 bits aléatoires (64 hex), token CSRF: 128 bits (32 hex)
- Expiration stricte: valide tant que now < expiresAt, évincée à la lecture sinon
- L'enregistrement est immuable une fois émis
"""
import hashlib
import logging
import re
import secrets
import time
from typing import Any, Dict, Optional

from checkout_backend import config
from checkout_backend.errors import (
    CsrfMismatch,
    ForbiddenOrigin,
    InvalidAmount,
    InvalidInput,
    Unauthenticated,
)
from checkout_backend.store import CheckoutStore
from checkout_backend.utils.origins import is_allowed_origin
from checkout_backend.utils.validators import is_number, is_valid_rep_code
from . import repository

logger = logging.getLogger(__name__)

SESSION_TOKEN_RE = re.compile(r"^[a-f0-9]{64}$")
MAX_CART_TOKEN_LENGTH = 256
_TOKEN_ATTEMPTS = 3


def now_ms() -> int:
    return int(time.time() * 1000)

def generate_session_token() -> str:
    return secrets.token_hex(32)

def generate_csrf_token() -> str:
    return secrets.token_hex(16)

def mask_secret(value: Optional[str]) -> str:
    """Forme loggable d'un secret: 8 premiers caractères puis '...'."""
    if not value:
        return "<none>"
    return f"{value[:8]}..."

def session_ref(token: str) -> str:
    """Référence stable et non secrète d'une session (métadonnées Stripe, logs)."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]


async def create_session(
    store: CheckoutStore,
    *,
    cart_token: Any,
    cart_total: Any = None,
    origin_domain: Optional[str] = None,
    rep: Any = None,
    now: Optional[int] = None,
    ttl_seconds: int = config.SESSION_TTL_SECONDS,
) -> Dict[str, Any]:
    """
    Ouvre une session checkout liée à un panier.
    Erreurs: InvalidInput (cartToken manquant), InvalidAmount (cartTotal négatif
    ou non numérique), ForbiddenOrigin (domaine hors liste blanche).
    """
    if not isinstance(cart_token, str) or not cart_token.strip():
        raise InvalidInput("Missing cart token")
    cart_token = cart_token.strip()
    if len(cart_token) > MAX_CART_TOKEN_LENGTH:
        raise InvalidInput("Invalid cart token")

    if cart_total is not None and (not is_number(cart_total) or cart_total < 0):
        raise InvalidAmount("Invalid cart total")

    if origin_domain:
        if not is_allowed_origin(origin_domain):
            logger.warning("sessions.create rejected origin=%s", origin_domain)
            raise ForbiddenOrigin()
    elif config.REQUIRE_ORIGIN:
        raise ForbiddenOrigin()

    if rep is not None and not is_valid_rep_code(rep):
        logger.info("sessions.create dropped invalid rep code")
        rep = None

    created_at = now if now is not None else now_ms()
    record: Dict[str, Any] = {
        "csrfToken": generate_csrf_token(),
        "cartToken": cart_token,
        "cartTotal": cart_total,
        "createdAt": created_at,
        "expiresAt": created_at + ttl_seconds * 1000,
        "originDomain": origin_domain or "",
        "rep": rep,
    }
    for _ in range(_TOKEN_ATTEMPTS):
        record["sessionId"] = generate_session_token()
        if await repository.insert_session(store, record, ttl_seconds):
            logger.info(
                "sessions.create session=%s origin=%s",
                mask_secret(record["sessionId"]),
                record["originDomain"] or "<none>",
            )
            return record
    raise RuntimeError("could not allocate a unique session token")


async def validate_session(store: CheckoutStore, token: Optional[str], *, now: Optional[int] = None) -> Dict[str, Any]:
    """
    Renvoie la session active associée au token, sinon Unauthenticated.
    Une session expirée est supprimée au passage.
    """
    if not token:
        raise Unauthenticated("No session found")
    if not SESSION_TOKEN_RE.match(token):
        raise Unauthenticated("Invalid or expired session")

    record = await repository.fetch_session(store, token)
    if not record:
        raise Unauthenticated("Invalid or expired session")

    current = now if now is not None else now_ms()
    if current >= int(record.get("expiresAt") or 0):
        await repository.delete_session(store, token)
        logger.info("sessions.expired session=%s", mask_secret(token))
        raise Unauthenticated("Session expired")
    return record


def require_csrf(session: Dict[str, Any], supplied: Optional[str]) -> None:
    """Comparaison à temps constant du token CSRF fourni avec celui de la session."""
    if not supplied:
        raise CsrfMismatch("CSRF token missing")
    expected = str(session.get("csrfToken") or "")
    if not expected or not secrets.compare_digest(str(supplied), expected):
        raise CsrfMismatch()


async def destroy_session(store: CheckoutStore, token: Optional[str]) -> None:
    """Idempotent: détruire une session absente n'est pas une erreur."""
    if not token:
        return
    removed = await repository.delete_session(store, token)
    logger.info("sessions.destroy session=%s removed=%s", mask_secret(token), removed)


async def record_payment_intent(store: CheckoutStore, session: Dict[str, Any], intent_id: str, *, now: Optional[int] = None) -> None:
    current = now if now is not None else now_ms()
    remaining = max(1, (int(session["expiresAt"]) - current) // 1000)
    await repository.append_payment_intent(store, session["sessionId"], intent_id, remaining)
