"""
Cas d'usage 'payments': valide la demande, construit les métadonnées,
crée le PaymentIntent Stripe et le rattache à la session.
"""
import logging
from typing import Any, Dict, List, Optional

from redis.exceptions import RedisError

from checkout_backend import config
from checkout_backend.errors import InvalidAmount, InvalidInput
from checkout_backend.sessions import service as sessions_service
from checkout_backend.store import CheckoutStore
from checkout_backend.utils.validators import is_number
from . import metadata as payments_metadata
from . import stripe_client

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "usd"
DEFAULT_PAYMENT_METHOD_TYPES = ["card"]


def validate_amount(amount: Any, ceiling: int = config.MAX_PAYMENT_AMOUNT) -> int:
    """Montant en centimes: entier strictement positif et <= plafond."""
    if not is_number(amount):
        raise InvalidAmount()
    if isinstance(amount, float):
        if not amount.is_integer():
            raise InvalidAmount()
        amount = int(amount)
    if amount <= 0 or amount > ceiling:
        raise InvalidAmount()
    return amount


def validate_currency(currency: Any) -> str:
    if currency is None:
        return DEFAULT_CURRENCY
    if not isinstance(currency, str) or currency.strip().lower() not in config.ALLOWED_CURRENCIES:
        raise InvalidInput("Invalid currency")
    return currency.strip().lower()


def validate_payment_method_types(types: Any) -> List[str]:
    if types is None:
        return list(DEFAULT_PAYMENT_METHOD_TYPES)
    if not isinstance(types, list) or not types:
        raise InvalidInput("Invalid payment method types")
    cleaned: List[str] = []
    for t in types:
        if not isinstance(t, str) or t not in config.ALLOWED_PAYMENT_METHOD_TYPES:
            raise InvalidInput("Invalid payment method types")
        if t not in cleaned:
            cleaned.append(t)
    return cleaned


async def create_payment_intent(
    store: CheckoutStore,
    session: Dict[str, Any],
    body: Dict[str, Any],
    *,
    environment: str = config.ENVIRONMENT,
    now: Optional[int] = None,
) -> Dict[str, str]:
    """
    Valide (montant, devise, méthodes, métadonnées) puis crée l'intent Stripe.
    Retour minimal: {"clientSecret", "paymentIntentId"}.
    Chaque appel crée un intent distinct (changement de méthode de paiement).
    """
    amount = validate_amount(body.get("amount"))
    currency = validate_currency(body.get("currency"))
    method_types = validate_payment_method_types(body.get("payment_method_types"))
    current = now if now is not None else sessions_service.now_ms()
    metadata = payments_metadata.build_intent_metadata(
        body.get("metadata"),
        session=session,
        session_reference=sessions_service.session_ref(session["sessionId"]),
        environment=environment,
        created_at=current,
    )
    if "us_bank_account" in method_types and "payment_method" not in metadata:
        metadata["payment_method"] = "us_bank_account"

    intent = await stripe_client.create_payment_intent(
        amount=amount,
        currency=currency,
        payment_method_types=method_types,
        metadata=metadata,
    )
    try:
        await sessions_service.record_payment_intent(store, session, intent["id"], now=current)
    except RedisError:
        logger.exception("payments.intent record failed intent=%s", intent["id"])

    logger.info(
        "payments.intent created intent=%s amount=%s currency=%s methods=%s session=%s",
        intent["id"], amount, currency, ",".join(method_types), metadata["session_ref"],
    )
    return {"clientSecret": intent["client_secret"], "paymentIntentId": intent["id"]}
