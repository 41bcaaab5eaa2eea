"""
Adaptateur Stripe: centralise la configuration et les appels Stripe.
Le SDK est synchrone: les appels sont déportés dans un thread et bornés par un timeout.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

import stripe

from checkout_backend import config
from checkout_backend.errors import UpstreamFailure, UpstreamTimeout

logger = logging.getLogger(__name__)

# module checkout_backend.payments.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY
    - Les retries réseau du SDK réutilisent la même clé d'idempotence
    """
    if not config.STRIPE_SECRET_KEY:
        logger.error("payments.stripe STRIPE_SECRET_KEY manquant")
        raise UpstreamFailure("Payment provider is not configured")
    stripe.api_key = config.STRIPE_SECRET_KEY
    stripe.max_network_retries = 2
    return stripe


async def create_payment_intent(
    *,
    amount: int,
    currency: str,
    payment_method_types: List[str],
    metadata: Dict[str, str],
    timeout: float = config.UPSTREAM_TIMEOUT_SECONDS,
) -> Dict[str, Any]:
    """
    Crée un PaymentIntent Stripe.
    Retour: {"id", "client_secret", "status", "livemode"}
    Erreurs: UpstreamTimeout (retryable), UpstreamFailure (erreur Stripe)
    """
    require_stripe()
    try:
        intent = await asyncio.wait_for(
            asyncio.to_thread(
                stripe.PaymentIntent.create,
                amount=amount,
                currency=currency,
                payment_method_types=payment_method_types,
                metadata=metadata,
                idempotency_key=str(uuid4()),
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.error("payments.stripe create_payment_intent timed out after %ss", timeout)
        raise UpstreamTimeout()
    except stripe.StripeError as e:
        logger.error(
            "payments.stripe create_payment_intent failed type=%s code=%s",
            type(e).__name__, getattr(e, "code", None),
        )
        raise UpstreamFailure()
    # StripeObject n'est pas un dict: pas de .get()
    return {
        "id": intent["id"],
        "client_secret": intent["client_secret"],
        "status": getattr(intent, "status", None),
        "livemode": bool(getattr(intent, "livemode", False)),
    }


def verify_webhook_signature(payload: str, sig_header: str, *, secret: str, tolerance: Optional[int] = None) -> None:
    """
    Vérifie l'en-tête Stripe-Signature (t=<unix>,v1=<hmac sha256 de "t.payload">).
    Lève stripe.SignatureVerificationError si mal formé, invalide ou trop ancien.
    tolerance=None: fraîcheur non contrôlée ici (déjà faite par l'appelant).
    """
    stripe.WebhookSignature.verify_header(payload, sig_header, secret, tolerance)
