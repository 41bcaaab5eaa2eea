"""
Vérification de l'en-tête Stripe-Signature.
- Format: t=<unix>,v1=<hex hmac sha256 de "{t}.{corps brut}">
- Fraîcheur contrôlée avant la signature: un horodatage trop ancien (ou dans le futur) est rejeté
  même si la signature est correcte (rejeu)
"""
import time
from typing import Callable, Dict, List, Optional

import stripe

from checkout_backend.errors import ReplaySuspected, SignatureInvalid
from checkout_backend.payments import stripe_client

SIGNATURE_HEADER = "stripe-signature"


def parse_signature_header(header: str) -> Dict[str, List[str]]:
    values: Dict[str, List[str]] = {}
    for part in (header or "").split(","):
        key, sep, value = part.strip().partition("=")
        if sep and key and value:
            values.setdefault(key, []).append(value)
    return values


def verify_signature(
    payload: bytes,
    header: Optional[str],
    *,
    secret: str,
    tolerance: int,
    clock: Callable[[], float] = time.time,
) -> str:
    """
    Vérifie signature et fraîcheur, renvoie le corps décodé (utf-8).
    Erreurs: SignatureInvalid (en-tête absent/mal formé, signature fausse), ReplaySuspected.
    """
    if not header:
        raise SignatureInvalid("Missing stripe-signature header")
    if not secret:
        raise SignatureInvalid("Webhook Error: webhook secret is not configured")

    parts = parse_signature_header(header)
    try:
        timestamp = int(parts["t"][0])
    except (KeyError, ValueError):
        raise SignatureInvalid("Webhook Error: Unable to extract timestamp and signatures from header")
    if not parts.get("v1"):
        raise SignatureInvalid("Webhook Error: No signatures found with expected scheme")
    if abs(clock() - timestamp) > tolerance:
        raise ReplaySuspected()

    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError:
        raise SignatureInvalid("Webhook Error: Invalid payload encoding")

    try:
        stripe_client.verify_webhook_signature(text, header, secret=secret)
    except stripe.SignatureVerificationError:
        raise SignatureInvalid("Webhook Error: No signatures found matching the expected signature for payload")
    return text
