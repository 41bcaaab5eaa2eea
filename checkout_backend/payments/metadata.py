"""
Métadonnées Stripe: frontière de sérialisation.

- Sortant (création du paiement): nettoyage anti-script, emails validés,
  sous-objets encodés en JSON, limites Stripe (50 clés, 40/500 caractères)
- Entrant (webhook): conversion du sac de chaînes plates en OrderMetadata typé
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from checkout_backend.errors import InvalidInput
from checkout_backend.utils.money import dollars_to_cents
from checkout_backend.utils.validators import is_valid_email, is_valid_rep_code, sanitize_text

logger = logging.getLogger(__name__)

MAX_METADATA_KEYS = 50
MAX_METADATA_KEY_LENGTH = 40
MAX_METADATA_VALUE_LENGTH = 500
METADATA_KEY_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")

# Posées par le serveur, jamais acceptées du client
SERVER_KEYS = ("session_ref", "cart_token", "store_domain", "environment", "created_at")
REQUIRED_ORDER_FIELDS = ("customer_email", "items")


class MetadataError(ValueError):
    def __init__(self, missing: List[str]):
        super().__init__(f"missing or invalid metadata: {', '.join(missing)}")
        self.missing = missing


def _sanitize_structure(value: Any) -> Any:
    if isinstance(value, str):
        return sanitize_text(value)
    if isinstance(value, dict):
        return {str(k): _sanitize_structure(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_sanitize_structure(v) for v in value]
    return value


def _to_metadata_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (dict, list)):
        return json.dumps(_sanitize_structure(value), separators=(",", ":"))
    return sanitize_text(str(value))


def sanitize_client_metadata(metadata: Any) -> Dict[str, str]:
    """
    Nettoie les métadonnées fournies par le client.
    - Clés invalides ou trop nombreuses, valeurs trop longues: InvalidInput
    - Emails invalides: champ retiré (la requête reste acceptée)
    - Clés réservées au serveur: ignorées
    """
    if metadata is None:
        return {}
    if not isinstance(metadata, dict):
        raise InvalidInput("Invalid metadata")
    if len(metadata) > MAX_METADATA_KEYS:
        raise InvalidInput("Too many metadata keys")

    cleaned: Dict[str, str] = {}
    for key, raw in metadata.items():
        if not isinstance(key, str) or not key or len(key) > MAX_METADATA_KEY_LENGTH or not METADATA_KEY_RE.match(key):
            raise InvalidInput("Invalid metadata key")
        if key in SERVER_KEYS:
            continue
        value = _to_metadata_value(raw)
        if value is None or value == "":
            continue
        if "email" in key.lower():
            if not is_valid_email(value):
                logger.info("payments.metadata dropped invalid email field=%s", key)
                continue
            value = value.strip().lower()
        if key == "rep" and not is_valid_rep_code(value):
            logger.info("payments.metadata dropped invalid rep code")
            continue
        if len(value) > MAX_METADATA_VALUE_LENGTH:
            raise InvalidInput("Metadata value too long", details={"field": key})
        cleaned[key] = value
    return cleaned


def build_intent_metadata(
    client_metadata: Any,
    *,
    session: Dict[str, Any],
    session_reference: str,
    environment: str,
    created_at: int,
) -> Dict[str, str]:
    """
    Métadonnées finales du PaymentIntent.
    Le code rep de la session (capturé à l'ouverture) l'emporte sur celui du client.
    """
    metadata = sanitize_client_metadata(client_metadata)
    if session.get("rep"):
        metadata["rep"] = session["rep"]
    metadata["session_ref"] = session_reference
    metadata["cart_token"] = str(session.get("cartToken") or "")[:MAX_METADATA_VALUE_LENGTH]
    if session.get("originDomain"):
        metadata["store_domain"] = session["originDomain"]
    metadata["environment"] = environment
    metadata["created_at"] = str(created_at)
    if len(metadata) > MAX_METADATA_KEYS:
        raise InvalidInput("Too many metadata keys")
    return metadata


@dataclass
class OrderLineItem:
    variant_id: Optional[int]
    quantity: int
    price: int
    title: str = ""
    sku: str = ""


@dataclass
class OrderMetadata:
    customer_email: str
    items: List[OrderLineItem]
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    shipping_address: Dict[str, str] = field(default_factory=dict)
    shipping_method: str = ""
    shipping_price: int = 0
    tax_amount: int = 0
    rep: Optional[str] = None
    environment: str = ""
    store_domain: str = ""
    payment_method: str = "card"


def _json_value(metadata: Dict[str, Any], key: str) -> Any:
    raw = metadata.get(key)
    if raw in (None, ""):
        return None
    if isinstance(raw, (dict, list)):
        return raw
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("payments.metadata unparsable JSON field=%s", key)
        return None


def _cents(value: Any) -> int:
    """Montant en centimes; une chaîne décimale ("12.50") est lue en dollars."""
    if value in (None, ""):
        return 0
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        if "." in text:
            return dollars_to_cents(text)
        return int(text)
    except ValueError:
        logger.warning("payments.metadata invalid amount value=%r", text[:32])
        return 0


def _line_item(raw: Any) -> Optional[OrderLineItem]:
    if not isinstance(raw, dict):
        return None
    try:
        quantity = int(raw.get("quantity") or 0)
    except (TypeError, ValueError):
        return None
    if quantity <= 0:
        return None
    variant = raw.get("variant_id") or raw.get("id")
    try:
        variant_id = int(variant) if variant not in (None, "") else None
    except (TypeError, ValueError):
        variant_id = None
    return OrderLineItem(
        variant_id=variant_id,
        quantity=quantity,
        price=_cents(raw.get("price")),
        title=str(raw.get("title") or ""),
        sku=str(raw.get("sku") or ""),
    )


def parse_order_metadata(metadata: Dict[str, Any]) -> OrderMetadata:
    """
    Convertit les métadonnées plates d'un PaymentIntent en OrderMetadata.
    Lève MetadataError si l'identité client ou les articles manquent.
    """
    if not metadata:
        metadata = {}
    if not isinstance(metadata, dict):
        raise MetadataError(["metadata"])
    missing: List[str] = []

    email = str(metadata.get("customer_email") or metadata.get("email") or "").strip()
    if not is_valid_email(email):
        missing.append("customer_email")

    raw_items = _json_value(metadata, "items")
    items = [li for li in (_line_item(x) for x in (raw_items or [])) if li] if isinstance(raw_items, list) else []
    if not items:
        missing.append("items")
    if missing:
        raise MetadataError(missing)

    address = _json_value(metadata, "shipping_address")
    address = {str(k): str(v) for k, v in address.items() if v is not None} if isinstance(address, dict) else {}

    rep = metadata.get("rep") or None
    return OrderMetadata(
        customer_email=email.lower(),
        items=items,
        first_name=str(metadata.get("customer_first_name") or address.get("first_name") or ""),
        last_name=str(metadata.get("customer_last_name") or address.get("last_name") or ""),
        phone=str(metadata.get("customer_phone") or address.get("phone") or ""),
        shipping_address=address,
        shipping_method=str(metadata.get("shipping_method") or ""),
        shipping_price=_cents(metadata.get("shipping_price")),
        tax_amount=_cents(metadata.get("tax_amount")),
        rep=rep if rep and is_valid_rep_code(rep) else None,
        environment=str(metadata.get("environment") or ""),
        store_domain=str(metadata.get("store_domain") or ""),
        payment_method=str(metadata.get("payment_method") or "card"),
    )
