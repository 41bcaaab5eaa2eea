"""
Construction des payloads Shopify à partir des métadonnées de paiement.
Les montants internes sont en centimes, Shopify attend des chaînes en dollars.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from checkout_backend.payments.metadata import OrderMetadata
from checkout_backend.utils.money import cents_to_dollars

ACH_PAYMENT_TAG = "ACH_PAYMENT"
ACH_PENDING_TAG = "ACH_PENDING"
ACH_COMPLETED_TAG = "ACH_COMPLETED"

ADDRESS_FIELDS = ("first_name", "last_name", "address1", "address2", "city", "province", "province_code", "zip", "country", "country_code", "phone", "company")


def _line_items(meta: OrderMetadata) -> List[Dict[str, Any]]:
    lines = []
    for item in meta.items:
        line: Dict[str, Any] = {"quantity": item.quantity, "price": cents_to_dollars(item.price)}
        if item.variant_id:
            line["variant_id"] = item.variant_id
        if item.title:
            line["title"] = item.title
        if item.sku:
            line["sku"] = item.sku
        lines.append(line)
    return lines


def _address(meta: OrderMetadata) -> Optional[Dict[str, str]]:
    if not meta.shipping_address:
        return None
    address = {k: v for k, v in meta.shipping_address.items() if k in ADDRESS_FIELDS and v}
    address.setdefault("first_name", meta.first_name)
    address.setdefault("last_name", meta.last_name)
    return address


def _subtotal(meta: OrderMetadata) -> int:
    return sum(item.price * item.quantity for item in meta.items)


def _note_attributes(meta: OrderMetadata, intent_id: str) -> List[Dict[str, str]]:
    attributes = [{"name": "stripe_payment_intent", "value": intent_id}]
    if meta.rep:
        attributes.append({"name": "rep", "value": meta.rep})
    if meta.store_domain:
        attributes.append({"name": "store_domain", "value": meta.store_domain})
    return attributes


def build_tags(intent_id: str, environment: str, *extra: str) -> str:
    tags = ["stripe", intent_id]
    if environment != "production":
        tags.append(f"{environment.upper()}_ORDER")
    tags.extend(t for t in extra if t)
    return ",".join(tags)


def build_order(meta: OrderMetadata, *, intent_id: str, amount: int, environment: str) -> Dict[str, Any]:
    """Commande Shopify réelle, déjà payée (production)."""
    order: Dict[str, Any] = {
        "email": meta.customer_email,
        "line_items": _line_items(meta),
        "financial_status": "paid",
        "taxes_included": False,
        "inventory_behaviour": "decrement_obeying_policy",
        "transactions": [{
            "kind": "sale",
            "status": "success",
            "amount": cents_to_dollars(amount),
            "gateway": "stripe",
            "authorization": intent_id,
        }],
        "note": f"Stripe Payment ID: {intent_id}",
        "note_attributes": _note_attributes(meta, intent_id),
        "tags": build_tags(intent_id, environment),
    }
    if meta.first_name or meta.last_name:
        order["customer"] = {"email": meta.customer_email, "first_name": meta.first_name, "last_name": meta.last_name}
    address = _address(meta)
    if address:
        order["shipping_address"] = address
        order["billing_address"] = dict(address)
    if meta.shipping_method or meta.shipping_price:
        order["shipping_lines"] = [{
            "title": meta.shipping_method or "Shipping",
            "code": meta.shipping_method or "shipping",
            "price": cents_to_dollars(meta.shipping_price),
        }]
    if meta.tax_amount:
        subtotal = _subtotal(meta)
        rate = (Decimal(meta.tax_amount) / Decimal(subtotal)).quantize(Decimal("0.0001")) if subtotal else Decimal("0")
        order["tax_lines"] = [{"title": "Sales Tax", "price": cents_to_dollars(meta.tax_amount), "rate": float(rate)}]
    return order


def build_draft_order(
    meta: OrderMetadata,
    *,
    intent_id: str,
    environment: str,
    ach_pending: bool = False,
) -> Dict[str, Any]:
    """
    Brouillon de commande (hors production, ou virement ACH en attente).
    La taxe est portée par une ligne dédiée pour que le total égale le montant Stripe.
    """
    line_items = _line_items(meta)
    if meta.tax_amount:
        line_items.append({"title": "Sales Tax", "price": cents_to_dollars(meta.tax_amount), "quantity": 1, "taxable": False})
    extra_tags = (ACH_PAYMENT_TAG, ACH_PENDING_TAG) if ach_pending else ()
    note = (
        f"ACH PAYMENT (Pending Bank Verification) - Stripe Payment ID: {intent_id}"
        if ach_pending
        else f"Stripe Payment ID: {intent_id}"
    )
    draft: Dict[str, Any] = {
        "email": meta.customer_email,
        "line_items": line_items,
        "tax_exempt": True,
        "note": note,
        "note_attributes": _note_attributes(meta, intent_id),
        "tags": build_tags(intent_id, environment, *extra_tags),
    }
    address = _address(meta)
    if address:
        draft["shipping_address"] = address
        draft["billing_address"] = dict(address)
    if meta.shipping_method or meta.shipping_price:
        draft["shipping_line"] = {
            "title": meta.shipping_method or "Shipping",
            "price": cents_to_dollars(meta.shipping_price),
            "custom": True,
        }
    return draft


def completed_ach_tags(tags: str) -> str:
    """Remplace ACH_PENDING par ACH_COMPLETED dans une liste de tags Shopify."""
    parts = [t.strip() for t in (tags or "").split(",") if t.strip()]
    parts = [ACH_COMPLETED_TAG if t == ACH_PENDING_TAG else t for t in parts]
    if ACH_COMPLETED_TAG not in parts:
        parts.append(ACH_COMPLETED_TAG)
    return ",".join(parts)
