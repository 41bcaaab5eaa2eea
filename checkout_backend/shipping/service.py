"""
Calcul des tarifs de livraison.

Algorithme:
  1) poids total = Σ quantité × poids (0.5 lb par défaut), sous-total = Σ quantité × prix
  2) zone déduite de l'état de destination (East Coast par défaut)
  3) tarif = base(zone, méthode) × max(1, ceil(poids / 2))
  4) standard offert si sous-total >= 100 $ et aucun article restreint
  5) article restreint: +5 $ sur chaque méthode et libellé "(Special Handling)"
  6) articles ONEbox: expédiés par carton de 10 (25 $ le carton entamé), hors poids
     et hors sous-total de gratuité
"""
import math
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from checkout_backend import config
from checkout_backend.utils.validators import normalize_state_code
from . import rates


def zone_for_state(state: Optional[str]) -> int:
    return rates.STATE_ZONES.get(normalize_state_code(state), rates.DEFAULT_ZONE)


def _tags(item: Dict[str, Any]) -> List[str]:
    tags = item.get("tags") or []
    if isinstance(tags, str):
        tags = tags.split(",")
    return [str(t).strip().lower() for t in tags if str(t).strip()]


def is_onebox(item: Dict[str, Any]) -> bool:
    properties = item.get("properties") or {}
    if str(properties.get("_onebox", "")).lower() == "true":
        return True
    if item.get("is_onebox") is True:
        return True
    return "onebox" in _tags(item)


def is_restricted(item: Dict[str, Any], markers: Optional[Iterable[str]] = None) -> bool:
    markers = [m.lower() for m in (markers if markers is not None else config.RESTRICTED_ITEM_MARKERS)]
    product_type = str(item.get("product_type") or "").lower()
    tags = _tags(item)
    for marker in markers:
        if marker in product_type or any(marker in tag for tag in tags):
            return True
    return False


def _quantity(item: Dict[str, Any]) -> int:
    try:
        return max(0, int(item.get("quantity") or 0))
    except (TypeError, ValueError):
        return 0


def _weight(item: Dict[str, Any]) -> Decimal:
    raw = item.get("weight")
    if raw is None or isinstance(raw, bool):
        return Decimal(rates.DEFAULT_ITEM_WEIGHT_LBS)
    try:
        weight = Decimal(str(raw))
    except InvalidOperation:
        return Decimal(rates.DEFAULT_ITEM_WEIGHT_LBS)
    return weight if weight.is_finite() else Decimal(rates.DEFAULT_ITEM_WEIGHT_LBS)


def _price(item: Dict[str, Any]) -> int:
    try:
        return int(item.get("price") or 0)
    except (TypeError, ValueError):
        return 0


def weight_multiplier(total_weight: Decimal) -> int:
    return max(1, math.ceil(total_weight / rates.WEIGHT_STEP_LBS))


def summarize_cart(items: Iterable[Dict[str, Any]], markers: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    total_weight = Decimal("0")
    subtotal = 0
    regular_units = 0
    onebox_units = 0
    restricted = False
    for item in items or []:
        quantity = _quantity(item)
        restricted = restricted or is_restricted(item, markers)
        if is_onebox(item):
            onebox_units += quantity
            continue
        regular_units += quantity
        total_weight += quantity * _weight(item)
        subtotal += quantity * _price(item)
    return {
        "total_weight": total_weight,
        "subtotal": subtotal,
        "regular_units": regular_units,
        "onebox_units": onebox_units,
        "has_restricted_item": restricted,
    }


def calculate_shipping(
    items: Iterable[Dict[str, Any]],
    address: Optional[Dict[str, Any]] = None,
    *,
    markers: Optional[Iterable[str]] = None,
) -> Dict[str, Dict[str, Any]]:
    """
    Renvoie {standard, express, overnight}, chaque devis étant
    {id, title, price (centimes), deliveryDays}.
    """
    summary = summarize_cart(items, markers)
    zone = zone_for_state((address or {}).get("state"))
    multiplier = weight_multiplier(summary["total_weight"])
    case_charge = math.ceil(summary["onebox_units"] / rates.ONEBOX_CASE_SIZE) * rates.ONEBOX_CASE_PRICE
    onebox_only = summary["onebox_units"] > 0 and summary["regular_units"] == 0
    free_eligible = (
        summary["subtotal"] >= rates.FREE_SHIPPING_THRESHOLD
        and not summary["has_restricted_item"]
        and not onebox_only
    )

    quotes: Dict[str, Dict[str, Any]] = {}
    for method, (rate_id, title, delivery_days) in rates.METHODS.items():
        regular = 0 if onebox_only else rates.BASE_RATES[zone][method] * multiplier
        if method == "standard" and free_eligible:
            regular = 0
            title = f"FREE {title}"
        price = regular + case_charge
        if summary["has_restricted_item"]:
            price += rates.SPECIAL_HANDLING_SURCHARGE
            title = f"{title} (Special Handling)"
        quotes[method] = {
            "id": rate_id,
            "title": title,
            "price": int(price),
            "deliveryDays": delivery_days,
        }
    return quotes


def get_shipping_rate(
    items: Iterable[Dict[str, Any]],
    address: Optional[Dict[str, Any]] = None,
    method: str = rates.DEFAULT_METHOD,
) -> Dict[str, Any]:
    """Devis d'une seule méthode; une méthode inconnue retombe sur standard."""
    quotes = calculate_shipping(items, address)
    return quotes.get(method) or quotes[rates.DEFAULT_METHOD]
