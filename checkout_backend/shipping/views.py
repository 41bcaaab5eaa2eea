import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from checkout_backend.errors import InvalidInput
from checkout_backend.shipping import service as shipping_service
from checkout_backend.shipping.models import ShippingRequest
from checkout_backend.utils.csrf import csrf_protect
from checkout_backend.utils.rate_limit import rate_limit
from checkout_backend.utils.requests import read_json_object, validation_details

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Shipping"])


def _merge_address(body: Dict[str, Any]) -> Dict[str, Any]:
    # Compat: postalCode/state/country peuvent arriver au premier niveau du corps
    address = body.get("address")
    address = dict(address) if isinstance(address, dict) else {}
    for top_level, field in (("postalCode", "postal_code"), ("state", "state"), ("country", "country")):
        if body.get(top_level) is not None and not address.get(field):
            address[field] = body[top_level]
    return address


@router.post(
    "/calculate-shipping",
    dependencies=[Depends(csrf_protect), Depends(rate_limit("api"))],
)
async def calculate_shipping(request: Request):
    """
    Devis de livraison pour le panier.
    - Entrée JSON: { "items": [ {price, quantity, weight?, product_type?, tags?, properties?} ],
                     "address": {state, postal_code, country} }
    - Réponse: { "rates": {standard, express, overnight}, "shipping": <standard> } (prix en centimes)
    - Erreurs: 400 articles absents/invalides, état ou code postal invalide
    """
    body = await read_json_object(request)
    if not isinstance(body.get("items"), list) or not body["items"]:
        raise InvalidInput("Invalid or missing items")
    try:
        payload = ShippingRequest.model_validate({"items": body["items"], "address": _merge_address(body)})
    except ValidationError as e:
        raise InvalidInput("Invalid shipping request", details=validation_details(e))
    if not payload.address.has_valid_postal_code():
        raise InvalidInput("Invalid US postal code format")

    items = [item.model_dump() for item in payload.items]
    address = payload.address.model_dump()
    rates = shipping_service.calculate_shipping(items, address)
    logger.info(
        "shipping.quote state=%s items=%s standard=%s",
        address.get("state") or "<default>", len(items), rates["standard"]["price"],
    )
    return {"rates": rates, "shipping": rates["standard"]}
