import logging

from fastapi import APIRouter, Depends, Request

from checkout_backend.tax import service as tax_service
from checkout_backend.utils.csrf import csrf_protect
from checkout_backend.utils.rate_limit import rate_limit
from checkout_backend.utils.requests import read_json_object

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Tax"])


@router.post("/calculate-tax", dependencies=[Depends(csrf_protect), Depends(rate_limit("api"))])
async def calculate_tax(request: Request):
    """
    Devis de taxe: { "subtotal": <dollars>, "shipping": <dollars>?, "state": "CA" }.
    Erreurs: 400 sous-total non numérique ou code état mal formé.
    """
    body = await read_json_object(request)
    quote = tax_service.calculate_tax(body.get("subtotal"), body.get("shipping", 0), body.get("state"))
    logger.info("tax.quote state=%s total=%s", body.get("state") or "<none>", quote["totalTax"])
    return quote
