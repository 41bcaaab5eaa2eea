# module checkout_backend.utils.requests
from typing import Any, Dict, List
from fastapi import Request
from pydantic import ValidationError

from checkout_backend.errors import InvalidInput


async def read_json_object(request: Request) -> Dict[str, Any]:
    """Corps JSON attendu sous forme d'objet; 400 sinon."""
    try:
        body = await request.json()
    except ValueError:
        raise InvalidInput("Invalid JSON body")
    if not isinstance(body, dict):
        raise InvalidInput("Invalid JSON body")
    return body


def validation_details(exc: ValidationError) -> List[Dict[str, Any]]:
    """Emplacement + message des erreurs pydantic, sans jamais renvoyer les valeurs reçues."""
    return [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
