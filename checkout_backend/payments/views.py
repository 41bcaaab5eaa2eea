from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from checkout_backend.payments import service as payments_service
from checkout_backend.utils.csrf import csrf_protect
from checkout_backend.utils.rate_limit import rate_limit
from checkout_backend.utils.requests import read_json_object
from checkout_backend.utils.security import get_store, require_session

router = APIRouter(prefix="/api/stripe", tags=["Payments API"])

# module checkout_backend.payments.views
@router.post(
    "/create-payment-intent",
    dependencies=[Depends(csrf_protect), Depends(rate_limit("payment", by="session"))],
)
async def create_payment_intent(request: Request, session: Dict[str, Any] = Depends(require_session)):
    """
    Crée un PaymentIntent Stripe pour la session courante.
    - Entrée JSON: { "amount": <centimes>, "currency": "usd"?, "payment_method_types": [...]?, "metadata": {...}? }
    - Sécurité: Bearer session + X-CSRF-Token + rate limit par session
    - Réponse: { clientSecret, paymentIntentId }
    - Erreurs: 400 montant/entrée invalide, 401/403 auth, 429, 502/503 Stripe
    """
    body = await read_json_object(request)
    return await payments_service.create_payment_intent(
        get_store(request), session, body, environment=request.app.state.environment,
    )
