import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from checkout_backend.errors import SignatureInvalid
from checkout_backend.webhooks.processor import WebhookProcessor
from checkout_backend.webhooks.signature import SIGNATURE_HEADER

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Webhooks"])


# module checkout_backend.webhooks.views
@router.post("/webhook/stripe", include_in_schema=False)
@router.post("/api/stripe/webhook", include_in_schema=False)
async def webhook_stripe(request: Request):
    """
    Webhook Stripe (PaymentIntent / Charge).
    - Signature: Stripe-Signature + STRIPE_WEBHOOK_SECRET, fraîcheur <= 5 min
    - Réponses: 400 texte brut si signature/format invalide, sinon toujours {"received": true}
    """
    processor: WebhookProcessor = request.app.state.webhook_processor
    payload = await request.body()
    try:
        outcome = await processor.process(payload, request.headers.get(SIGNATURE_HEADER))
    except SignatureInvalid as e:
        return PlainTextResponse(str(e.detail), status_code=400)
    logger.info(
        "webhooks.acknowledged event=%s type=%s action=%s",
        outcome.event_id, outcome.event_type, outcome.action,
    )
    return JSONResponse({"received": True})
