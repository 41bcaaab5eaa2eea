"""
Module 'payments' (feature-first): point d'entrée public.
Réunit validation des paiements, métadonnées Stripe et client Stripe.
"""
from .metadata import OrderLineItem, OrderMetadata, MetadataError, build_intent_metadata, parse_order_metadata
from .service import create_payment_intent, validate_amount
from .stripe_client import require_stripe, verify_webhook_signature

__all__ = [
    # metadata
    "OrderLineItem",
    "OrderMetadata",
    "MetadataError",
    "build_intent_metadata",
    "parse_order_metadata",
    # service
    "create_payment_intent",
    "validate_amount",
    # stripe
    "require_stripe",
    "verify_webhook_signature",
]
