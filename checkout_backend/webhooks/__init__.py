"""
Module 'webhooks' (feature-first): réception des événements Stripe.
"""
from .processor import WebhookOutcome, WebhookProcessor, WebhookState

__all__ = ["WebhookOutcome", "WebhookProcessor", "WebhookState"]
