"""
Module 'sessions' (feature-first): sessions checkout liées à un panier Shopify.
"""
from .service import create_session, validate_session, require_csrf, destroy_session

__all__ = ["create_session", "validate_session", "require_csrf", "destroy_session"]
