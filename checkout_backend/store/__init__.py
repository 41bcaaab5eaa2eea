"""
Store clé/valeur avec TTL: seul état mutable partagé du checkout.
"""
from .kv import CheckoutStore

__all__ = ["CheckoutStore"]
