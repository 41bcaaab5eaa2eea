"""
Module 'orders' (feature-first): création des commandes Shopify après paiement.
"""
from .shopify_client import ShopifyAdminClient, ShopifyError

__all__ = ["ShopifyAdminClient", "ShopifyError"]
