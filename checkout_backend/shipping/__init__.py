"""
Module 'shipping' (feature-first): devis de livraison par zone, poids et manutention.
"""
from .service import calculate_shipping, get_shipping_rate, zone_for_state

__all__ = ["calculate_shipping", "get_shipping_rate", "zone_for_state"]
