"""
Backend checkout: sessions, devis livraison/taxe, paiements Stripe
et création des commandes Shopify par webhook.
"""
