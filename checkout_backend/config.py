# checkout_backend.config
from pathlib import Path
import os
from typing import Dict, List, Tuple
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du backend checkout.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise l'environnement (development/staging/production/test)
- Expose les secrets Stripe/Shopify, le store Redis, les domaines autorisés
- Fixe les limites métier (TTL session, plafond de paiement, rate limits)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _env_list(name: str, default: str = "") -> List[str]:
    return [_clean_env(x) for x in os.getenv(name, default).split(",") if _clean_env(x)]

def _env_int(name: str, default: int) -> int:
    try:
        return int(_clean_env(os.getenv(name) or "") or default)
    except ValueError:
        return default

def _env_float(name: str, default: float) -> float:
    try:
        return float(_clean_env(os.getenv(name) or "") or default)
    except ValueError:
        return default

def _env_flag(name: str, default: str = "false") -> bool:
    return _clean_env(os.getenv(name, default)).lower() in ("1", "true", "yes")


# Environnements: noms canoniques + alias rencontrés (branches git, Stripe, Shopify)
ENVIRONMENT_ALIASES: Dict[str, str] = {
    "dev": "development",
    "development": "development",
    "local": "development",
    "stage": "staging",
    "staging": "staging",
    "prod": "production",
    "production": "production",
    "main": "production",
    "test": "test",
}

def normalize_environment(name: str) -> str:
    """Ramène un alias d'environnement à son nom canonique (development par défaut)."""
    return ENVIRONMENT_ALIASES.get(_clean_env(name).lower(), "development")

ENVIRONMENT = normalize_environment(os.getenv("ENVIRONMENT") or os.getenv("APP_ENV") or "development")
IS_PRODUCTION = ENVIRONMENT == "production"

# Stripe: clé secrète et secret webhook
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")
WEBHOOK_TOLERANCE_SECONDS = _env_int("WEBHOOK_TOLERANCE_SECONDS", 300)

# Store clé/valeur (sessions, dédup webhooks, rate limit)
REDIS_URL = _clean_env(os.getenv("REDIS_URL") or "redis://127.0.0.1:6379/0")
USE_FAKE_REDIS_FOR_TESTS = os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1"
SESSION_TTL_SECONDS = _env_int("SESSION_TTL_SECONDS", 30 * 60)
EVENT_DEDUP_TTL_SECONDS = _env_int("EVENT_DEDUP_TTL_SECONDS", 7 * 24 * 60 * 60)

# Domaines vitrines autorisés à ouvrir une session checkout
ALLOWED_STOREFRONT_DOMAINS = _env_list(
    "ALLOWED_STOREFRONT_DOMAINS",
    "sqqpyb-yq.myshopify.com,rthree.io,www.rthree.io,rapidriskreduction.com,"
    "shop.rapidriskreduction.com,r3-stage.myshopify.com",
)
FRONTEND_URL = _clean_env(os.getenv("FRONTEND_URL") or "")
REQUIRE_ORIGIN = _env_flag("REQUIRE_ORIGIN")

# CORS: origines explicites (les domaines vitrines sont ajoutés par la factory)
CORS_ORIGINS = _env_list("CORS_ORIGINS", "http://localhost:9292")
COOKIE_SECURE = _env_flag("COOKIE_SECURE", "true" if IS_PRODUCTION else "false")
# Proxys dont on accepte X-Forwarded-For (IP client pour le rate limit); "*" = tous
FORWARDED_ALLOW_IPS = _env_list("FORWARDED_ALLOW_IPS", "127.0.0.1")

# Paiements
MAX_PAYMENT_AMOUNT = _env_int("MAX_PAYMENT_AMOUNT", 999999)
ALLOWED_CURRENCIES = [c.lower() for c in _env_list("ALLOWED_CURRENCIES", "usd")]
ALLOWED_PAYMENT_METHOD_TYPES = _env_list("ALLOWED_PAYMENT_METHOD_TYPES", "card,us_bank_account")

# Livraison: marqueurs de produits à manutention spéciale
RESTRICTED_ITEM_MARKERS = [m.lower() for m in _env_list("RESTRICTED_ITEM_MARKERS", "naloxone")]

# Shopify Admin API (création des commandes)
SHOPIFY_STORE_DOMAIN = _clean_env(os.getenv("SHOPIFY_STORE_DOMAIN") or "")
SHOPIFY_ADMIN_ACCESS_TOKEN = _clean_env(os.getenv("SHOPIFY_ADMIN_ACCESS_TOKEN") or "")
SHOPIFY_API_VERSION = _clean_env(os.getenv("SHOPIFY_API_VERSION") or "2024-01")

# Appels sortants: timeout borné + retries avec backoff exponentiel
UPSTREAM_TIMEOUT_SECONDS = _env_float("UPSTREAM_TIMEOUT_SECONDS", 10.0)
UPSTREAM_MAX_RETRIES = _env_int("UPSTREAM_MAX_RETRIES", 3)
UPSTREAM_RETRY_BACKOFF_SECONDS = _env_float("UPSTREAM_RETRY_BACKOFF_SECONDS", 0.5)
WEBHOOK_DISPATCH_WAIT_SECONDS = _env_float("WEBHOOK_DISPATCH_WAIT_SECONDS", 8.0)

# Rate limits: classe -> (max requêtes, fenêtre en secondes)
def _rate_limit(name: str, times: int, seconds: int) -> Tuple[int, int]:
    upper = name.upper()
    return (
        _env_int(f"RATE_LIMIT_{upper}_MAX", times),
        _env_int(f"RATE_LIMIT_{upper}_WINDOW_SECONDS", seconds),
    )

RATE_LIMITS: Dict[str, Tuple[int, int]] = {
    "session": _rate_limit("session", 5, 60),
    "payment": _rate_limit("payment", 10, 60),
    "api": _rate_limit("api", 100, 60),
}
