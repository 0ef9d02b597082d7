# funnel_bridge.config
from pathlib import Path
import json
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du bridge.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe test/live, Redis)
- Expose les paramètres métier (points, upsell, TTL des brouillons)
- Expose le registre des funnels (origines staging/production et modes Stripe)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _int_env(name: str, default: int) -> int:
    try:
        return int(_clean_env(os.getenv(name) or "") or default)
    except ValueError:
        return default

def _split_env(v: str) -> list:
    return [_clean_env(x) for x in (v or "").split(",") if _clean_env(x)]

# Supabase: le bridge écrit côté serveur uniquement (service-role)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Stripe: une paire de clés par mode
STRIPE_KEYS = {
    "test": {
        "secret": _clean_env(os.getenv("STRIPE_TEST_SECRET_KEY") or ""),
        "publishable": _clean_env(os.getenv("STRIPE_TEST_PUBLISHABLE_KEY") or ""),
    },
    "live": {
        "secret": _clean_env(os.getenv("STRIPE_LIVE_SECRET_KEY") or ""),
        "publishable": _clean_env(os.getenv("STRIPE_LIVE_PUBLISHABLE_KEY") or ""),
    },
}

# Secrets webhook: n'importe lequel est accepté (test et live partagent l'endpoint)
STRIPE_WEBHOOK_SECRETS = _split_env(os.getenv("STRIPE_WEBHOOK_SECRETS") or "") + _split_env(
    ",".join([os.getenv("STRIPE_WEBHOOK_SECRET_TEST") or "", os.getenv("STRIPE_WEBHOOK_SECRET_LIVE") or ""])
)
STRIPE_WEBHOOK_TOLERANCE = _int_env("STRIPE_WEBHOOK_TOLERANCE", 300)
STRIPE_TIMEOUT_SECONDS = _int_env("STRIPE_TIMEOUT_SECONDS", 25)

# Environnement de ce déploiement et hôte servi
FUNNEL_ENV = "production" if _clean_env(os.getenv("FUNNEL_ENV") or "").lower() == "production" else "staging"
SITE_HOST = _clean_env(os.getenv("SITE_HOST") or "").lower()

# Registre des funnels: [{"id", "origin_staging", "origin_production", "mode_staging", "mode_production"}]
try:
    FUNNELS_REGISTRY = json.loads(os.getenv("FUNNELS_REGISTRY") or "[]")
except ValueError:
    FUNNELS_REGISTRY = []
if not isinstance(FUNNELS_REGISTRY, list):
    FUNNELS_REGISTRY = []

# Redis: brouillons de commande (TTL) et rate limiting
RATE_LIMIT_REDIS_URL = _clean_env(os.getenv("RATE_LIMIT_REDIS_URL") or "redis://127.0.0.1:6379/0")
DRAFT_REDIS_URL = _clean_env(os.getenv("DRAFT_REDIS_URL") or "redis://127.0.0.1:6379/1")
DRAFT_TTL_SECONDS = _int_env("DRAFT_TTL_SECONDS", 1800)
DRAFT_CLAIM_TTL_SECONDS = _int_env("DRAFT_CLAIM_TTL_SECONDS", 120)

# Paramètres métier
POINTS_PER_DOLLAR = _int_env("POINTS_PER_DOLLAR", 10)
if POINTS_PER_DOLLAR <= 0:
    POINTS_PER_DOLLAR = 10
UPSELL_DISCOUNT_PERCENT = _int_env("UPSELL_DISCOUNT_PERCENT", 15)
STORE_CURRENCY = (_clean_env(os.getenv("STORE_CURRENCY") or "") or "USD").upper()
STATEMENT_BRAND = _clean_env(os.getenv("STATEMENT_BRAND") or "") or "Funnel"

BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:8000")
