"""
Cas d'usage 'funnels': configuration de remise et mode Stripe par funnel.

Mode Stripe:
- L'hôte courant est comparé aux origines staging/production déclarées pour le funnel.
- Un hôte qui ne correspond à aucune origine n'est PAS rabattu sur staging: on applique
  le mode par défaut du déploiement (FUNNEL_ENV) et on journalise un avertissement.
"""
from typing import Any, Dict, Optional
from urllib.parse import urlparse
import logging

from funnel_bridge import config
from funnel_bridge.exceptions import DependencyUnavailable
from .models import FunnelDiscountConfig, FunnelMode
from . import repository

logger = logging.getLogger(__name__)

VALID_MODES = ("test", "live", "off")

def get_funnel_config(funnel_id: str) -> FunnelDiscountConfig:
    """
    Configuration de remise du funnel.
    - Absente => aucune remise globale, aucun override.
    - Erreur Supabase => DependencyUnavailable (on ne devine pas une remise).
    """
    try:
        row = repository.fetch_funnel_config(funnel_id)
    except DependencyUnavailable:
        raise
    except Exception as e:
        raise DependencyUnavailable(f"Lecture funnel_configs impossible: {e}", service="supabase")
    return FunnelDiscountConfig.from_dict(funnel_id, row)

def _host(origin: Optional[str]) -> str:
    if not origin:
        return ""
    parsed = urlparse(origin if "://" in origin else f"//{origin}")
    return (parsed.hostname or "").lower()

def _registry_entry(funnel_id: str) -> Optional[Dict[str, Any]]:
    for f in config.FUNNELS_REGISTRY:
        if isinstance(f, dict) and str(f.get("id") or "") == funnel_id:
            return f
    return None

def _default_mode() -> str:
    return "live" if config.FUNNEL_ENV == "production" else "test"

def _normalize_mode(mode: Any, fallback: str) -> str:
    m = str(mode or "").lower()
    return m if m in VALID_MODES else fallback

def resolve_payment_mode(funnel_id: str, host: Optional[str] = None) -> FunnelMode:
    """
    Détermine (environment, mode) pour un funnel et un hôte.
    - Funnel absent du registre: environnement du déploiement, mode par défaut.
    - Hôte == origin_staging: mode_staging (défaut 'test').
    - Hôte == origin_production: mode_production (défaut 'live').
    - Sinon: mode du déploiement + warning (à confirmer côté produit).
    """
    current = (host or config.SITE_HOST or "").lower().split(":")[0]
    entry = _registry_entry(funnel_id or "")
    if not entry:
        return FunnelMode(funnel_id=funnel_id, environment=config.FUNNEL_ENV, mode=_default_mode())

    stg = _host(entry.get("origin_staging"))
    prod = _host(entry.get("origin_production"))
    if current and stg and current == stg:
        return FunnelMode(funnel_id, "staging", _normalize_mode(entry.get("mode_staging"), "test"))
    if current and prod and current == prod:
        return FunnelMode(funnel_id, "production", _normalize_mode(entry.get("mode_production"), "live"))

    if config.FUNNEL_ENV == "production":
        mode = _normalize_mode(entry.get("mode_production"), "live")
    else:
        mode = _normalize_mode(entry.get("mode_staging"), "test")
    logger.warning(
        "funnels.resolve_payment_mode host unmatched funnel_id=%s host=%s env=%s mode=%s",
        funnel_id, current, config.FUNNEL_ENV, mode,
    )
    return FunnelMode(funnel_id, config.FUNNEL_ENV, mode)

def funnel_status(funnel_id: str, host: Optional[str] = None) -> Dict[str, Any]:
    """Statut exposé aux pages de funnel (environnement, mode, URL de repli)."""
    fm = resolve_payment_mode(funnel_id, host)
    return {
        "ok": True,
        "funnel_id": funnel_id,
        "environment": fm.environment,
        "mode": fm.mode,
        "redirect_url": config.BASE_URL.rstrip("/") + "/",
    }
