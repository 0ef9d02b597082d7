"""
Accès au catalogue hôte (table 'products').
Lectures tolérantes: en cas d'erreur on retourne [] (un aperçu dégradé vaut mieux qu'un échec).
"""
from typing import Dict, Any, Iterable, List
import logging
import funnel_bridge.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = "id, sku, name, price, regular_price"

# module funnel_bridge.catalog.repository
def fetch_products_by_ids(ids: List[str]) -> List[dict]:
    """
    Récupère les produits par leurs IDs.
    - Retourne [] si ids vide ou en cas d'erreur.
    """
    if not ids:
        return []
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("products")
            .select(PRODUCT_COLUMNS)
            .in_("id", [str(i) for i in ids])
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("catalog.repository.fetch_products_by_ids failed ids=%s", ids)
        return []

def fetch_products_by_skus(skus: List[str]) -> List[dict]:
    """Récupère les produits par SKU (repli quand l'ID est absent ou inconnu)."""
    if not skus:
        return []
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("products")
            .select(PRODUCT_COLUMNS)
            .in_("sku", [str(s) for s in skus])
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("catalog.repository.fetch_products_by_skus failed skus=%s", skus)
        return []

def get_products_map(ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Retourne un dict {id: produit}."""
    products = fetch_products_by_ids(list(ids))
    return {str(p.get("id")): p for p in products}

def get_products_by_sku_map(skus: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Retourne un dict {sku: produit}."""
    products = fetch_products_by_skus(list(skus))
    return {str(p.get("sku")): p for p in products if p.get("sku")}
