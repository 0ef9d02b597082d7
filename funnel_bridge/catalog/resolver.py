"""
Résolution des articles entrants vers des produits du catalogue.

Forme attendue d'un article:
  { product_id?: str|int, variation_id?: str|int, sku?: str, qty?: int, ... }
"""
from typing import Any, Dict, List, Tuple

from . import repository


def _item_key(item: Dict[str, Any], name: str) -> str:
    v = item.get(name)
    if v is None or v == 0 or v == "0":
        return ""
    return str(v).strip()


def item_quantity(item: Dict[str, Any]) -> int:
    try:
        return max(1, int(item.get("qty") or item.get("quantity") or 1))
    except (TypeError, ValueError):
        return 1


def resolve_products(items: List[Dict[str, Any]]) -> List[Tuple[Dict[str, Any], Dict[str, Any]]]:
    """
    Associe chaque article à son produit, dans l'ordre d'entrée.
    - variation_id prioritaire, puis product_id, puis SKU.
    - Articles introuvables ignorés silencieusement (payload client périmé).
    """
    items = [it for it in (items or []) if isinstance(it, dict)]
    ids = set()
    skus = set()
    for it in items:
        for key in ("variation_id", "product_id"):
            if _item_key(it, key):
                ids.add(_item_key(it, key))
        if _item_key(it, "sku"):
            skus.add(_item_key(it, "sku"))

    by_id = repository.get_products_map(sorted(ids)) if ids else {}
    by_sku = repository.get_products_by_sku_map(sorted(skus)) if skus else {}

    resolved = []
    for it in items:
        product = (
            by_id.get(_item_key(it, "variation_id"))
            or by_id.get(_item_key(it, "product_id"))
            or by_sku.get(_item_key(it, "sku"))
        )
        if product:
            resolved.append((it, product))
    return resolved
