from typing import Dict, List

from funnel_bridge.money import to_cents, from_cents
from . import repository

def prices_by_sku(skus: List[str]) -> Dict[str, float]:
    """
    Prix de référence (MSRP) par SKU pour l'affichage côté funnel.
    - SKUs inconnus absents du résultat.
    """
    products = repository.get_products_by_sku_map([s.strip() for s in skus if s and s.strip()])
    out: Dict[str, float] = {}
    for sku, product in products.items():
        regular = product.get("regular_price") or product.get("price")
        out[sku] = float(from_cents(to_cents(regular)))
    return out
