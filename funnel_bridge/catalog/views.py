from typing import Any, Dict

from fastapi import APIRouter

from .service import prices_by_sku

router = APIRouter(prefix="/api/v1/funnel", tags=["Funnel Catalog"])

# module funnel_bridge.catalog.views
@router.get("/catalog/prices")
def get_prices(skus: str = "") -> Dict[str, Any]:
    """
    Prix catalogue (prix de référence) par SKU.
    - Paramètre: skus séparés par des virgules.
    """
    sku_list = [s.strip() for s in (skus or "").split(",") if s.strip()]
    return {"ok": True, "prices": prices_by_sku(sku_list)}
