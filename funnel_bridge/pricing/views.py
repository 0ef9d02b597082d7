from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter
from pydantic import BaseModel, Field

from .service import preview_totals

router = APIRouter(prefix="/api/v1/funnel", tags=["Funnel Pricing"])

class FunnelItem(BaseModel):
    product_id: Optional[Union[str, int]] = None
    variation_id: Optional[Union[str, int]] = None
    sku: Optional[str] = None
    qty: int = Field(default=1, ge=1)
    exclude_global_discount: Optional[bool] = None
    item_discount_percent: Optional[float] = Field(default=None, ge=0, le=100)

class TotalsRequest(BaseModel):
    funnel_id: str = "default"
    items: List[FunnelItem] = Field(default_factory=list)
    coupon_codes: List[str] = Field(default_factory=list)
    selected_rate: Optional[Dict[str, Any]] = None
    points_to_redeem: int = Field(default=0, ge=0)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)

# module funnel_bridge.pricing.views
@router.post("/totals")
def post_totals(req: TotalsRequest) -> Dict[str, Any]:
    """
    Aperçu des totaux (sous-total, remises, points, livraison, total).
    - Même calcul que la création d'intention: 'amount_cents' est le montant qui sera débité.
    """
    return {"ok": True, **preview_totals(req.to_payload())}
