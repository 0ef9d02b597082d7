from typing import Any, Dict, List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from . import service as refunds_service

router = APIRouter(prefix="/api/v1/funnel", tags=["Funnel Refunds"])

class RefundLine(BaseModel):
    line_id: str
    amount: Optional[float] = Field(default=None, ge=0)
    points: int = Field(default=0, ge=0)

class RefundRequest(BaseModel):
    lines: List[RefundLine]
    reason: str = ""

# module funnel_bridge.refunds.views
@router.get("/orders/{order_id}/refund-preview")
def refund_preview(order_id: str) -> Dict[str, Any]:
    """Montants et points encore remboursables par ligne (items, frais d'upsell, livraison)."""
    return {"ok": True, **refunds_service.compute_refund_preview(order_id)}

@router.post("/orders/{order_id}/refunds")
def create_refund(order_id: str, req: RefundRequest) -> Dict[str, Any]:
    """
    Remboursement par ligne: un remboursement Stripe par charge touchée, un enregistrement agrégé.
    - 502 partial_refund si certaines charges ont échoué (détail par charge dans la réponse)
    """
    lines = [li.model_dump(exclude_none=True) for li in req.lines]
    return refunds_service.apply_refund(order_id, lines, req.reason)
