import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from funnel_bridge.pricing.views import TotalsRequest, FunnelItem
from funnel_bridge.utils.rate_limit import optional_rate_limit
from . import service as payments_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/funnel", tags=["Funnel Payments"])

class CheckoutRequest(TotalsRequest):
    funnel_name: Optional[str] = None
    customer: Dict[str, Any] = Field(default_factory=dict)
    shipping_address: Dict[str, Any] = Field(default_factory=dict)
    billing_address: Optional[Dict[str, Any]] = None
    analytics: Dict[str, Any] = Field(default_factory=dict)

class UpsellRequest(BaseModel):
    parent_order_id: Union[str, int]
    items: List[FunnelItem] = Field(default_factory=list)
    amount_override: Optional[float] = Field(default=None, gt=0)
    funnel_name: Optional[str] = None
    fee_label: Optional[str] = None

# module funnel_bridge.payments.views
@router.post("/checkout/intent", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_checkout_intent(req: CheckoutRequest, request: Request) -> Dict[str, Any]:
    """
    Crée la PaymentIntent du checkout funnel.
    - Le mode Stripe (test/live/off) dépend de l'hôte appelant (en-tête Host / X-Forwarded-Host).
    - Retour: {client_secret, publishable, order_draft_id, amount_cents}
    """
    host = request.headers.get("x-forwarded-host") or request.headers.get("host")
    result = payments_service.create_checkout_intent(req.to_payload(), host=host)
    return {"ok": True, **result}

@router.post("/upsell/charge", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def charge_upsell(req: UpsellRequest) -> Dict[str, Any]:
    """Débit off-session d'un upsell sur le moyen de paiement du checkout parent."""
    return payments_service.charge_upsell(
        parent_order_id=req.parent_order_id,
        items=[it.model_dump(exclude_none=True) for it in req.items],
        amount_override=req.amount_override,
        funnel_name=req.funnel_name or "",
        fee_label=req.fee_label or "",
    )
