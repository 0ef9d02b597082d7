from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from funnel_bridge.utils.rate_limit import optional_rate_limit
from .service import lookup_customer

router = APIRouter(prefix="/api/v1/funnel", tags=["Funnel Customers"])

class CustomerLookupRequest(BaseModel):
    email: str

# module funnel_bridge.customers.views
@router.post("/customer", dependencies=[Depends(optional_rate_limit(times=20, seconds=60))])
def post_customer(req: CustomerLookupRequest) -> Dict[str, Any]:
    """Pré-remplissage: compte lié, adresses par défaut et solde de points d'un email."""
    return {"ok": True, **lookup_customer(req.email)}
