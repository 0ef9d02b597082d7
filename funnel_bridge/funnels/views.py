from typing import Any, Dict

from fastapi import APIRouter, Request

from . import service as funnels_service

router = APIRouter(prefix="/api/v1/funnel", tags=["Funnel Status"])

# module funnel_bridge.funnels.views
@router.get("/status")
def get_status(request: Request, funnel_id: str = "default") -> Dict[str, Any]:
    """Environnement et mode Stripe effectifs pour ce funnel et cet hôte."""
    host = request.headers.get("x-forwarded-host") or request.headers.get("host")
    return funnels_service.funnel_status(funnel_id, host)
