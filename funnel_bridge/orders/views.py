import logging
from typing import Any, Dict

from fastapi import APIRouter, Request

from funnel_bridge.payments import stripe_client
from . import service as orders_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/funnel", tags=["Funnel Orders"])

# module funnel_bridge.orders.views
@router.post("/stripe/webhook", include_in_schema=False)
async def stripe_webhook(request: Request) -> Dict[str, Any]:
    """
    Webhook Stripe (PaymentIntent).
    - Signature: any secret configuré, tolérance bornée (stripe_client.verify_signature)
    - payment_intent.succeeded: matérialise la commande (idempotent)
    - payment_intent.payment_failed: journalisé et acquitté
    - Une erreur 5xx laisse Stripe relivrer l'événement
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    event = stripe_client.verify_signature(payload, sig_header)
    result = orders_service.handle_event(event)
    logger.info("orders.webhook event=%s type=%s status=%s", event.get("id"), event.get("type"), result.get("status"))
    return result

@router.get("/stripe/webhook", include_in_schema=False)
def stripe_webhook_ping() -> Dict[str, Any]:
    return {"ok": True, "ping": "pong"}

@router.get("/orders/resolve")
def resolve_order(pi_id: str = "") -> Dict[str, Any]:
    """Commande créée pour une PaymentIntent (page de remerciement); 404 tant que le webhook n'est pas passé."""
    return orders_service.resolve_order_by_payment_intent(pi_id)
