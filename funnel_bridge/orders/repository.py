"""
Accès aux commandes hôte (table 'orders').
Les écritures ne retournent jamais None en silence: erreur => log + exception.
"""
from typing import Any, Dict, Optional
import logging
import funnel_bridge.infra.supabase_client as supabase_client
from .models import Order

logger = logging.getLogger(__name__)

# module funnel_bridge.orders.repository
def insert_order(order: Order) -> Any:
    """Insère la commande et retourne son identifiant."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .insert(order.to_row())
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.insert_order failed pi=%s", order.payment_intent_id)
        raise
    if not res.data:
        raise RuntimeError("orders insert returned no row")
    return res.data[0].get("id")

def get_order(order_id: Any) -> Optional[Order]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select("*")
            .eq("id", order_id)
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.get_order failed order_id=%s", order_id)
        raise
    rows = res.data or []
    return Order.from_row(rows[0]) if rows else None

def find_order_id_by_payment_intent(pi_id: str) -> Optional[Any]:
    """Commande matérialisée pour une PaymentIntent (relivraison, /orders/resolve)."""
    if not pi_id:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select("id")
            .eq("payment_intent_id", pi_id)
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.find_order_id_by_payment_intent failed pi=%s", pi_id)
        raise
    rows = res.data or []
    return rows[0].get("id") if rows else None

def update_order(order_id: Any, fields: Dict[str, Any]) -> None:
    try:
        (
            supabase_client.get_service_supabase()
            .table("orders")
            .update(fields)
            .eq("id", order_id)
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.update_order failed order_id=%s", order_id)
        raise
