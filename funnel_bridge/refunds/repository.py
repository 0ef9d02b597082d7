from typing import Any, Dict, List
import logging
import funnel_bridge.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

# module funnel_bridge.refunds.repository
def list_refunds(order_id: Any) -> List[Dict[str, Any]]:
    """Remboursements déjà enregistrés pour une commande (plus ancien d'abord)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("refunds")
            .select("id, order_id, amount_cents, points, reason, stripe_refund_ids, lines, points_map, created_at")
            .eq("order_id", order_id)
            .order("created_at")
            .execute()
        )
    except Exception:
        logger.exception("refunds.repository.list_refunds failed order_id=%s", order_id)
        raise
    return res.data or []

def insert_refund(record: Dict[str, Any]) -> Any:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("refunds")
            .insert(record)
            .execute()
        )
    except Exception:
        logger.exception("refunds.repository.insert_refund failed order_id=%s", record.get("order_id"))
        raise
    if not res.data:
        raise RuntimeError("refunds insert returned no row")
    return res.data[0].get("id")
