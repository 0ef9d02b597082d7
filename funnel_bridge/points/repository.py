"""
Grand livre des points de fidélité (hôte Supabase).
- Solde: table 'loyalty_balances' (user_id, points)
- Mouvements: RPC 'adjust_loyalty_points' (débit/crédit atomique côté base)
"""
from typing import Any, Optional
import logging
import funnel_bridge.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

# module funnel_bridge.points.repository
def get_points_balance(user_id: str) -> int:
    """Solde de points d'un client (0 si inconnu)."""
    if not user_id:
        return 0
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("loyalty_balances")
            .select("points")
            .eq("user_id", str(user_id))
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return int((rows[0] or {}).get("points") or 0) if rows else 0
    except Exception:
        logger.exception("points.repository.get_points_balance failed user_id=%s", user_id)
        raise

def adjust_points(user_id: str, delta: int, reason: str, order_id: Optional[Any] = None) -> Any:
    """
    Applique un mouvement de points (delta négatif = débit).
    Retourne la réponse de la RPC (nouveau solde).
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .rpc(
                "adjust_loyalty_points",
                {
                    "p_user_id": str(user_id),
                    "p_delta": int(delta),
                    "p_reason": reason,
                    "p_order_id": str(order_id) if order_id is not None else None,
                },
            )
            .execute()
        )
        return res.data
    except Exception:
        logger.exception("points.repository.adjust_points failed user_id=%s delta=%s", user_id, delta)
        raise
