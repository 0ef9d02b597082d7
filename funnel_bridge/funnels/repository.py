"""
Accès aux configurations de funnel (table 'funnel_configs').
"""
from typing import Any, Dict, Optional
import logging
import funnel_bridge.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

# module funnel_bridge.funnels.repository
def fetch_funnel_config(funnel_id: str) -> Optional[Dict[str, Any]]:
    """
    Ligne de configuration du funnel, ou None si absente.
    Colonnes: funnel_id, global_discount_percent, products (jsonb).
    """
    if not funnel_id:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("funnel_configs")
            .select("funnel_id, global_discount_percent, products")
            .eq("funnel_id", funnel_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("funnels.repository.fetch_funnel_config failed funnel_id=%s", funnel_id)
        raise
