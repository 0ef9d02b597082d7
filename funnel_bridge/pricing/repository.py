"""
Délégation des coupons au moteur de coupons de l'hôte (RPC 'evaluate_coupons').
Le bridge ne réimplémente aucune règle de coupon: il relit la remise totale.
"""
from typing import Any, Dict, List
import logging
import funnel_bridge.infra.supabase_client as supabase_client
from funnel_bridge.money import format_cents, to_cents

logger = logging.getLogger(__name__)

# module funnel_bridge.pricing.repository
def evaluate_coupons(codes: List[str], lines: List[Dict[str, Any]]) -> int:
    """
    Remise totale (centimes) accordée par l'hôte pour ces coupons et ces lignes.
    lines: [{"product_id", "sku", "quantity", "subtotal_cents", "total_cents"}]
    """
    if not codes or not lines:
        return 0
    payload_lines = [
        {
            "product_id": li.get("product_id"),
            "sku": li.get("sku"),
            "quantity": li.get("quantity"),
            "subtotal": format_cents(int(li.get("subtotal_cents") or 0)),
            "total": format_cents(int(li.get("total_cents") or 0)),
        }
        for li in lines
    ]
    try:
        res = (
            supabase_client.get_service_supabase()
            .rpc("evaluate_coupons", {"p_codes": list(codes), "p_lines": payload_lines})
            .execute()
        )
    except Exception:
        logger.exception("pricing.repository.evaluate_coupons failed codes=%s", codes)
        raise
    data = res.data
    if isinstance(data, list):
        data = data[0] if data else 0
    if isinstance(data, dict):
        data = data.get("discount_total") or 0
    return max(0, to_cents(data))
