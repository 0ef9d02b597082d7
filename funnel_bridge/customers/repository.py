"""
Accès aux clients de l'hôte et au mapping client Stripe par mode.
- 'users' (id, email, billing, shipping)
- 'stripe_customers' (user_id, mode, customer_id), unique (user_id, mode)
"""
from typing import Any, Dict, Optional
import logging
import funnel_bridge.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

# module funnel_bridge.customers.repository
def get_user_by_email(email: str) -> Optional[Dict[str, Any]]:
    if not email:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("users")
            .select("id, email, billing, shipping")
            .eq("email", email.strip().lower())
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("customers.repository.get_user_by_email failed email=%s", email)
        raise

def get_stripe_customer_id(user_id: str, mode: str) -> Optional[str]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("stripe_customers")
            .select("customer_id")
            .eq("user_id", str(user_id))
            .eq("mode", mode)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return (rows[0] or {}).get("customer_id") if rows else None
    except Exception:
        logger.exception("customers.repository.get_stripe_customer_id failed user_id=%s mode=%s", user_id, mode)
        raise

def save_stripe_customer_id(user_id: str, mode: str, customer_id: str) -> None:
    try:
        (
            supabase_client.get_service_supabase()
            .table("stripe_customers")
            .upsert({"user_id": str(user_id), "mode": mode, "customer_id": customer_id}, on_conflict="user_id,mode")
            .execute()
        )
    except Exception:
        logger.exception("customers.repository.save_stripe_customer_id failed user_id=%s mode=%s", user_id, mode)
        raise
