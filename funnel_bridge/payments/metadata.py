"""
Métadonnées Stripe du funnel (draft id, funnel) et lecture des identifiants de charge.
"""
from typing import Any, Dict, Optional

# module funnel_bridge.payments.metadata
def make_intent_metadata(draft_id: str, funnel_id: str, funnel_name: str = "", extra: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
    """Stripe n'accepte que des chaînes en metadata."""
    meta = {
        "order_draft_id": draft_id or "",
        "funnel_id": funnel_id or "",
        "funnel_name": funnel_name or "",
    }
    for k, v in (extra or {}).items():
        if v is not None and v != "":
            meta[str(k)] = str(v)
    return meta

def extract_draft_id(intent: Dict[str, Any]) -> str:
    meta = (intent or {}).get("metadata") or {}
    return str(meta.get("order_draft_id") or "")

def extract_charge_id(intent: Dict[str, Any]) -> str:
    """
    Identifiant de la charge capturée.
    - latest_charge (id ou objet développé), sinon charges.data[0].id (anciennes API)
    """
    latest = (intent or {}).get("latest_charge")
    if isinstance(latest, dict):
        latest = latest.get("id")
    if latest:
        return str(latest)
    charges = ((intent or {}).get("charges") or {}).get("data") or []
    if charges and isinstance(charges[0], dict):
        return str(charges[0].get("id") or "")
    return ""

def extract_payment_method_id(intent: Dict[str, Any]) -> str:
    pm = (intent or {}).get("payment_method")
    if isinstance(pm, dict):
        pm = pm.get("id")
    return str(pm or "")

def extract_customer_id(intent: Dict[str, Any]) -> str:
    cus = (intent or {}).get("customer")
    if isinstance(cus, dict):
        cus = cus.get("id")
    return str(cus or "")
