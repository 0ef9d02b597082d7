from typing import Any, Dict

from funnel_bridge.exceptions import DependencyUnavailable
from funnel_bridge.points import service as points_service
from funnel_bridge.utils.validators import validate_email
from . import repository

ADDRESS_FIELDS = (
    "first_name", "last_name", "company", "address_1", "address_2",
    "city", "state", "postcode", "country", "phone", "email",
)

def _address(raw: Any) -> Dict[str, str]:
    raw = raw if isinstance(raw, dict) else {}
    return {f: str(raw.get(f) or "") for f in ADDRESS_FIELDS}

def lookup_customer(email: str) -> Dict[str, Any]:
    """
    Pré-remplissage du funnel: compte lié, adresses par défaut, solde de points.
    - Email inconnu => user_id None, adresses vides, 0 point.
    """
    email = validate_email(email)
    try:
        user = repository.get_user_by_email(email)
    except DependencyUnavailable:
        raise
    except Exception as e:
        raise DependencyUnavailable(f"Lecture client impossible: {e}", service="supabase")
    if not user:
        return {"user_id": None, "default_billing": {}, "default_shipping": {}, "points_balance": 0}
    user_id = str(user.get("id"))
    return {
        "user_id": user_id,
        "default_billing": _address(user.get("billing")),
        "default_shipping": _address(user.get("shipping")),
        "points_balance": points_service.get_balance(user_id),
    }
