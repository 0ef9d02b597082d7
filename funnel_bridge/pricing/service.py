from typing import Any, Dict

from funnel_bridge.exceptions import ValidationError
from .engine import price_order
from .models import PricingRequest

def preview_totals(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Aperçu des totaux pour le funnel (résultat jeté ensuite).
    - Même moteur que la création d'intention: montant identique à entrées identiques.
    """
    request = PricingRequest.from_payload(payload)
    if not request.items:
        raise ValidationError("Items required")
    priced = price_order(request)
    return priced.breakdown()
