"""
Conversion points <-> argent et mouvements de points.
Taux: POINTS_PER_DOLLAR points pour 1.00 (défaut 10).
"""
from decimal import Decimal, ROUND_CEILING
from typing import Any, Optional
import logging

from funnel_bridge import config
from funnel_bridge.exceptions import DependencyUnavailable
from funnel_bridge.money.allocator import round_half_up
from . import repository

logger = logging.getLogger(__name__)

def points_to_money_cents(points: int) -> int:
    """500 points à 10 pts/$ => 5000 centimes. Points <= 0 => 0."""
    if not points or points <= 0:
        return 0
    return round_half_up(Decimal(int(points)) * 100 / Decimal(config.POINTS_PER_DOLLAR))

def money_cents_to_points(cents: int) -> int:
    """Nombre de points nécessaires pour couvrir `cents` (arrondi supérieur)."""
    if cents <= 0:
        return 0
    return int((Decimal(int(cents)) * config.POINTS_PER_DOLLAR / 100).to_integral_value(rounding=ROUND_CEILING))

def get_balance(user_id: Optional[str]) -> int:
    if not user_id:
        return 0
    try:
        return repository.get_points_balance(user_id)
    except DependencyUnavailable:
        raise
    except Exception as e:
        raise DependencyUnavailable(f"Lecture du solde de points impossible: {e}", service="supabase")

def redeem_points(user_id: str, points: int, order_id: Any) -> None:
    """Débite les points utilisés pour une commande."""
    if points <= 0:
        return
    try:
        repository.adjust_points(user_id, -int(points), f"Points redeemed for order #{order_id}", order_id)
    except DependencyUnavailable:
        raise
    except Exception as e:
        raise DependencyUnavailable(f"Débit de points impossible: {e}", service="supabase")
    logger.info("points.redeem user_id=%s points=%s order_id=%s", user_id, points, order_id)

def restore_points(user_id: str, points: int, order_id: Any) -> None:
    """Recrédite des points suite à un remboursement."""
    if points <= 0:
        return
    try:
        repository.adjust_points(user_id, int(points), f"Redeemed points returned for order #{order_id}", order_id)
    except DependencyUnavailable:
        raise
    except Exception as e:
        raise DependencyUnavailable(f"Recrédit de points impossible: {e}", service="supabase")
    logger.info("points.restore user_id=%s points=%s order_id=%s", user_id, points, order_id)
