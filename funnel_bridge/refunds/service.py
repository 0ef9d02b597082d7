"""
Cas d'usage 'refunds': aperçu par ligne et remboursement réparti par charge.

Un remboursement = un appel Stripe par charge touchée (checkout, upsell...), puis
UN enregistrement durable agrégeant les identifiants Stripe. Si une charge échoue
après d'autres, l'enregistrement ne reflète que ce qui a réellement abouti et
PartialRefundFailure est levée pour réconciliation manuelle.
"""
from typing import Any, Dict, List, Tuple
import logging

from funnel_bridge.exceptions import (
    BridgeError,
    DependencyUnavailable,
    NotFound,
    PartialRefundFailure,
    ValidationError,
)
from funnel_bridge.money import format_cents, to_cents
from funnel_bridge.orders import repository as orders_repository
from funnel_bridge.orders.models import Order
from funnel_bridge.payments import stripe_client
from funnel_bridge.points import service as points_service
from . import allocator
from . import repository

logger = logging.getLogger(__name__)

def _load(order_id: Any) -> Tuple[Order, List[Dict[str, Any]]]:
    try:
        order = orders_repository.get_order(order_id)
    except DependencyUnavailable:
        raise
    except Exception as e:
        raise DependencyUnavailable(f"Lecture commande impossible: {e}", service="supabase")
    if order is None:
        raise NotFound("Order not found")
    try:
        refunds = repository.list_refunds(order.order_id)
    except DependencyUnavailable:
        raise
    except Exception as e:
        raise DependencyUnavailable(f"Lecture remboursements impossible: {e}", service="supabase")
    return order, refunds

def compute_refund_preview(order_id: Any) -> Dict[str, Any]:
    order, refunds = _load(order_id)
    preview = allocator.compute_preview(order, refunds)
    preview["refunds"] = [
        {
            "id": r.get("id"),
            "amount": format_cents(int(r.get("amount_cents") or 0)),
            "points": int(r.get("points") or 0),
            "reason": r.get("reason") or "",
            "stripe_refund_ids": r.get("stripe_refund_ids") or [],
            "created_at": r.get("created_at"),
        }
        for r in refunds
    ]
    return preview

def _normalize_lines(lines: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    out = []
    for li in lines or []:
        if not isinstance(li, dict) or not li.get("line_id"):
            raise ValidationError("Each refund line needs a line_id")
        if "amount_cents" in li:
            amount = int(li.get("amount_cents") or 0)
        else:
            amount = to_cents(li.get("amount"))
        try:
            points = int(li.get("points") or 0)
        except (TypeError, ValueError):
            raise ValidationError("Invalid points value")
        if amount < 0 or points < 0:
            raise ValidationError("Refund amounts must be positive")
        if amount == 0 and points == 0:
            continue
        out.append({"line_id": str(li["line_id"]), "amount_cents": amount, "points": points})
    return out

def _validate(lines: List[Dict[str, Any]], preview: Dict[str, Any]) -> None:
    rows = {r["line_id"]: r for r in preview["items"]}
    for li in lines:
        row = rows.get(li["line_id"])
        if row is None:
            raise ValidationError(f"Unknown line {li['line_id']}")
        if li["amount_cents"] > row["refundable_cents"]:
            raise ValidationError(
                f"Line {li['line_id']} exceeds refundable amount",
                refundable=row["refundable"],
            )
        if li["points"] > row["points_remaining"]:
            raise ValidationError(
                f"Line {li['line_id']} exceeds refundable points",
                points_remaining=row["points_remaining"],
            )

def _reason_text(points: int, reason: str) -> str:
    text = f"Funnel refund | Points to refund: {points}"
    if reason:
        text += f" | Reason: {reason}"
    return text

def apply_refund(order_id: Any, lines: List[Dict[str, Any]], reason: str = "") -> Dict[str, Any]:
    """
    Rembourse les lignes demandées.
    - lines: [{"line_id", "amount" | "amount_cents", "points"}]
    - Retour: {refund_id, amount, points, stripe_refunds}
    """
    order, refunds = _load(order_id)
    wanted = _normalize_lines(lines)
    if not wanted:
        raise ValidationError("Nothing to refund")
    _validate(wanted, allocator.compute_preview(order, refunds))
    if not order.user_id and any(li["points"] > 0 for li in wanted):
        raise ValidationError("Order has no linked account to return points to")

    groups = allocator.group_by_charge(wanted, order)
    succeeded: List[Dict[str, Any]] = []
    failed: List[Dict[str, Any]] = []
    kept_lines: List[Dict[str, Any]] = []
    for charge_id, group in groups.items():
        if group["amount_cents"] <= 0:
            # Points seuls: pas d'appel Stripe
            kept_lines.extend(group["lines"])
            continue
        if not charge_id:
            failed.append({"charge_id": "", "amount_cents": group["amount_cents"], "error": "Missing charge id"})
            continue
        try:
            refund = stripe_client.create_refund(
                order.mode,
                charge_id=charge_id,
                amount_cents=group["amount_cents"],
                metadata={"order_id": str(order.order_id)},
            )
        except BridgeError as e:
            logger.error("refunds.apply charge failed order_id=%s charge=%s detail=%s", order.order_id, charge_id, e.detail)
            failed.append({"charge_id": charge_id, "amount_cents": group["amount_cents"], "error": e.detail})
            continue
        succeeded.append({"charge_id": charge_id, "refund_id": refund.get("id"), "amount_cents": group["amount_cents"]})
        kept_lines.extend(group["lines"])

    if not kept_lines:
        raise DependencyUnavailable("Refund failed on every charge", service="stripe", failed=failed)

    points_map = {li["line_id"]: li["points"] for li in kept_lines if li["points"] > 0}
    points = sum(points_map.values())
    if points > 0:
        # Recrédit avant l'enregistrement: le record ne porte que les points réellement rendus
        try:
            points_service.restore_points(order.user_id, points, order.order_id)
        except BridgeError as e:
            logger.error(
                "refunds.apply points not credited order_id=%s user_id=%s points=%s detail=%s",
                order.order_id, order.user_id, points, e.detail,
            )
            failed.append({"charge_id": "", "points": points, "error": e.detail})
            kept_lines = [dict(li, points=0) for li in kept_lines if li["amount_cents"] > 0]
            points_map = {}
            points = 0
            if not kept_lines:
                raise DependencyUnavailable("Points refund failed", service="supabase", failed=failed)

    amount = sum(li["amount_cents"] for li in kept_lines)
    record = {
        "order_id": order.order_id,
        "amount_cents": amount,
        "points": points,
        "reason": _reason_text(points, reason),
        "stripe_refund_ids": [s["refund_id"] for s in succeeded],
        "lines": kept_lines,
        "points_map": points_map,
    }
    try:
        refund_id = repository.insert_refund(record)
    except Exception as e:
        logger.error(
            "refunds.apply refunded but record not saved order_id=%s stripe_refunds=%s points=%s",
            order.order_id, record["stripe_refund_ids"], points,
        )
        raise DependencyUnavailable(
            f"Refund record not saved: {e}",
            service="supabase",
            stripe_refund_ids=record["stripe_refund_ids"],
            points=points,
        )

    logger.info(
        "refunds.apply order_id=%s refund_id=%s amount=%s points=%s charges=%s",
        order.order_id, refund_id, amount, points, len(succeeded),
    )
    if failed:
        logger.error("refunds.apply partial order_id=%s failed=%s", order.order_id, failed)
        raise PartialRefundFailure(
            "Refund succeeded on some charges only",
            succeeded=succeeded,
            failed=failed,
            refund_id=refund_id,
        )
    return {
        "ok": True,
        "refund_id": refund_id,
        "amount": format_cents(amount),
        "amount_cents": amount,
        "points": points,
        "stripe_refunds": succeeded,
    }
