"""
Calculs de remboursement purs (pas de DB, pas de Stripe).

Aperçu par ligne, calculé charge par charge (checkout, chaque upsell):
  produits_charge = montant_charge - livraison - frais d'upsell de cette charge
  part      = produits_charge * total_ligne / total_lignes_de_la_charge
  restant   = part - déjà_remboursé
  plafond   = produits_charge - déjà_remboursé_sur_la_charge
Les restants sont ramenés sous le plafond par la méthode du plus fort reste.
La livraison et les frais d'upsell sont remboursables à hauteur de leur montant.
La remise points n'est jamais remboursable en argent: elle revient en points.
"""
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Tuple

from funnel_bridge.money import format_cents, split_proportionally
from funnel_bridge.orders.models import Order
from funnel_bridge.pricing.models import FEE_UPSELL

ROW_ITEM = "item"
ROW_SHIPPING = "shipping"
ROW_FEE = "fee"


def _refunded_by_line(refunds: List[Dict[str, Any]]) -> Tuple[Dict[str, int], Dict[str, int]]:
    money: Dict[str, int] = {}
    points: Dict[str, int] = {}
    for r in refunds or []:
        for li in r.get("lines") or []:
            lid = str(li.get("line_id") or "")
            money[lid] = money.get(lid, 0) + int(li.get("amount_cents") or 0)
        for lid, pts in (r.get("points_map") or {}).items():
            points[str(lid)] = points.get(str(lid), 0) + int(pts or 0)
    return money, points


def _charge_for(order: Order, line_id: str) -> Optional[str]:
    for li in order.lines:
        if li.line_id == line_id:
            return li.charge_id or order.checkout_charge_id
    for f in order.fees:
        if f.line_id == line_id:
            return f.charge_id or order.checkout_charge_id
    if order.shipping and order.shipping.line_id == line_id:
        return order.shipping.charge_id or order.checkout_charge_id
    return None


def group_by_charge(lines: List[Dict[str, Any]], order: Order) -> "OrderedDict[str, Dict[str, Any]]":
    """
    Regroupe les lignes demandées par charge d'origine.
    - Ligne non taguée => charge du checkout.
    - Ligne inconnue => KeyError (l'appelant valide avant).
    Retour: {charge_id: {"amount_cents", "points", "lines": [...]}} dans l'ordre de première apparition.
    """
    groups: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for li in lines:
        lid = str(li.get("line_id") or "")
        charge_id = _charge_for(order, lid)
        if charge_id is None:
            raise KeyError(lid)
        g = groups.setdefault(charge_id, {"amount_cents": 0, "points": 0, "lines": []})
        g["amount_cents"] += int(li.get("amount_cents") or 0)
        g["points"] += int(li.get("points") or 0)
        g["lines"].append(li)
    return groups


def _upsell_fees(order: Order) -> list:
    return [f for f in order.fees if f.kind == FEE_UPSELL and f.total_cents > 0]


def _tag(order: Order, charge_id: str) -> str:
    return charge_id or order.checkout_charge_id


def _charge_amount(order: Order, charge_id: str) -> int:
    """
    Montant capturé par une charge.
    Charge absente de order.charges => somme des composants tagués avec elle.
    """
    for c in order.charges:
        if str(c.get("id") or "") == charge_id:
            return int(c.get("amount_cents") or 0)
    total = sum(li.total_cents for li in order.lines if _tag(order, li.charge_id) == charge_id)
    total += sum(f.total_cents for f in order.fees if _tag(order, f.charge_id) == charge_id)
    if order.shipping and _tag(order, order.shipping.charge_id) == charge_id:
        total += order.shipping.total_cents
    return total


def products_charged_by_charge(order: Order) -> "OrderedDict[str, int]":
    """
    Part produits de chaque charge portant des lignes:
    montant capturé - livraison - frais d'upsell tagués avec cette charge.
    """
    out: "OrderedDict[str, int]" = OrderedDict()
    for li in order.lines:
        out.setdefault(_tag(order, li.charge_id), 0)
    for charge_id in out:
        other = sum(f.total_cents for f in _upsell_fees(order) if _tag(order, f.charge_id) == charge_id)
        if order.shipping and _tag(order, order.shipping.charge_id) == charge_id:
            other += max(0, order.shipping.total_cents)
        out[charge_id] = max(0, _charge_amount(order, charge_id) - other)
    return out


def products_charged_cents(order: Order) -> int:
    """Part produits de l'argent capturé, toutes charges confondues."""
    return sum(products_charged_by_charge(order).values())


def _item_rows(order: Order, charge_id: str, charged: int, refunded: Dict[str, int], points_returned: Dict[str, int]) -> List[Dict[str, Any]]:
    lines = [li for li in order.lines if _tag(order, li.charge_id) == charge_id]
    shares = split_proportionally(charged, [li.total_cents for li in lines])
    remaining = [max(0, s - refunded.get(li.line_id, 0)) for li, s in zip(lines, shares)]
    already = sum(refunded.get(li.line_id, 0) for li in lines)
    target = max(0, charged - already)
    if sum(remaining) > target:
        remaining = split_proportionally(target, remaining)
    return [
        {
            "line_id": li.line_id,
            "type": ROW_ITEM,
            "name": li.name,
            "qty": li.quantity,
            "charge_id": charge_id,
            "charged_cents": share,
            "refunded_cents": refunded.get(li.line_id, 0),
            "refundable_cents": rem,
            "refundable": format_cents(rem),
            "points_remaining": max(0, li.points_allocated - points_returned.get(li.line_id, 0)),
        }
        for li, share, rem in zip(lines, shares, remaining)
    ]


def compute_preview(order: Order, refunds: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Montants remboursables par ligne, compte tenu des remboursements précédents.
    Chaque ligne prend sa part dans la charge qui l'a payée, jamais dans une autre.
    """
    refunded, points_returned = _refunded_by_line(refunds)
    by_charge = products_charged_by_charge(order)

    rows: List[Dict[str, Any]] = []
    charges: List[Dict[str, Any]] = []
    for charge_id, charged in by_charge.items():
        item_rows = _item_rows(order, charge_id, charged, refunded, points_returned)
        rows.extend(item_rows)
        charges.append({
            "charge_id": charge_id,
            "products_charged_cents": charged,
            "products_refunded_cents": sum(r["refunded_cents"] for r in item_rows),
        })
    # ordre des lignes de la commande
    position = {li.line_id: i for i, li in enumerate(order.lines)}
    rows.sort(key=lambda r: position[r["line_id"]])

    for f in _upsell_fees(order):
        rem = max(0, f.total_cents - refunded.get(f.line_id, 0))
        rows.append({
            "line_id": f.line_id,
            "type": ROW_FEE,
            "name": f.name,
            "qty": 1,
            "charge_id": _tag(order, f.charge_id),
            "charged_cents": f.total_cents,
            "refunded_cents": refunded.get(f.line_id, 0),
            "refundable_cents": rem,
            "refundable": format_cents(rem),
            "points_remaining": 0,
        })
    if order.shipping and order.shipping.total_cents > 0:
        s = order.shipping
        rem = max(0, s.total_cents - refunded.get(s.line_id, 0))
        rows.append({
            "line_id": s.line_id,
            "type": ROW_SHIPPING,
            "name": s.method_title,
            "qty": 1,
            "charge_id": _tag(order, s.charge_id),
            "charged_cents": s.total_cents,
            "refunded_cents": refunded.get(s.line_id, 0),
            "refundable_cents": rem,
            "refundable": format_cents(rem),
            "points_remaining": 0,
        })

    return {
        "order_id": order.order_id,
        "currency": order.currency,
        "products_charged_cents": sum(c["products_charged_cents"] for c in charges),
        "products_refunded_cents": sum(c["products_refunded_cents"] for c in charges),
        "charges": charges,
        "items": rows,
    }
