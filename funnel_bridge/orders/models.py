"""
Valeur 'Order' construite une seule fois à partir d'une commande tarifée et des
identifiants Stripe, puis remise telle quelle au repository (aucune mutation en place).

Invariant: somme(items) + somme(frais) + livraison == montant capturé, au centime.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from funnel_bridge.money import split_proportionally
from funnel_bridge.pricing.models import FeeLine, LineItem, PricedOrder, ShippingLine

CHARGE_CHECKOUT = "checkout"
CHARGE_UPSELL = "upsell"


@dataclass(frozen=True)
class Order:
    funnel_id: str
    funnel_name: str
    mode: str
    currency: str
    email: str
    customer_name: str
    user_id: Optional[str]
    shipping_address: Dict[str, Any]
    billing_address: Dict[str, Any]
    lines: Tuple[LineItem, ...]
    fees: Tuple[FeeLine, ...]
    shipping: Optional[ShippingLine]
    payment_intent_id: str
    stripe_customer_id: str
    charges: Tuple[Dict[str, Any], ...] = ()
    points_redeemed: int = 0
    status: str = "paid"
    transaction_id: str = ""
    analytics: Dict[str, Any] = field(default_factory=dict)
    order_id: Optional[Any] = None

    @property
    def items_total_cents(self) -> int:
        return sum(li.total_cents for li in self.lines)

    @property
    def fees_total_cents(self) -> int:
        return sum(f.total_cents for f in self.fees)

    @property
    def shipping_total_cents(self) -> int:
        return self.shipping.total_cents if self.shipping else 0

    @property
    def total_cents(self) -> int:
        return self.items_total_cents + self.fees_total_cents + self.shipping_total_cents

    @property
    def checkout_charge_id(self) -> str:
        """Charge principale (checkout); repli d'attribution des lignes non taguées."""
        for c in self.charges:
            if c.get("kind") == CHARGE_CHECKOUT:
                return str(c.get("id") or "")
        return self.transaction_id

    @property
    def charged_total_cents(self) -> int:
        """Total capturé sur toutes les charges (checkout + upsells)."""
        return sum(int(c.get("amount_cents") or 0) for c in self.charges)

    def to_row(self) -> Dict[str, Any]:
        row = {
            "status": self.status,
            "funnel_id": self.funnel_id,
            "funnel_name": self.funnel_name,
            "mode": self.mode,
            "currency": self.currency,
            "email": self.email,
            "customer_name": self.customer_name,
            "user_id": self.user_id,
            "shipping_address": self.shipping_address,
            "billing_address": self.billing_address,
            "items": [li.to_dict() for li in self.lines],
            "fees": [f.to_dict() for f in self.fees],
            "shipping": self.shipping.to_dict() if self.shipping else None,
            "total_cents": self.total_cents,
            "payment_intent_id": self.payment_intent_id,
            "stripe_customer_id": self.stripe_customer_id,
            "charges": [dict(c) for c in self.charges],
            "points_redeemed": self.points_redeemed,
            "transaction_id": self.transaction_id,
            "analytics": self.analytics,
        }
        if self.order_id is not None:
            row["id"] = self.order_id
        return row

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Order":
        shipping = row.get("shipping")
        return cls(
            order_id=row.get("id"),
            status=str(row.get("status") or ""),
            funnel_id=str(row.get("funnel_id") or ""),
            funnel_name=str(row.get("funnel_name") or ""),
            mode=str(row.get("mode") or "test"),
            currency=str(row.get("currency") or ""),
            email=str(row.get("email") or ""),
            customer_name=str(row.get("customer_name") or ""),
            user_id=str(row["user_id"]) if row.get("user_id") else None,
            shipping_address=row.get("shipping_address") or {},
            billing_address=row.get("billing_address") or {},
            lines=tuple(LineItem.from_dict(li) for li in (row.get("items") or [])),
            fees=tuple(FeeLine.from_dict(f) for f in (row.get("fees") or [])),
            shipping=ShippingLine.from_dict(shipping) if isinstance(shipping, dict) else None,
            payment_intent_id=str(row.get("payment_intent_id") or ""),
            stripe_customer_id=str(row.get("stripe_customer_id") or ""),
            charges=tuple(dict(c) for c in (row.get("charges") or [])),
            points_redeemed=int(row.get("points_redeemed") or 0),
            transaction_id=str(row.get("transaction_id") or ""),
            analytics=row.get("analytics") or {},
        )


def allocate_points(lines: List[LineItem], points: int) -> List[LineItem]:
    """Répartit les points utilisés sur les lignes, au prorata de leur total."""
    if points <= 0 or not lines:
        return list(lines)
    shares = split_proportionally(points, [li.total_cents for li in lines])
    return [replace(li, points_allocated=share) for li, share in zip(lines, shares)]


def build_order(
    priced: PricedOrder,
    draft: Dict[str, Any],
    *,
    payment_intent_id: str,
    charge_id: str,
    stripe_customer_id: str,
    mode: str,
    currency: str,
) -> Order:
    """
    Construit la commande durable à partir du recalcul et du brouillon.
    - Chaque ligne, frais et livraison est tagué avec la charge du checkout.
    - Les points utilisés sont répartis par ligne (restitution au remboursement).
    """
    customer = draft.get("customer") or {}
    lines = [li.with_charge(charge_id) for li in priced.lines]
    lines = allocate_points(lines, priced.points_used)
    fees = tuple(f.with_charge(charge_id) for f in priced.fees)
    shipping = priced.shipping.with_charge(charge_id) if priced.shipping else None
    charges = ({
        "id": charge_id,
        "kind": CHARGE_CHECKOUT,
        "amount_cents": priced.amount_cents,
        "payment_intent_id": payment_intent_id,
    },)
    return Order(
        funnel_id=str(draft.get("funnel_id") or ""),
        funnel_name=str(draft.get("funnel_name") or ""),
        mode=mode,
        currency=currency,
        email=str(customer.get("email") or ""),
        customer_name=str(customer.get("name") or ""),
        user_id=str(customer["user_id"]) if customer.get("user_id") else None,
        shipping_address=draft.get("shipping_address") or {},
        billing_address=draft.get("billing_address") or draft.get("shipping_address") or {},
        lines=tuple(lines),
        fees=fees,
        shipping=shipping,
        payment_intent_id=payment_intent_id,
        stripe_customer_id=stripe_customer_id,
        charges=charges,
        points_redeemed=priced.points_used,
        transaction_id=charge_id,
        analytics=draft.get("analytics") or {},
    )
