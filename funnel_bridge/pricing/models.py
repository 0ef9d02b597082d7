"""
Valeurs du moteur de prix.
Tous les montants sont en centimes; les lignes sont immuables (dataclasses.replace pour dériver).
"""
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from funnel_bridge.money import format_cents, from_cents

FEE_GLOBAL_DISCOUNT = "global_discount"
FEE_POINTS_REDEMPTION = "points_redemption"
FEE_UPSELL = "upsell"
FEE_ADJUSTMENT = "adjustment"


def _normalize_coupon(code: Any) -> str:
    return str(code or "").strip().lower()


@dataclass(frozen=True)
class PricingRequest:
    """Entrées du calcul, identiques en aperçu et en commit."""
    funnel_id: str = "default"
    items: Tuple[Dict[str, Any], ...] = ()
    coupon_codes: Tuple[str, ...] = ()
    selected_rate: Dict[str, Any] = field(default_factory=dict)
    points_to_redeem: int = 0

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "PricingRequest":
        payload = payload or {}
        items = tuple(dict(it) for it in (payload.get("items") or []) if isinstance(it, dict))
        codes = tuple(c for c in (_normalize_coupon(c) for c in (payload.get("coupon_codes") or [])) if c)
        rate = payload.get("selected_rate") if isinstance(payload.get("selected_rate"), dict) else {}
        try:
            points = max(0, int(payload.get("points_to_redeem") or 0))
        except (TypeError, ValueError):
            points = 0
        return cls(
            funnel_id=str(payload.get("funnel_id") or "default"),
            items=items,
            coupon_codes=codes,
            selected_rate=dict(rate),
            points_to_redeem=points,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "funnel_id": self.funnel_id,
            "items": [dict(it) for it in self.items],
            "coupon_codes": list(self.coupon_codes),
            "selected_rate": dict(self.selected_rate),
            "points_to_redeem": self.points_to_redeem,
        }


@dataclass(frozen=True)
class LineItem:
    line_id: str
    product_id: str
    sku: str
    name: str
    quantity: int
    unit_price_cents: int
    regular_price_cents: int
    subtotal_cents: int
    total_cents: int
    excluded_from_global_discount: bool = False
    item_discount_percent: Optional[Decimal] = None
    charge_id: str = ""
    points_allocated: int = 0

    def with_charge(self, charge_id: str) -> "LineItem":
        return replace(self, charge_id=charge_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line_id": self.line_id,
            "product_id": self.product_id,
            "sku": self.sku,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "regular_price_cents": self.regular_price_cents,
            "subtotal_cents": self.subtotal_cents,
            "total_cents": self.total_cents,
            "excluded_from_global_discount": self.excluded_from_global_discount,
            "item_discount_percent": str(self.item_discount_percent) if self.item_discount_percent is not None else None,
            "charge_id": self.charge_id,
            "points_allocated": self.points_allocated,
        }

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "LineItem":
        pct = row.get("item_discount_percent")
        return cls(
            line_id=str(row.get("line_id") or ""),
            product_id=str(row.get("product_id") or ""),
            sku=str(row.get("sku") or ""),
            name=str(row.get("name") or ""),
            quantity=int(row.get("quantity") or 0),
            unit_price_cents=int(row.get("unit_price_cents") or 0),
            regular_price_cents=int(row.get("regular_price_cents") or 0),
            subtotal_cents=int(row.get("subtotal_cents") or 0),
            total_cents=int(row.get("total_cents") or 0),
            excluded_from_global_discount=bool(row.get("excluded_from_global_discount")),
            item_discount_percent=Decimal(str(pct)) if pct not in (None, "") else None,
            charge_id=str(row.get("charge_id") or ""),
            points_allocated=int(row.get("points_allocated") or 0),
        )


@dataclass(frozen=True)
class FeeLine:
    """Ligne de frais; les remises sont des montants négatifs."""
    line_id: str
    kind: str
    name: str
    total_cents: int
    charge_id: str = ""

    def with_charge(self, charge_id: str) -> "FeeLine":
        return replace(self, charge_id=charge_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line_id": self.line_id,
            "kind": self.kind,
            "name": self.name,
            "total_cents": self.total_cents,
            "charge_id": self.charge_id,
        }

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "FeeLine":
        return cls(
            line_id=str(row.get("line_id") or ""),
            kind=str(row.get("kind") or ""),
            name=str(row.get("name") or ""),
            total_cents=int(row.get("total_cents") or 0),
            charge_id=str(row.get("charge_id") or ""),
        )


@dataclass(frozen=True)
class ShippingLine:
    line_id: str
    method_title: str
    total_cents: int
    charge_id: str = ""

    def with_charge(self, charge_id: str) -> "ShippingLine":
        return replace(self, charge_id=charge_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line_id": self.line_id,
            "method_title": self.method_title,
            "total_cents": self.total_cents,
            "charge_id": self.charge_id,
        }

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "ShippingLine":
        return cls(
            line_id=str(row.get("line_id") or ""),
            method_title=str(row.get("method_title") or "Shipping"),
            total_cents=int(row.get("total_cents") or 0),
            charge_id=str(row.get("charge_id") or ""),
        )


@dataclass(frozen=True)
class PricedOrder:
    """
    Résultat du moteur de prix: lignes, frais, livraison et total autoritaire.
    amount_cents est calculé par sommation explicite des composants, jamais relu ailleurs.
    """
    request: PricingRequest
    lines: Tuple[LineItem, ...]
    fees: Tuple[FeeLine, ...]
    shipping: Optional[ShippingLine]
    global_discount_percent: Decimal
    coupon_discount_cents: int
    global_discount_cents: int
    points_discount_cents: int
    points_used: int
    products_net_cents: int
    amount_cents: int

    @property
    def subtotal_cents(self) -> int:
        return sum(li.subtotal_cents for li in self.lines)

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
    def is_empty(self) -> bool:
        return not self.lines

    def breakdown(self) -> Dict[str, Any]:
        """Réponse d'aperçu (montants décimaux + montant autoritaire en centimes)."""
        return {
            "subtotal": float(from_cents(self.subtotal_cents)),
            "items_total": float(from_cents(self.items_total_cents)),
            "discount_total": float(from_cents(self.coupon_discount_cents)),
            "global_discount": float(from_cents(self.global_discount_cents)),
            "global_discount_percent": float(self.global_discount_percent),
            "points_discount": float(from_cents(self.points_discount_cents)),
            "points_used": self.points_used,
            "fees_total": float(from_cents(self.fees_total_cents)),
            "shipping_total": float(from_cents(self.shipping_total_cents)),
            "tax_total": 0.0,
            "grand_total": float(from_cents(self.amount_cents)),
            "amount_cents": self.amount_cents,
            "lines": [
                {
                    "line_id": li.line_id,
                    "product_id": li.product_id,
                    "sku": li.sku,
                    "name": li.name,
                    "qty": li.quantity,
                    "subtotal": format_cents(li.subtotal_cents),
                    "total": format_cents(li.total_cents),
                    "excluded_from_global_discount": li.excluded_from_global_discount,
                }
                for li in self.lines
            ],
        }
