from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from funnel_bridge.money import clamp_percent


@dataclass(frozen=True)
class ProductOverride:
    product_id: str = ""
    sku: str = ""
    exclude_global_discount: bool = False
    item_discount_percent: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "ProductOverride":
        pct = row.get("item_discount_percent")
        return cls(
            product_id=str(row.get("product_id") or "").strip(),
            sku=str(row.get("sku") or "").strip(),
            exclude_global_discount=bool(row.get("exclude_global_discount")),
            item_discount_percent=clamp_percent(pct) if pct not in (None, "") else None,
        )


@dataclass(frozen=True)
class FunnelDiscountConfig:
    """Configuration de remise d'un funnel (lecture seule au checkout)."""
    funnel_id: str
    global_discount_percent: Decimal = Decimal(0)
    products: List[ProductOverride] = field(default_factory=list)

    @classmethod
    def from_dict(cls, funnel_id: str, row: Optional[Dict[str, Any]]) -> "FunnelDiscountConfig":
        row = row or {}
        products = [ProductOverride.from_dict(p) for p in (row.get("products") or []) if isinstance(p, dict)]
        return cls(
            funnel_id=funnel_id,
            global_discount_percent=clamp_percent(row.get("global_discount_percent") or 0),
            products=products,
        )

    def product_override(self, product_id: str, sku: str = "") -> Optional[ProductOverride]:
        """
        Override d'un produit: correspondance par ID d'abord, SKU ensuite.
        Une ligne dont l'ID diffère peut encore correspondre par SKU (ordre de la liste conservé).
        """
        product_id = str(product_id or "")
        for p in self.products:
            if p.product_id and p.product_id == product_id:
                return p
            if sku and p.sku and p.sku == sku:
                return p
        return None


@dataclass(frozen=True)
class FunnelMode:
    funnel_id: str
    environment: str  # staging | production | unknown
    mode: str         # test | live | off
