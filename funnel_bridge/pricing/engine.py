"""
Moteur de prix du funnel.

Même fonction pour l'aperçu (/totals), la création de l'intention de paiement et la
matérialisation de la commande: à entrées identiques, montant identique au centime.

Étapes:
  1. Résolution des articles (ID puis SKU); introuvables ignorés.
  2. Instructions explicites de l'appelant (remise par article / exclusion) appliquées telles quelles.
  3. Sinon, override produit du funnel: exclusion + remise article sur le prix de référence.
  4. Remise globale sur la base des articles non exclus => une seule ligne de frais négative.
  5. Coupons délégués à l'hôte; la remise relue est répartie sur les totaux d'articles.
  6. Points: plafonnés au net produits, jamais sur la livraison => ligne de frais négative distincte.
  7. Total = somme articles + frais + livraison, plancher 0.
"""
from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from funnel_bridge.catalog.resolver import item_quantity, resolve_products
from funnel_bridge.exceptions import DependencyUnavailable
from funnel_bridge.funnels.models import FunnelDiscountConfig
from funnel_bridge.funnels import service as funnels_service
from funnel_bridge.money import (
    apply_percent_discount,
    clamp_percent,
    percent_of,
    split_proportionally,
    to_cents,
)
from funnel_bridge.points import service as points_service
from . import repository
from .models import (
    FEE_GLOBAL_DISCOUNT,
    FEE_POINTS_REDEMPTION,
    FeeLine,
    LineItem,
    PricedOrder,
    PricingRequest,
    ShippingLine,
)


def _explicit_percent(item: Dict[str, Any]) -> Optional[Decimal]:
    raw = item.get("item_discount_percent")
    if raw is None or raw == "":
        return None
    try:
        if Decimal(str(raw)) < 0:
            return None
    except ArithmeticError:
        return None
    return clamp_percent(raw)


def _percent_label(percent: Decimal) -> str:
    return f"{percent.normalize():f}"


def build_line(index: int, item: Dict[str, Any], product: Dict[str, Any], config: FunnelDiscountConfig) -> LineItem:
    """Ligne tarifée (étapes 2 et 3)."""
    qty = item_quantity(item)
    unit = max(0, to_cents(product.get("price")))
    regular = max(0, to_cents(product.get("regular_price"))) or unit
    product_id = str(product.get("id") or "")
    sku = str(product.get("sku") or "")

    excluded = False
    percent: Optional[Decimal] = None
    subtotal = unit * qty
    total = subtotal

    explicit_pct = _explicit_percent(item)
    explicit_exclude = bool(item.get("exclude_global_discount"))
    if explicit_pct is not None:
        # Une remise article ne se cumule jamais avec la remise globale
        percent = explicit_pct
        subtotal = regular * qty
        total = apply_percent_discount(subtotal, percent)
        excluded = True
    elif explicit_exclude:
        excluded = True
    else:
        override = config.product_override(product_id, sku)
        if override and override.exclude_global_discount:
            excluded = True
            if override.item_discount_percent is not None and override.item_discount_percent > 0:
                percent = override.item_discount_percent
                subtotal = regular * qty
                total = apply_percent_discount(subtotal, percent)

    return LineItem(
        line_id=f"li-{index}",
        product_id=product_id,
        sku=sku,
        name=str(product.get("name") or "Article"),
        quantity=qty,
        unit_price_cents=unit,
        regular_price_cents=regular,
        subtotal_cents=subtotal,
        total_cents=total,
        excluded_from_global_discount=excluded,
        item_discount_percent=percent,
    )


def _apply_coupons(request: PricingRequest, lines: List[LineItem]) -> Tuple[List[LineItem], int]:
    if not request.coupon_codes or not lines:
        return lines, 0
    try:
        discount = repository.evaluate_coupons(list(request.coupon_codes), [li.to_dict() for li in lines])
    except DependencyUnavailable:
        raise
    except Exception as e:
        raise DependencyUnavailable(f"Évaluation des coupons impossible: {e}", service="supabase")
    discount = min(discount, sum(li.total_cents for li in lines))
    if discount <= 0:
        return lines, 0
    shares = split_proportionally(discount, [li.total_cents for li in lines])
    return [
        replace(li, total_cents=li.total_cents - share)
        for li, share in zip(lines, shares)
    ], discount


def _shipping_line(rate: Dict[str, Any]) -> Optional[ShippingLine]:
    if not rate or "amount" not in rate:
        return None
    title = rate.get("serviceName") or rate.get("service_name") or rate.get("label") or "Shipping"
    return ShippingLine(line_id="ship-1", method_title=str(title), total_cents=max(0, to_cents(rate.get("amount"))))


def price_order(request: PricingRequest, config: Optional[FunnelDiscountConfig] = None) -> PricedOrder:
    """
    Calcule la commande tarifée pour une requête.
    - config: configuration du funnel (chargée si absente).
    - Aucune ligne résolue => total 0 (l'appelant doit refuser avant tout paiement).
    """
    if config is None:
        config = funnels_service.get_funnel_config(request.funnel_id)

    resolved = resolve_products(list(request.items))
    lines = [build_line(i + 1, item, product, config) for i, (item, product) in enumerate(resolved)]

    fees: List[FeeLine] = []

    global_percent = config.global_discount_percent
    base = sum(li.subtotal_cents for li in lines if not li.excluded_from_global_discount)
    global_discount = percent_of(base, global_percent) if global_percent > 0 and base > 0 else 0
    if global_discount > 0:
        fees.append(FeeLine(
            line_id="fee-global",
            kind=FEE_GLOBAL_DISCOUNT,
            name=f"Global discount ({_percent_label(global_percent)}%)",
            total_cents=-global_discount,
        ))

    lines, coupon_discount = _apply_coupons(request, lines)

    products_net = max(0, sum(li.total_cents for li in lines) - global_discount)
    points_discount = 0
    points_used = 0
    if request.points_to_redeem > 0 and products_net > 0:
        points_discount = min(points_service.points_to_money_cents(request.points_to_redeem), products_net)
        points_used = min(request.points_to_redeem, points_service.money_cents_to_points(points_discount))
        if points_discount > 0:
            fees.append(FeeLine(
                line_id="fee-points",
                kind=FEE_POINTS_REDEMPTION,
                name="Points redemption",
                total_cents=-points_discount,
            ))

    shipping = _shipping_line(request.selected_rate)
    shipping_total = shipping.total_cents if shipping else 0
    amount = max(0, sum(li.total_cents for li in lines) + sum(f.total_cents for f in fees) + shipping_total)

    return PricedOrder(
        request=request,
        lines=tuple(lines),
        fees=tuple(fees),
        shipping=shipping,
        global_discount_percent=global_percent,
        coupon_discount_cents=coupon_discount,
        global_discount_cents=global_discount,
        points_discount_cents=points_discount,
        points_used=points_used,
        products_net_cents=products_net,
        amount_cents=amount,
    )
