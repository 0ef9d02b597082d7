"""
Cas d'usage 'payments': client Stripe, intention de checkout, upsell off-session.

Toutes les validations (mode du funnel, email, articles, montant, points) ont lieu
avant la moindre mutation externe: un rejet ne laisse ni brouillon ni PaymentIntent.
"""
from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from funnel_bridge import config
from funnel_bridge.catalog.resolver import item_quantity, resolve_products
from funnel_bridge.customers import repository as customers_repository
from funnel_bridge.drafts.store import get_draft_store
from funnel_bridge.exceptions import (
    DependencyUnavailable,
    FunnelDisabled,
    NotFound,
    PaymentDeclined,
    ValidationError,
)
from funnel_bridge.funnels import service as funnels_service
from funnel_bridge.money import apply_percent_discount, split_proportionally, to_cents
from funnel_bridge.orders import repository as orders_repository
from funnel_bridge.orders.models import CHARGE_UPSELL
from funnel_bridge.points import service as points_service
from funnel_bridge.pricing.engine import price_order
from funnel_bridge.pricing.models import FEE_UPSELL, FeeLine, LineItem, PricingRequest
from funnel_bridge.utils.validators import validate_email
from . import metadata as meta
from . import stripe_client

logger = logging.getLogger(__name__)

# module funnel_bridge.payments.service
def create_or_get_customer(email: str, name: str, user_id: Optional[str], mode: str) -> str:
    """
    Client Stripe pour (compte lié, mode).
    - Un compte lié réutilise le client déjà enregistré pour ce mode (pas de doublon).
    - Client supprimé côté Stripe => recréé et ré-enregistré.
    - Invité (sans compte) => nouveau client à chaque checkout.
    """
    if user_id:
        try:
            existing = customers_repository.get_stripe_customer_id(user_id, mode)
        except DependencyUnavailable:
            raise
        except Exception as e:
            raise DependencyUnavailable(f"Lecture stripe_customers impossible: {e}", service="supabase")
        if existing:
            customer = stripe_client.retrieve_customer(mode, existing)
            if not customer.get("deleted"):
                return existing
            logger.info("payments.customer deleted upstream user_id=%s mode=%s", user_id, mode)

    created = stripe_client.create_customer(
        mode,
        email=email,
        name=name,
        metadata={"user_id": str(user_id)} if user_id else {},
    )
    customer_id = str(created.get("id") or "")
    if user_id and customer_id:
        try:
            customers_repository.save_stripe_customer_id(user_id, mode, customer_id)
        except DependencyUnavailable:
            raise
        except Exception as e:
            raise DependencyUnavailable(f"Écriture stripe_customers impossible: {e}", service="supabase")
    return customer_id

def _checkout_mode(funnel_id: str, host: Optional[str]) -> str:
    fm = funnels_service.resolve_payment_mode(funnel_id, host)
    if fm.mode == "off":
        raise FunnelDisabled(
            "Funnel is disabled",
            redirect=config.BASE_URL.rstrip("/") + "/",
        )
    return fm.mode

def create_checkout_intent(payload: Dict[str, Any], host: Optional[str] = None) -> Dict[str, Any]:
    """
    Calcule le montant autoritaire, persiste le brouillon et ouvre la PaymentIntent.
    Retour: {client_secret, publishable, order_draft_id, amount_cents}
    """
    payload = payload or {}
    request = PricingRequest.from_payload(payload)
    if not request.items:
        raise ValidationError("Items required")

    customer = payload.get("customer") or {}
    email = validate_email(customer.get("email"))
    name = str(customer.get("name") or "").strip()
    user_id = str(customer["user_id"]) if customer.get("user_id") else None

    mode = _checkout_mode(request.funnel_id, host)
    keys = stripe_client.require_stripe(mode)

    priced = price_order(request)
    if priced.is_empty:
        raise ValidationError("No purchasable items")
    if priced.amount_cents <= 0:
        raise ValidationError("Computed amount must be positive")

    if request.points_to_redeem > 0:
        if not user_id:
            raise ValidationError("Points redemption requires a customer account")
        balance = points_service.get_balance(user_id)
        if balance < request.points_to_redeem:
            raise ValidationError("Insufficient points balance", points_balance=balance)

    customer_id = create_or_get_customer(email, name, user_id, mode)
    funnel_name = str(payload.get("funnel_name") or request.funnel_id)
    currency = config.STORE_CURRENCY

    store = get_draft_store()
    draft_id = store.create({
        "funnel_id": request.funnel_id,
        "funnel_name": funnel_name,
        "mode": mode,
        "customer": {"email": email, "name": name, "user_id": user_id},
        "shipping_address": payload.get("shipping_address") or {},
        "billing_address": payload.get("billing_address") or payload.get("shipping_address") or {},
        "pricing": request.to_dict(),
        "analytics": payload.get("analytics") or {},
        "currency": currency,
        "amount_cents": priced.amount_cents,
        "stripe_customer_id": customer_id,
    })

    try:
        intent = stripe_client.create_payment_intent(
            mode,
            amount=priced.amount_cents,
            currency=currency.lower(),
            customer=customer_id,
            setup_future_usage="off_session",
            payment_method_types=["card"],
            description=f"{config.STATEMENT_BRAND} - {funnel_name}",
            metadata=meta.make_intent_metadata(draft_id, request.funnel_id, funnel_name),
        )
    except Exception:
        # Pas d'intention => le brouillon ne sera jamais consommé
        store.delete(draft_id)
        raise

    logger.info(
        "payments.checkout_intent created pi=%s draft_id=%s amount=%s mode=%s",
        intent.get("id"), draft_id, priced.amount_cents, mode,
    )
    return {
        "client_secret": intent.get("client_secret"),
        "publishable": keys["publishable"],
        "order_draft_id": draft_id,
        "amount_cents": priced.amount_cents,
    }

def _upsell_lines(items: List[Dict[str, Any]], start_index: int, percent: int) -> List[LineItem]:
    """Lignes d'upsell: remise par unité, exclues de la remise globale."""
    lines: List[LineItem] = []
    for offset, (item, product) in enumerate(resolve_products(items)):
        qty = item_quantity(item)
        unit = max(0, to_cents(product.get("price")))
        regular = max(0, to_cents(product.get("regular_price"))) or unit
        lines.append(LineItem(
            line_id=f"li-{start_index + offset}",
            product_id=str(product.get("id") or ""),
            sku=str(product.get("sku") or ""),
            name=str(product.get("name") or "Article"),
            quantity=qty,
            unit_price_cents=unit,
            regular_price_cents=regular,
            subtotal_cents=unit * qty,
            total_cents=apply_percent_discount(unit, percent) * qty,
            excluded_from_global_discount=True,
            item_discount_percent=Decimal(percent) if percent > 0 else None,
        ))
    return lines

def _upsell_payment_method(order_pi: str, customer_id: str, mode: str) -> str:
    """Moyen de paiement du checkout parent (préféré), sinon celui par défaut du client."""
    if order_pi:
        pm = meta.extract_payment_method_id(stripe_client.retrieve_payment_intent(mode, order_pi))
        if pm:
            return pm
    customer = stripe_client.retrieve_customer(mode, customer_id)
    settings = customer.get("invoice_settings") or {}
    pm = settings.get("default_payment_method")
    if isinstance(pm, dict):
        pm = pm.get("id")
    return str(pm or "")

def charge_upsell(
    parent_order_id: Any,
    items: Optional[List[Dict[str, Any]]] = None,
    amount_override: Optional[Any] = None,
    funnel_name: str = "",
    fee_label: str = "",
) -> Dict[str, Any]:
    """
    Débit off-session d'un upsell rattaché à une commande existante.
    - items: articles remisés de UPSELL_DISCOUNT_PERCENT, tagués avec la charge d'upsell
    - amount_override: montant imposé; réparti sur les articles s'il y en a, sinon ligne de frais
    - Statut différent de 'succeeded' => PaymentDeclined (402)
    """
    items = [it for it in (items or []) if isinstance(it, dict)]
    override_cents = to_cents(amount_override) if amount_override not in (None, "") else None
    if not items and override_cents is None:
        raise ValidationError("Items or amount_override required")

    try:
        order = orders_repository.get_order(parent_order_id)
    except DependencyUnavailable:
        raise
    except Exception as e:
        raise DependencyUnavailable(f"Lecture commande impossible: {e}", service="supabase")
    if order is None:
        raise NotFound("Parent order not found")
    if not order.stripe_customer_id:
        raise ValidationError("Parent order has no Stripe customer")

    lines = _upsell_lines(items, len(order.lines) + 1, config.UPSELL_DISCOUNT_PERCENT) if items else []
    if items and not lines:
        raise ValidationError("No purchasable items")
    if override_cents is not None and lines:
        shares = split_proportionally(override_cents, [li.total_cents for li in lines])
        lines = [
            replace(li, total_cents=min(li.subtotal_cents, share))
            for li, share in zip(lines, shares)
        ]
        amount = sum(li.total_cents for li in lines)
    elif override_cents is not None:
        amount = override_cents
    else:
        amount = sum(li.total_cents for li in lines)
    if amount <= 0:
        raise ValidationError("Computed amount must be positive")

    mode = order.mode
    payment_method = _upsell_payment_method(order.payment_intent_id, order.stripe_customer_id, mode)
    if not payment_method:
        raise ValidationError("No saved payment method for this customer")

    name = funnel_name or order.funnel_name
    intent = stripe_client.create_payment_intent(
        mode,
        amount=amount,
        currency=(order.currency or config.STORE_CURRENCY).lower(),
        customer=order.stripe_customer_id,
        payment_method=payment_method,
        off_session=True,
        confirm=True,
        description=f"{config.STATEMENT_BRAND} - {name} - Order #{order.order_id} (upsell)",
        metadata=meta.make_intent_metadata("", order.funnel_id, name, {"parent_order_id": order.order_id, "upsell": "1"}),
    )
    if intent.get("status") != "succeeded":
        logger.warning("payments.upsell not succeeded order_id=%s pi=%s status=%s", order.order_id, intent.get("id"), intent.get("status"))
        raise PaymentDeclined("Upsell payment failed", status=intent.get("status"))

    charge_id = meta.extract_charge_id(intent)
    if not charge_id:
        refreshed = stripe_client.retrieve_payment_intent(mode, str(intent.get("id") or ""), expand=["latest_charge"])
        charge_id = meta.extract_charge_id(refreshed)
    if not charge_id:
        # Lignes non taguées => remboursées sur la charge du checkout: on n'écrit rien
        logger.error("payments.upsell charge id missing order_id=%s pi=%s", order.order_id, intent.get("id"))
        raise DependencyUnavailable("Upsell charged but charge id unavailable", service="stripe", payment_intent_id=intent.get("id"))
    new_lines = [li.with_charge(charge_id) for li in lines]
    new_fees = []
    if not new_lines:
        new_fees.append(FeeLine(
            line_id=f"fee-upsell-{len(order.charges) + 1}",
            kind=FEE_UPSELL,
            name=fee_label or "Upsell",
            total_cents=amount,
            charge_id=charge_id,
        ))
    charges = [dict(c) for c in order.charges] + [{
        "id": charge_id,
        "kind": CHARGE_UPSELL,
        "amount_cents": amount,
        "payment_intent_id": intent.get("id"),
    }]
    all_lines = list(order.lines) + new_lines
    all_fees = list(order.fees) + new_fees
    shipping_total = order.shipping.total_cents if order.shipping else 0
    try:
        orders_repository.update_order(order.order_id, {
            "items": [li.to_dict() for li in all_lines],
            "fees": [f.to_dict() for f in all_fees],
            "charges": charges,
            "total_cents": sum(li.total_cents for li in all_lines) + sum(f.total_cents for f in all_fees) + shipping_total,
        })
    except Exception as e:
        logger.error("payments.upsell charged but order not updated order_id=%s charge=%s", order.order_id, charge_id)
        raise DependencyUnavailable(f"Upsell charged but order update failed: {e}", service="supabase", charge_id=charge_id)

    logger.info("payments.upsell charged order_id=%s charge=%s amount=%s", order.order_id, charge_id, amount)
    return {
        "ok": True,
        "order_id": order.order_id,
        "payment_intent_id": intent.get("id"),
        "charge_id": charge_id,
        "amount_cents": amount,
    }
