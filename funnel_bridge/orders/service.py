"""
Order Materializer: transforme un paiement réussi + un brouillon en UNE commande durable.

États par brouillon:
  PENDING (brouillon présent) -> MATERIALIZING (marqueur posé) -> COMMITTED (commande créée, brouillon supprimé)

Relivraisons:
- brouillon absent => déjà traité (ou inconnu): réponse idempotente avec la commande existante
- marqueur déjà posé => une autre livraison matérialise: réponse idempotente
- commande déjà présente pour la PaymentIntent (crash entre sauvegarde et suppression) => on supprime le brouillon
Le brouillon n'est supprimé qu'après la sauvegarde de la commande.
"""
from dataclasses import replace
from typing import Any, Dict, Optional
import logging

from funnel_bridge import config
from funnel_bridge.drafts.store import get_draft_store
from funnel_bridge.exceptions import BridgeError, DependencyUnavailable, NotFound, ValidationError
from funnel_bridge.payments import metadata as meta
from funnel_bridge.payments import stripe_client
from funnel_bridge.points import service as points_service
from funnel_bridge.pricing.engine import price_order
from funnel_bridge.pricing.models import FEE_ADJUSTMENT, FeeLine, PricingRequest
from . import repository
from .models import Order, build_order

logger = logging.getLogger(__name__)

# module funnel_bridge.orders.service
def _existing_order_id(pi_id: str) -> Optional[Any]:
    try:
        return repository.find_order_id_by_payment_intent(pi_id)
    except DependencyUnavailable:
        raise
    except Exception as e:
        raise DependencyUnavailable(f"Lecture commandes impossible: {e}", service="supabase")

def _captured_cents(intent: Dict[str, Any]) -> int:
    return int(intent.get("amount_received") or intent.get("amount") or 0)

def _relabel(order: Order, order_id: Any) -> None:
    """Libellé Stripe 'Marque - funnel - Order #N' (best-effort, n'échoue jamais la commande)."""
    desc = f"{config.STATEMENT_BRAND} - {order.funnel_name or order.funnel_id} - Order #{order_id}"
    try:
        stripe_client.update_payment_intent(order.mode, order.payment_intent_id, description=desc)
        if order.transaction_id:
            stripe_client.update_charge(order.mode, order.transaction_id, description=desc)
    except BridgeError as e:
        logger.warning("orders.relabel failed order_id=%s detail=%s", order_id, e.detail)

def _materialize(intent: Dict[str, Any], draft: Dict[str, Any]) -> Any:
    pi_id = str(intent.get("id") or "")
    mode = str(draft.get("mode") or ("live" if intent.get("livemode") else "test"))

    # Recalcul: jamais le montant mis en cache à la création de l'intention
    request = PricingRequest.from_payload(draft.get("pricing") or {})
    priced = price_order(request)
    captured = _captured_cents(intent)
    if priced.amount_cents != captured:
        logger.error(
            "orders.materialize amount mismatch pi=%s computed=%s captured=%s",
            pi_id, priced.amount_cents, captured,
        )

    charge_id = meta.extract_charge_id(intent)
    if not charge_id:
        charge_id = meta.extract_charge_id(stripe_client.retrieve_payment_intent(mode, pi_id))

    order = build_order(
        priced,
        draft,
        payment_intent_id=pi_id,
        charge_id=charge_id,
        stripe_customer_id=meta.extract_customer_id(intent) or str(draft.get("stripe_customer_id") or ""),
        mode=mode,
        currency=str(intent.get("currency") or draft.get("currency") or config.STORE_CURRENCY).upper(),
    )
    if captured and order.charges:
        order = replace(order, charges=({**order.charges[0], "amount_cents": captured},))
        if captured != order.total_cents:
            # Ligne d'écart: la commande reste égale au montant capturé
            adjustment = FeeLine("fee-adjustment", FEE_ADJUSTMENT, "Amount adjustment", captured - order.total_cents, charge_id)
            order = replace(order, fees=order.fees + (adjustment,))

    try:
        order_id = repository.insert_order(order)
    except DependencyUnavailable:
        raise
    except Exception as e:
        raise DependencyUnavailable(f"Création de commande impossible: {e}", service="supabase")
    logger.info("orders.materialize created order_id=%s pi=%s charge=%s", order_id, pi_id, charge_id)

    if order.user_id and order.points_redeemed > 0:
        try:
            points_service.redeem_points(order.user_id, order.points_redeemed, order_id)
        except DependencyUnavailable:
            # La commande existe: une relivraison ne débiterait plus rien
            logger.error(
                "orders.materialize points debit failed order_id=%s user_id=%s points=%s",
                order_id, order.user_id, order.points_redeemed,
            )

    _relabel(order, order_id)
    return order_id

def on_payment_succeeded(intent: Dict[str, Any]) -> Dict[str, Any]:
    """
    Matérialise la commande d'une PaymentIntent réussie (idempotent).
    Retour: {"order_id", "status": created | already_processed | ignored}
    """
    pi_id = str((intent or {}).get("id") or "")
    draft_id = meta.extract_draft_id(intent)
    if not draft_id:
        # PaymentIntent hors checkout funnel (ex: upsell off-session)
        return {"order_id": None, "status": "ignored"}

    store = get_draft_store()
    draft = store.get(draft_id)
    if draft is None:
        existing = _existing_order_id(pi_id)
        logger.info("orders.materialize draft gone draft_id=%s pi=%s order_id=%s", draft_id, pi_id, existing)
        return {"order_id": existing, "status": "already_processed"}

    if not store.claim(draft_id):
        existing = _existing_order_id(pi_id)
        logger.info("orders.materialize draft claimed elsewhere draft_id=%s pi=%s", draft_id, pi_id)
        return {"order_id": existing, "status": "already_processed"}

    try:
        existing = _existing_order_id(pi_id)
        if existing is not None:
            store.delete(draft_id)
            logger.info("orders.materialize order already saved order_id=%s pi=%s", existing, pi_id)
            return {"order_id": existing, "status": "already_processed"}
        order_id = _materialize(intent, draft)
        store.delete(draft_id)
    except Exception:
        # Une relivraison doit pouvoir reprendre depuis PENDING
        store.release(draft_id)
        raise
    return {"order_id": order_id, "status": "created"}

def handle_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """Dispatch d'un événement Stripe vérifié."""
    etype = (event or {}).get("type") or ""
    obj = ((event or {}).get("data") or {}).get("object") or {}
    if etype == "payment_intent.succeeded":
        result = on_payment_succeeded(obj)
        return {"ok": True, "type": etype, **result}
    if etype == "payment_intent.payment_failed":
        err = obj.get("last_payment_error") or {}
        logger.info(
            "orders.webhook payment_failed pi=%s draft_id=%s code=%s",
            obj.get("id"), meta.extract_draft_id(obj), err.get("code"),
        )
        return {"ok": True, "type": etype, "status": "acknowledged"}
    return {"ok": True, "type": etype, "status": "ignored"}

def resolve_order_by_payment_intent(pi_id: str) -> Dict[str, Any]:
    """Page de remerciement: retrouve la commande créée pour une PaymentIntent."""
    pi_id = (pi_id or "").strip()
    if not pi_id:
        raise ValidationError("pi_id required")
    order_id = _existing_order_id(pi_id)
    if order_id is None:
        raise NotFound("Order not found for this payment intent")
    return {"ok": True, "order_id": order_id}
