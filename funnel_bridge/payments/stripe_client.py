"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
Chaque appel précise son mode ('test' | 'live'); la clé secrète est passée par appel.
"""
from typing import Any, Dict, Optional
import json
import logging

import stripe

from funnel_bridge import config
from funnel_bridge.exceptions import DependencyUnavailable, PaymentDeclined, SignatureInvalid

logger = logging.getLogger(__name__)

# Délai borné pour tous les appels sortants, aucune relance interne
stripe.default_http_client = stripe.RequestsClient(timeout=config.STRIPE_TIMEOUT_SECONDS)
stripe.max_network_retries = 0

# module funnel_bridge.payments.stripe_client
def require_stripe(mode: str) -> Dict[str, str]:
    """
    Clés Stripe du mode demandé.
    - Clé secrète absente => DependencyUnavailable(not_configured) (jamais de bascule test -> live).
    Retour: {"mode", "secret", "publishable"}
    """
    keys = config.STRIPE_KEYS.get(mode) or {}
    secret = keys.get("secret") or ""
    if not secret:
        raise DependencyUnavailable(f"Stripe secret key missing for mode={mode}", service="stripe", not_configured=True)
    return {"mode": mode, "secret": secret, "publishable": keys.get("publishable") or ""}

def _call(op: str, fn, *args, **kwargs) -> Dict[str, Any]:
    try:
        obj = fn(*args, **kwargs)
    except stripe.CardError as e:
        logger.warning("stripe.%s declined code=%s", op, e.code)
        raise PaymentDeclined(f"Card declined: {e.user_message or e}", stripe_code=e.code)
    except stripe.StripeError as e:
        logger.exception("stripe.%s failed", op)
        raise DependencyUnavailable(f"Stripe {op} failed: {e.user_message or e}", service="stripe", stripe_code=e.code)
    # stripe retourne un objet; on le traite comme dict-compatible
    return obj.to_dict() if hasattr(obj, "to_dict") else dict(obj)

def create_customer(mode: str, *, email: str, name: str = "", metadata: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    keys = require_stripe(mode)
    params: Dict[str, Any] = {"email": email, "metadata": metadata or {}}
    if name:
        params["name"] = name
    return _call("customer.create", stripe.Customer.create, api_key=keys["secret"], **params)

def retrieve_customer(mode: str, customer_id: str) -> Dict[str, Any]:
    keys = require_stripe(mode)
    return _call("customer.retrieve", stripe.Customer.retrieve, customer_id, api_key=keys["secret"])

def create_payment_intent(mode: str, **params: Any) -> Dict[str, Any]:
    """
    Crée une PaymentIntent (checkout ou upsell off-session).
    Pas de relance: un second essai pourrait autoriser deux fois.
    """
    keys = require_stripe(mode)
    return _call("payment_intent.create", stripe.PaymentIntent.create, api_key=keys["secret"], **params)

def retrieve_payment_intent(mode: str, pi_id: str, expand: Optional[list] = None) -> Dict[str, Any]:
    keys = require_stripe(mode)
    return _call(
        "payment_intent.retrieve",
        stripe.PaymentIntent.retrieve,
        pi_id,
        api_key=keys["secret"],
        expand=expand or [],
    )

def update_payment_intent(mode: str, pi_id: str, **params: Any) -> Dict[str, Any]:
    keys = require_stripe(mode)
    return _call("payment_intent.modify", stripe.PaymentIntent.modify, pi_id, api_key=keys["secret"], **params)

def update_charge(mode: str, charge_id: str, **params: Any) -> Dict[str, Any]:
    keys = require_stripe(mode)
    return _call("charge.modify", stripe.Charge.modify, charge_id, api_key=keys["secret"], **params)

def create_refund(mode: str, *, charge_id: str, amount_cents: int, metadata: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Remboursement ciblé sur UNE charge (jamais un remboursement global de commande)."""
    keys = require_stripe(mode)
    return _call(
        "refund.create",
        stripe.Refund.create,
        api_key=keys["secret"],
        charge=charge_id,
        amount=int(amount_cents),
        reason="requested_by_customer",
        metadata=metadata or {},
    )

def verify_signature(payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
    """
    Valide un événement Stripe signé et retourne l'événement décodé.
    - HMAC-SHA256 sur "timestamp.payload", n'importe quel secret configuré est accepté
    - Horodatage borné à STRIPE_WEBHOOK_TOLERANCE secondes
    """
    if not config.STRIPE_WEBHOOK_SECRETS:
        raise DependencyUnavailable("No webhook secret configured", service="stripe", not_configured=True)
    if not sig_header:
        raise SignatureInvalid("Missing Stripe-Signature header")
    text = payload.decode("utf-8") if isinstance(payload, (bytes, bytearray)) else str(payload)
    for secret in config.STRIPE_WEBHOOK_SECRETS:
        try:
            stripe.WebhookSignature.verify_header(text, sig_header, secret, config.STRIPE_WEBHOOK_TOLERANCE)
        except stripe.SignatureVerificationError:
            continue
        try:
            event = json.loads(text)
        except ValueError:
            raise SignatureInvalid("Invalid JSON payload")
        if not isinstance(event, dict):
            raise SignatureInvalid("Invalid event payload")
        return event
    logger.warning("stripe.verify_signature rejected secrets=%s", len(config.STRIPE_WEBHOOK_SECRETS))
    raise SignatureInvalid("Signature verification failed")
