"""
Module 'payments' (feature-first): point d'entrée public.
Réunit client Stripe, metadata d'intention et services (checkout, upsell).
"""

from .metadata import make_intent_metadata, extract_draft_id, extract_charge_id
from .stripe_client import (
    require_stripe,
    create_customer,
    retrieve_customer,
    create_payment_intent,
    retrieve_payment_intent,
    update_payment_intent,
    update_charge,
    create_refund,
    verify_signature,
)
from .service import create_or_get_customer, create_checkout_intent, charge_upsell

__all__ = [
    # metadata
    "make_intent_metadata",
    "extract_draft_id",
    "extract_charge_id",
    # stripe
    "require_stripe",
    "create_customer",
    "retrieve_customer",
    "create_payment_intent",
    "retrieve_payment_intent",
    "update_payment_intent",
    "update_charge",
    "create_refund",
    "verify_signature",
    # services
    "create_or_get_customer",
    "create_checkout_intent",
    "charge_upsell",
]
