"""
Module 'pricing': moteur de prix partagé entre aperçu et commit.
"""

from .models import PricingRequest, LineItem, FeeLine, ShippingLine, PricedOrder
from .engine import price_order
from .service import preview_totals

__all__ = [
    "PricingRequest",
    "LineItem",
    "FeeLine",
    "ShippingLine",
    "PricedOrder",
    "price_order",
    "preview_totals",
]
