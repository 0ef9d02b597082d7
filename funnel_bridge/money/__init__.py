"""
Module 'money': point d'entrée public des calculs au centime.
"""

from .allocator import (
    to_cents,
    from_cents,
    format_cents,
    clamp_percent,
    percent_of,
    apply_percent_discount,
    split_proportionally,
)

__all__ = [
    "to_cents",
    "from_cents",
    "format_cents",
    "clamp_percent",
    "percent_of",
    "apply_percent_discount",
    "split_proportionally",
]
