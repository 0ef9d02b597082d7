import pytest
from decimal import Decimal

from funnel_bridge.money import (
    apply_percent_discount,
    clamp_percent,
    format_cents,
    from_cents,
    percent_of,
    split_proportionally,
    to_cents,
)

@pytest.mark.parametrize("total, weights", [
    (10000, [1, 1, 1]),
    (1, [5, 5]),
    (999, [0.1, 0.2, 0.7]),
    (12345, [3333, 1, 0, 7]),
    (7, [1] * 10),
    (100000, [19.99, 5.01, 75]),
])
def test_split_sums_to_total_and_never_negative(total, weights):
    out = split_proportionally(total, weights)
    assert sum(out) == total
    assert len(out) == len(weights)
    assert all(x >= 0 for x in out)
    weight_sum = sum(Decimal(str(w)) for w in weights)
    for x, w in zip(out, weights):
        exact = Decimal(total) * Decimal(str(w)) / weight_sum
        assert abs(Decimal(x) - exact) < 1

def test_split_ties_go_to_the_last_bucket():
    assert split_proportionally(100, [1, 1, 1]) == [33, 33, 34]
    assert split_proportionally(2, [1, 1, 1]) == [0, 1, 1]

def test_split_edge_cases():
    assert split_proportionally(0, [1, 2]) == [0, 0]
    assert split_proportionally(-50, [1, 2]) == [0, 0]
    assert split_proportionally(5, [0, 0, 0]) == [0, 0, 5]
    assert split_proportionally(5, []) == []
    assert split_proportionally(10, [-3, 1]) == [0, 10]

def test_percent_helpers():
    assert percent_of(10000, 10) == 1000
    assert percent_of(999, "12.5") == 125  # 124.875 arrondi half-up
    assert percent_of(0, 50) == 0
    assert apply_percent_discount(5000, 20) == 4000
    assert apply_percent_discount(5000, 150) == 0
    assert apply_percent_discount(5000, -5) == 5000
    assert clamp_percent("101") == Decimal(100)

def test_cents_conversion_rounds_half_up():
    assert to_cents("19.995") == 2000
    assert to_cents(0.1 + 0.2) == 30
    assert to_cents(None) == 0
    assert to_cents("abc") == 0
    assert from_cents(1234) == Decimal("12.34")
    assert format_cents(-1000) == "-10.00"
