import pytest

from funnel_bridge.catalog.service import prices_by_sku
from funnel_bridge.customers import service as customers_service
from funnel_bridge.exceptions import ValidationError
from funnel_bridge.points import service as points_service

def test_points_conversion(monkeypatch):
    assert points_service.points_to_money_cents(500) == 5000
    assert points_service.points_to_money_cents(-1) == 0
    assert points_service.money_cents_to_points(4001) == 401
    monkeypatch.setattr("funnel_bridge.config.POINTS_PER_DOLLAR", 3)
    assert points_service.points_to_money_cents(1) == 33

def test_redeem_and_restore_move_the_ledger(points_ledger):
    points_ledger["balances"]["u-1"] = 100
    points_service.redeem_points("u-1", 40, "1001")
    points_service.restore_points("u-1", 10, "1001")
    points_service.redeem_points("u-1", 0, "1001")
    assert points_ledger["balances"]["u-1"] == 70
    assert points_service.get_balance("u-1") == 70
    assert points_service.get_balance(None) == 0

def test_lookup_customer(monkeypatch, points_ledger):
    monkeypatch.setattr(
        "funnel_bridge.customers.repository.get_user_by_email",
        lambda email: {"id": 42, "email": email, "billing": {"city": "Austin", "unknown": "x"}, "shipping": None},
    )
    points_ledger["balances"]["42"] = 320

    out = customers_service.lookup_customer(" Jane@Example.com ")

    assert out["user_id"] == "42"
    assert out["points_balance"] == 320
    assert out["default_billing"]["city"] == "Austin"
    assert "unknown" not in out["default_billing"]
    assert out["default_shipping"]["city"] == ""

def test_lookup_unknown_or_invalid_email(monkeypatch):
    monkeypatch.setattr("funnel_bridge.customers.repository.get_user_by_email", lambda email: None)
    assert customers_service.lookup_customer("new@example.com")["user_id"] is None
    with pytest.raises(ValidationError):
        customers_service.lookup_customer("nope")

def test_prices_by_sku():
    assert prices_by_sku(["SKU-C", "SKU-D", "SKU-404", ""]) == {"SKU-C": 25.0, "SKU-D": 10.0}
