import pytest

from funnel_bridge import config
from funnel_bridge.exceptions import DependencyUnavailable
from funnel_bridge.funnels import service as funnels_service
from funnel_bridge.funnels.models import FunnelDiscountConfig

REGISTRY = [{
    "id": "summer",
    "origin_staging": "https://stg.funnels.example.com",
    "origin_production": "https://funnels.example.com/",
    "mode_staging": "test",
    "mode_production": "live",
}]

@pytest.fixture()
def registry(monkeypatch):
    monkeypatch.setattr(config, "FUNNELS_REGISTRY", REGISTRY)

def test_host_matching_origins(registry):
    assert funnels_service.resolve_payment_mode("summer", "stg.funnels.example.com").mode == "test"
    prod = funnels_service.resolve_payment_mode("summer", "funnels.example.com:443")
    assert (prod.environment, prod.mode) == ("production", "live")

def test_unmatched_host_uses_deployment_default_and_warns(registry, monkeypatch, caplog):
    monkeypatch.setattr(config, "FUNNEL_ENV", "production")
    fm = funnels_service.resolve_payment_mode("summer", "attacker.example.net")
    assert (fm.environment, fm.mode) == ("production", "live")
    assert "host unmatched" in caplog.text

    monkeypatch.setattr(config, "FUNNEL_ENV", "staging")
    assert funnels_service.resolve_payment_mode("summer", "other.example.net").mode == "test"

def test_off_mode_and_invalid_modes(monkeypatch):
    monkeypatch.setattr(config, "FUNNELS_REGISTRY", [
        {"id": "winter", "origin_staging": "stg.example.com", "mode_staging": "OFF"},
        {"id": "autumn", "origin_staging": "stg.example.com", "mode_staging": "sandbox"},
    ])
    assert funnels_service.resolve_payment_mode("winter", "stg.example.com").mode == "off"
    assert funnels_service.resolve_payment_mode("autumn", "stg.example.com").mode == "test"

def test_unregistered_funnel_uses_deployment_default():
    fm = funnels_service.resolve_payment_mode("unknown", "whatever.example.com")
    assert (fm.environment, fm.mode) == ("staging", "test")

def test_status(registry):
    out = funnels_service.funnel_status("summer", "funnels.example.com")
    assert out["mode"] == "live"
    assert out["redirect_url"].endswith("/")

def test_config_lookup_and_failures(funnel_configs, monkeypatch):
    assert funnels_service.get_funnel_config("none").global_discount_percent == 0
    funnel_configs["summer"] = {"global_discount_percent": 250, "products": [{"sku": "SKU-A", "item_discount_percent": -5}]}
    cfg = funnels_service.get_funnel_config("summer")
    assert cfg.global_discount_percent == 100
    assert cfg.products[0].item_discount_percent == 0

    def _boom(fid):
        raise RuntimeError("timeout")
    monkeypatch.setattr("funnel_bridge.funnels.repository.fetch_funnel_config", _boom)
    with pytest.raises(DependencyUnavailable):
        funnels_service.get_funnel_config("summer")

def test_product_override_prefers_id_then_sku():
    cfg = FunnelDiscountConfig.from_dict("f", {"products": [
        {"sku": "SKU-X", "exclude_global_discount": True},
        {"product_id": "7", "item_discount_percent": 30},
    ]})
    assert cfg.product_override("7", "").item_discount_percent == 30
    assert cfg.product_override("8", "SKU-X").exclude_global_discount
    assert cfg.product_override("8", "SKU-Y") is None
