import os
import itertools
from typing import Any, Dict, List

import pytest
import fakeredis
from unittest.mock import MagicMock
from fastapi.testclient import TestClient

os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

from funnel_bridge import config
from funnel_bridge.drafts.store import DraftStore
from funnel_bridge.exceptions import DependencyUnavailable
from funnel_bridge.orders.models import Order

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)

PRODUCTS: List[Dict[str, Any]] = [
    {"id": "101", "sku": "SKU-A", "name": "Product A", "price": "100.00", "regular_price": "100.00"},
    {"id": "102", "sku": "SKU-B", "name": "Product B", "price": "50.00", "regular_price": "50.00"},
    {"id": "103", "sku": "SKU-C", "name": "Product C", "price": "20.00", "regular_price": "25.00"},
    {"id": "104", "sku": "SKU-D", "name": "Product D", "price": "10.00", "regular_price": None},
]


class FakeOrders:
    """Table 'orders' en mémoire (mêmes signatures que orders.repository)."""
    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.inserts = 0
        self.fail_insert = False
        self._ids = itertools.count(1001)

    def insert_order(self, order: Order):
        if self.fail_insert:
            raise RuntimeError("db down")
        self.inserts += 1
        order_id = str(next(self._ids))
        row = order.to_row()
        row["id"] = order_id
        self.rows[order_id] = row
        return order_id

    def get_order(self, order_id):
        row = self.rows.get(str(order_id))
        return Order.from_row(row) if row else None

    def find_order_id_by_payment_intent(self, pi_id):
        for oid, row in self.rows.items():
            if row.get("payment_intent_id") == pi_id:
                return oid
        return None

    def update_order(self, order_id, fields):
        self.rows[str(order_id)].update(fields)


class FakeRefunds:
    def __init__(self):
        self.rows: List[Dict[str, Any]] = []
        self._ids = itertools.count(1)

    def list_refunds(self, order_id):
        return [r for r in self.rows if str(r["order_id"]) == str(order_id)]

    def insert_refund(self, record):
        rid = f"rf-{next(self._ids)}"
        self.rows.append({**record, "id": rid})
        return rid


class FakeStripe:
    """Remplace les fonctions de payments.stripe_client et enregistre les appels."""
    def __init__(self):
        self.calls: List[tuple] = []
        self.customers: Dict[str, Dict[str, Any]] = {}
        self.intents: Dict[str, Dict[str, Any]] = {}
        self.refunds: List[Dict[str, Any]] = []
        self.fail_charges = set()
        self.fail_intent = False
        self.offsession_status = "succeeded"
        self.parent_payment_method = "pm_parent"
        self._n = itertools.count(1)

    def create_customer(self, mode, *, email, name="", metadata=None):
        cid = f"cus_{next(self._n)}"
        self.calls.append(("create_customer", mode, email))
        self.customers[cid] = {"id": cid, "email": email, "invoice_settings": {"default_payment_method": "pm_default"}}
        return dict(self.customers[cid])

    def retrieve_customer(self, mode, customer_id):
        self.calls.append(("retrieve_customer", mode, customer_id))
        return dict(self.customers.get(customer_id) or {"id": customer_id, "deleted": True})

    def create_payment_intent(self, mode, **params):
        self.calls.append(("create_payment_intent", mode, params))
        if self.fail_intent:
            raise DependencyUnavailable("Stripe payment_intent.create failed", service="stripe")
        n = next(self._n)
        pi = {
            "id": f"pi_{n}",
            "client_secret": f"pi_{n}_secret_x",
            "amount": params["amount"],
            "currency": params.get("currency"),
            "customer": params.get("customer"),
            "metadata": params.get("metadata") or {},
            "status": self.offsession_status if params.get("confirm") else "requires_payment_method",
            "latest_charge": f"ch_{n}" if params.get("confirm") else None,
            "payment_method": params.get("payment_method"),
        }
        self.intents[pi["id"]] = pi
        return dict(pi)

    def retrieve_payment_intent(self, mode, pi_id, expand=None):
        self.calls.append(("retrieve_payment_intent", mode, pi_id))
        pi = dict(self.intents.get(pi_id) or {"id": pi_id})
        if not pi.get("payment_method"):
            pi["payment_method"] = self.parent_payment_method
        return pi

    def update_payment_intent(self, mode, pi_id, **params):
        self.calls.append(("update_payment_intent", mode, pi_id, params))
        return {"id": pi_id, **params}

    def update_charge(self, mode, charge_id, **params):
        self.calls.append(("update_charge", mode, charge_id, params))
        return {"id": charge_id, **params}

    def create_refund(self, mode, *, charge_id, amount_cents, metadata=None):
        self.calls.append(("create_refund", mode, charge_id, amount_cents))
        if charge_id in self.fail_charges:
            raise DependencyUnavailable(f"Stripe refund.create failed for {charge_id}", service="stripe")
        refund = {"id": f"re_{next(self._n)}", "charge": charge_id, "amount": amount_cents}
        self.refunds.append(refund)
        return dict(refund)

    def calls_named(self, name):
        return [c for c in self.calls if c[0] == name]


@pytest.fixture(autouse=True)
def mock_supabase(monkeypatch):
    """Aucun test ne touche une vraie base."""
    monkeypatch.setattr("funnel_bridge.infra.supabase_client.get_service_supabase", lambda: MagicMock())

@pytest.fixture(autouse=True)
def stripe_keys(monkeypatch):
    monkeypatch.setattr(config, "STRIPE_KEYS", {
        "test": {"secret": "sk_test_x", "publishable": "pk_test_x"},
        "live": {"secret": "sk_live_x", "publishable": "pk_live_x"},
    })
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRETS", ["whsec_test", "whsec_live"])
    monkeypatch.setattr(config, "FUNNEL_ENV", "staging")
    monkeypatch.setattr(config, "FUNNELS_REGISTRY", [])
    monkeypatch.setattr(config, "POINTS_PER_DOLLAR", 10)
    monkeypatch.setattr(config, "UPSELL_DISCOUNT_PERCENT", 15)

@pytest.fixture(autouse=True)
def draft_store(monkeypatch):
    store = DraftStore(fakeredis.FakeRedis(decode_responses=True), ttl=1800, claim_ttl=120)
    monkeypatch.setattr("funnel_bridge.drafts.store._store", store)
    return store

@pytest.fixture(autouse=True)
def catalog(monkeypatch):
    products = [dict(p) for p in PRODUCTS]
    monkeypatch.setattr(
        "funnel_bridge.catalog.repository.fetch_products_by_ids",
        lambda ids: [p for p in products if p["id"] in set(ids)],
    )
    monkeypatch.setattr(
        "funnel_bridge.catalog.repository.fetch_products_by_skus",
        lambda skus: [p for p in products if p["sku"] in set(skus)],
    )
    return products

@pytest.fixture(autouse=True)
def funnel_configs(monkeypatch):
    configs: Dict[str, Dict[str, Any]] = {}
    monkeypatch.setattr("funnel_bridge.funnels.repository.fetch_funnel_config", lambda fid: configs.get(fid))
    return configs

@pytest.fixture(autouse=True)
def points_ledger(monkeypatch):
    ledger = {"balances": {}, "movements": []}

    def _adjust(user_id, delta, reason, order_id=None):
        ledger["balances"][user_id] = ledger["balances"].get(user_id, 0) + delta
        ledger["movements"].append((user_id, delta, order_id))
        return ledger["balances"][user_id]

    monkeypatch.setattr("funnel_bridge.points.repository.get_points_balance", lambda uid: ledger["balances"].get(uid, 0))
    monkeypatch.setattr("funnel_bridge.points.repository.adjust_points", _adjust)
    return ledger

@pytest.fixture(autouse=True)
def stripe_customers(monkeypatch):
    mapping: Dict[tuple, str] = {}
    monkeypatch.setattr("funnel_bridge.customers.repository.get_stripe_customer_id", lambda uid, mode: mapping.get((uid, mode)))
    monkeypatch.setattr(
        "funnel_bridge.customers.repository.save_stripe_customer_id",
        lambda uid, mode, cid: mapping.__setitem__((uid, mode), cid),
    )
    return mapping

@pytest.fixture(autouse=True)
def orders_db(monkeypatch):
    db = FakeOrders()
    for name in ("insert_order", "get_order", "find_order_id_by_payment_intent", "update_order"):
        monkeypatch.setattr(f"funnel_bridge.orders.repository.{name}", getattr(db, name))
    return db

@pytest.fixture(autouse=True)
def refunds_db(monkeypatch):
    db = FakeRefunds()
    monkeypatch.setattr("funnel_bridge.refunds.repository.list_refunds", db.list_refunds)
    monkeypatch.setattr("funnel_bridge.refunds.repository.insert_refund", db.insert_refund)
    return db

@pytest.fixture(autouse=True)
def fake_stripe(monkeypatch):
    fake = FakeStripe()
    for name in (
        "create_customer",
        "retrieve_customer",
        "create_payment_intent",
        "retrieve_payment_intent",
        "update_payment_intent",
        "update_charge",
        "create_refund",
    ):
        monkeypatch.setattr(f"funnel_bridge.payments.stripe_client.{name}", getattr(fake, name))
    return fake

@pytest.fixture()
def app():
    from funnel_bridge.app_setup.factory import create_app
    return create_app()

@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c

@pytest.fixture()
def checkout_payload() -> Dict[str, Any]:
    return {
        "funnel_id": "summer",
        "funnel_name": "Summer Funnel",
        "customer": {"email": "jane@example.com", "name": "Jane Doe"},
        "shipping_address": {"first_name": "Jane", "city": "Austin", "country": "US"},
        "items": [{"product_id": "101", "qty": 1}],
        "selected_rate": {"serviceName": "USPS Ground", "amount": 5.0},
    }
