import hashlib
import hmac
import json
import time

from funnel_bridge import config

def _signed(payload: dict, secret: str = "whsec_test"):
    body = json.dumps(payload)
    ts = int(time.time())
    sig = hmac.new(secret.encode(), f"{ts}.{body}".encode(), hashlib.sha256).hexdigest()
    return body, {"Stripe-Signature": f"t={ts},v1={sig}", "Content-Type": "application/json"}

def _succeeded_event(client, checkout_payload, fake_stripe):
    r = client.post("/api/v1/funnel/checkout/intent", json=checkout_payload)
    assert r.status_code == 200, r.text
    params = fake_stripe.calls_named("create_payment_intent")[-1][2]
    return r.json(), {
        "id": "evt_1",
        "type": "payment_intent.succeeded",
        "data": {"object": {
            "id": "pi_hook",
            "amount": params["amount"],
            "amount_received": params["amount"],
            "currency": "usd",
            "customer": params["customer"],
            "metadata": params["metadata"],
            "latest_charge": "ch_hook",
        }},
    }

def test_totals(client, funnel_configs):
    funnel_configs["summer"] = {"global_discount_percent": 10}
    r = client.post("/api/v1/funnel/totals", json={
        "funnel_id": "summer",
        "items": [{"product_id": "101", "qty": 1}],
        "selected_rate": {"serviceName": "Ground", "amount": 5},
    })
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert body["amount_cents"] == 9500
    assert body["global_discount"] == 10.0

def test_totals_rejects_invalid_payload(client):
    r = client.post("/api/v1/funnel/totals", json={"items": [{"product_id": "101", "qty": 0}]})
    assert r.status_code == 400
    assert r.json()["reason"] == "bad_request"

    r = client.post("/api/v1/funnel/totals", json={"items": []})
    assert r.status_code == 400

def test_checkout_intent(client, checkout_payload):
    r = client.post("/api/v1/funnel/checkout/intent", json=checkout_payload)
    assert r.status_code == 200
    body = r.json()
    assert body["client_secret"].startswith("pi_")
    assert body["publishable"] == "pk_test_x"
    assert body["amount_cents"] == 10500
    assert body["order_draft_id"]

def test_checkout_intent_funnel_off(client, checkout_payload, monkeypatch):
    monkeypatch.setattr(config, "FUNNELS_REGISTRY", [
        {"id": "summer", "origin_staging": "stg.example.com", "mode_staging": "off"},
    ])
    r = client.post("/api/v1/funnel/checkout/intent", json=checkout_payload, headers={"Host": "stg.example.com"})
    assert r.status_code == 409
    assert r.json()["reason"] == "funnel_off"
    assert r.json()["redirect"]

def test_checkout_intent_bad_email(client, checkout_payload):
    checkout_payload["customer"]["email"] = "nope"
    r = client.post("/api/v1/funnel/checkout/intent", json=checkout_payload)
    assert r.status_code == 400

def test_webhook_creates_order_once_and_resolves(client, checkout_payload, fake_stripe, orders_db):
    r = client.get("/api/v1/funnel/orders/resolve", params={"pi_id": "pi_hook"})
    assert r.status_code == 404

    _, event = _succeeded_event(client, checkout_payload, fake_stripe)
    body, headers = _signed(event)
    first = client.post("/api/v1/funnel/stripe/webhook", content=body, headers=headers)
    second = client.post("/api/v1/funnel/stripe/webhook", content=body, headers=headers)

    assert first.status_code == 200 and first.json()["status"] == "created"
    assert second.json() == {"ok": True, "type": "payment_intent.succeeded", "order_id": first.json()["order_id"], "status": "already_processed"}
    assert orders_db.inserts == 1

    r = client.get("/api/v1/funnel/orders/resolve", params={"pi_id": "pi_hook"})
    assert r.status_code == 200
    assert r.json()["order_id"] == first.json()["order_id"]

def test_webhook_bad_signature(client, orders_db):
    body, headers = _signed({"type": "payment_intent.succeeded"}, secret="whsec_wrong")
    r = client.post("/api/v1/funnel/stripe/webhook", content=body, headers=headers)
    assert r.status_code == 400
    assert r.json()["reason"] == "sig_verify_failed"
    assert orders_db.inserts == 0

def test_webhook_ping(client):
    assert client.get("/api/v1/funnel/stripe/webhook").json() == {"ok": True, "ping": "pong"}

def test_upsell_then_refund_flow(client, checkout_payload, fake_stripe, refunds_db):
    _, event = _succeeded_event(client, checkout_payload, fake_stripe)
    body, headers = _signed(event)
    order_id = client.post("/api/v1/funnel/stripe/webhook", content=body, headers=headers).json()["order_id"]

    r = client.post("/api/v1/funnel/upsell/charge", json={"parent_order_id": order_id, "items": [{"sku": "SKU-B"}]})
    assert r.status_code == 200, r.text
    upsell_charge = r.json()["charge_id"]
    assert r.json()["amount_cents"] == 4250

    preview = client.get(f"/api/v1/funnel/orders/{order_id}/refund-preview").json()
    rows = {row["line_id"]: row for row in preview["items"]}
    assert rows["li-2"]["charge_id"] == upsell_charge
    assert rows["li-2"]["refundable"] == "42.50"
    assert rows["ship-1"]["refundable"] == "5.00"

    r = client.post(f"/api/v1/funnel/orders/{order_id}/refunds", json={
        "lines": [{"line_id": "li-2", "amount": 42.5}, {"line_id": "ship-1", "amount": 5}],
        "reason": "Damaged",
    })
    assert r.status_code == 200, r.text
    refunds = fake_stripe.calls_named("create_refund")
    assert [(c[2], c[3]) for c in refunds] == [(upsell_charge, 4250), ("ch_hook", 500)]
    assert refunds_db.rows[0]["amount_cents"] == 4750

    r = client.post(f"/api/v1/funnel/orders/{order_id}/refunds", json={"lines": [{"line_id": "li-2", "amount": 0.01}]})
    assert r.status_code == 400

def test_refund_partial_failure_is_reported(client, checkout_payload, fake_stripe):
    _, event = _succeeded_event(client, checkout_payload, fake_stripe)
    body, headers = _signed(event)
    order_id = client.post("/api/v1/funnel/stripe/webhook", content=body, headers=headers).json()["order_id"]
    client.post("/api/v1/funnel/upsell/charge", json={"parent_order_id": order_id, "amount_override": 20})
    fake_stripe.fail_charges.add("ch_hook")

    r = client.post(f"/api/v1/funnel/orders/{order_id}/refunds", json={
        "lines": [{"line_id": "li-1", "amount": 10}, {"line_id": "fee-upsell-2", "amount": 20}],
    })
    assert r.status_code == 502
    body = r.json()
    assert body["reason"] == "partial_refund"
    assert [f["charge_id"] for f in body["failed"]] == ["ch_hook"]
    assert body["refund_id"]

def test_upsell_unknown_order(client):
    r = client.post("/api/v1/funnel/upsell/charge", json={"parent_order_id": "missing", "amount_override": 5})
    assert r.status_code == 404

def test_status_customer_and_catalog(client, monkeypatch, points_ledger):
    r = client.get("/api/v1/funnel/status", params={"funnel_id": "summer"})
    assert r.status_code == 200
    assert r.json()["mode"] == "test"

    monkeypatch.setattr(
        "funnel_bridge.customers.repository.get_user_by_email",
        lambda email: {"id": "u-7", "email": email, "billing": {}, "shipping": {}},
    )
    points_ledger["balances"]["u-7"] = 15
    r = client.post("/api/v1/funnel/customer", json={"email": "jane@example.com"})
    assert r.json()["points_balance"] == 15

    r = client.get("/api/v1/funnel/catalog/prices", params={"skus": "SKU-A, SKU-C"})
    assert r.json()["prices"] == {"SKU-A": 100.0, "SKU-C": 25.0}

def test_missing_supabase_config_is_reported(client, monkeypatch):
    from funnel_bridge.infra import supabase_client
    monkeypatch.undo()
    monkeypatch.setattr(supabase_client, "SUPABASE_URL", "")
    monkeypatch.setattr(supabase_client, "_service_supabase", None)
    r = client.get("/api/v1/funnel/orders/resolve", params={"pi_id": "pi_x"})
    assert r.status_code == 500
    assert r.json()["reason"] == "not_configured"
