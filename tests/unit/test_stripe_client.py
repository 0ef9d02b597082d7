import hashlib
import hmac
import json
import time

import pytest

from funnel_bridge import config
from funnel_bridge.exceptions import DependencyUnavailable, SignatureInvalid
from funnel_bridge.payments import stripe_client

PAYLOAD = json.dumps({"id": "evt_1", "type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1"}}})

def _sign(payload: str, secret: str, ts: int = None) -> str:
    ts = int(time.time()) if ts is None else ts
    sig = hmac.new(secret.encode(), f"{ts}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"

def test_any_configured_secret_is_accepted():
    event = stripe_client.verify_signature(PAYLOAD.encode(), _sign(PAYLOAD, "whsec_live"))
    assert event["id"] == "evt_1"

def test_wrong_secret_is_rejected(caplog):
    with pytest.raises(SignatureInvalid) as exc:
        stripe_client.verify_signature(PAYLOAD.encode(), _sign(PAYLOAD, "whsec_other"))
    assert exc.value.reason == "sig_verify_failed"
    assert "verify_signature rejected" in caplog.text

def test_stale_timestamp_is_rejected(monkeypatch):
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_TOLERANCE", 300)
    with pytest.raises(SignatureInvalid):
        stripe_client.verify_signature(PAYLOAD.encode(), _sign(PAYLOAD, "whsec_test", int(time.time()) - 301))

def test_tampered_payload_is_rejected():
    header = _sign(PAYLOAD, "whsec_test")
    with pytest.raises(SignatureInvalid):
        stripe_client.verify_signature(PAYLOAD.replace("pi_1", "pi_2").encode(), header)

def test_missing_header_or_secrets(monkeypatch):
    with pytest.raises(SignatureInvalid):
        stripe_client.verify_signature(PAYLOAD.encode(), None)
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRETS", [])
    with pytest.raises(DependencyUnavailable) as exc:
        stripe_client.verify_signature(PAYLOAD.encode(), _sign(PAYLOAD, "whsec_test"))
    assert exc.value.not_configured

def test_require_stripe_never_falls_back_to_another_mode(monkeypatch):
    monkeypatch.setattr(config, "STRIPE_KEYS", {"test": {"secret": "", "publishable": ""}, "live": {"secret": "sk_live_x"}})
    assert stripe_client.require_stripe("live")["secret"] == "sk_live_x"
    with pytest.raises(DependencyUnavailable) as exc:
        stripe_client.require_stripe("test")
    assert exc.value.to_dict()["reason"] == "not_configured"
