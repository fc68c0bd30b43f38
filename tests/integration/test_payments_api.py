import asyncio

from fastapi.testclient import TestClient

from paygate.dependencies import get_workflow
from paygate.errors import UpstreamFailure


def _initiate(client, **overrides):
    body = {"email": "alice@example.com", "amount": 5000, "planType": "pro"}
    body.update(overrides)
    return client.post("/initiate-payment", json=body)


def test_root_and_health(client):
    assert client.get("/").json() == {"message": "Payment-First Signup API"}
    assert client.get("/health").json() == {"ok": True}


def test_initiate_payment_ok(client, provider):
    res = _initiate(client, metadata={"campaign": "spring"})
    assert res.status_code == 200
    data = res.json()
    assert data["success"] is True
    assert data["reference"].startswith("pay_")
    assert data["paymentUrl"].startswith("https://checkout.paystack.com/")
    assert provider.calls[0]["metadata"] == {"campaign": "spring", "planType": "pro"}


def test_initiate_payment_missing_fields(client, provider):
    res = client.post("/initiate-payment", json={"amount": 5000, "planType": "pro"})
    assert res.status_code == 400
    assert res.json()["code"] == "missing_fields"
    assert provider.calls == []


def test_initiate_payment_invalid_amount(client):
    for amount in (0, -1, "abc"):
        res = _initiate(client, amount=amount)
        assert res.status_code == 400
        assert res.json()["code"] == "invalid_input"


def test_initiate_payment_invalid_email(client):
    res = _initiate(client, email="not-an-email")
    assert res.status_code == 400


def test_initiate_payment_provider_unreachable(client, provider_unreachable):
    res = _initiate(client)
    assert res.status_code == 502
    assert res.json() == {"detail": "Paystack injoignable", "code": "provider_unreachable"}


def test_initiate_payment_provider_rejects(client, provider):
    provider.error = UpstreamFailure("Échec de l'initialisation du paiement: Invalid key",
                                     code="provider_rejected", status_code=400)
    res = _initiate(client)
    assert res.status_code == 400
    assert res.json()["code"] == "provider_rejected"


def test_webhook_rejects_bad_signature(client, webhook_body, post_webhook):
    ref = _initiate(client).json()["reference"]
    raw = webhook_body("charge.success", ref)
    res = post_webhook(raw, signature="0" * 128)
    assert res.status_code == 401
    assert res.json()["code"] == "invalid_signature"
    assert client.get("/check-payment-status", params={"reference": ref}).json()["status"] == "pending"


def test_webhook_rejects_missing_signature(client, webhook_body):
    raw = webhook_body("charge.success", "pay_1")
    res = client.post("/pay/webhook/url", content=raw, headers={"content-type": "application/json"})
    assert res.status_code == 401


def test_webhook_empty_body(client, post_webhook):
    res = post_webhook(b"", signature="abc")
    assert res.status_code == 400
    assert res.json()["code"] == "empty_body"


def test_webhook_malformed_json(post_webhook):
    res = post_webhook(b"{oops")
    assert res.status_code == 400
    assert res.json()["code"] == "malformed_json"


def test_webhook_unknown_event_acknowledged(webhook_body, post_webhook):
    res = post_webhook(webhook_body("subscription.create", "pay_1"))
    assert res.status_code == 200
    assert res.json() == {"received": True}


def test_webhook_handled_outside_event_loop(workflow, webhook_body, post_webhook, monkeypatch):
    seen = {}

    def handle(raw_body, signature):
        try:
            asyncio.get_running_loop()
            seen["in_loop"] = True
        except RuntimeError:
            seen["in_loop"] = False
        return {"received": True}

    monkeypatch.setattr(workflow, "handle_provider_notification", handle)
    res = post_webhook(webhook_body("charge.success", "pay_1"))
    assert res.status_code == 200
    assert seen == {"in_loop": False}


def test_webhook_is_not_rate_limited(client, webhook_body, post_webhook, monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    raw = webhook_body("charge.success", "pay_unknown")
    for _ in range(15):
        assert post_webhook(raw).status_code == 200


def test_check_payment_status_errors(client):
    res = client.get("/check-payment-status")
    assert res.status_code == 400
    assert res.json()["code"] == "missing_reference"

    res = client.get("/check-payment-status", params={"reference": "pay_unknown"})
    assert res.status_code == 404
    assert res.json()["code"] == "payment_not_found"


def test_initiate_payment_rate_limited(client, monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    for _ in range(10):
        assert _initiate(client).status_code == 200
    assert _initiate(client).status_code == 429


def test_security_headers(client):
    res = client.get("/health")
    assert res.headers["x-content-type-options"] == "nosniff"
    assert res.headers["x-frame-options"] == "DENY"
    assert res.headers["cache-control"] == "no-store"


def test_unexpected_error_returns_500(app):
    class _Broken:
        def check_status(self, reference):
            raise RuntimeError("boom")

    app.dependency_overrides[get_workflow] = lambda: _Broken()
    with TestClient(app, raise_server_exceptions=False) as client:
        res = client.get("/check-payment-status", params={"reference": "pay_1"})
    assert res.status_code == 500
    assert res.json() == {"detail": "Erreur interne", "code": "internal_error"}


def test_health_signup_counters(client, webhook_body, post_webhook):
    ref = _initiate(client).json()["reference"]
    post_webhook(webhook_body("charge.success", ref))
    _initiate(client, email="bob@example.com")

    data = client.get("/health/signup").json()
    assert data["payments"] == {"pending": 1, "completed": 1, "failed": 0}
    assert data["active_tokens"] == 1
    assert data["outbox"]["pending"] == 1
    assert data["rate_limit"]["enabled"] is False
