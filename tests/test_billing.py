from types import SimpleNamespace

from conftest import auth_headers
from fitcoach import billing
from fitcoach.entitlements import Tier


def test_status_reports_limits_and_features(client, make_trainer):
    trainer_id = make_trainer(tier="pro", status="active")
    status = client.get("/billing/status", headers=auth_headers(trainer_id)).json()
    assert status["tier"] == "pro"
    assert status["is_active"] is True
    assert status["limits"] == {"max_students": 100, "max_trainers": 1}
    assert "analytics" in status["features"]
    assert status["can_add_student"] is True
    assert status["can_add_trainer"] is False


def test_entitlement_endpoint(client, make_trainer, make_student):
    trainer_id = make_trainer()
    headers = auth_headers(trainer_id)
    assert client.get("/billing/entitlements/student", headers=headers).json()["allowed"] is True
    make_student(trainer_id)
    assert client.get("/billing/entitlements/student", headers=headers).json()["allowed"] is False
    assert client.get("/billing/entitlements/trainer", headers=headers).json()["allowed"] is False
    assert client.get("/billing/entitlements/gyms", headers=headers).status_code == 404


def test_checkout_requires_stripe_config(client, make_trainer, monkeypatch):
    monkeypatch.setattr(billing, "STRIPE_SECRET_KEY", None)
    resp = client.post("/billing/create-checkout-session", json={"tier": "pro"}, headers=auth_headers(make_trainer()))
    assert resp.status_code == 400


def test_checkout_rejects_unknown_tier(client, make_trainer):
    resp = client.post("/billing/create-checkout-session", json={"tier": "gold"}, headers=auth_headers(make_trainer()))
    assert resp.status_code == 400


def test_checkout_tags_session_with_trainer_and_tier(client, make_trainer, monkeypatch):
    trainer_id = make_trainer()
    calls = {}

    def fake_create(**kwargs):
        calls.update(kwargs)
        return SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.test/cs_test_1")

    monkeypatch.setattr(billing, "STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setitem(billing.STRIPE_PRICES, Tier.ENTERPRISE, "price_ent")
    monkeypatch.setattr(billing.stripe.checkout.Session, "create", fake_create)

    resp = client.post("/billing/create-checkout-session", json={"tier": "enterprise"}, headers=auth_headers(trainer_id))
    assert resp.status_code == 200
    assert resp.json() == {"checkout_url": "https://checkout.stripe.test/cs_test_1"}
    assert calls["client_reference_id"] == str(trainer_id)
    assert calls["metadata"] == {"tier": "enterprise"}
    assert calls["line_items"] == [{"price": "price_ent", "quantity": 1}]
