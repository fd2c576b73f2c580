from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

from conftest import auth_headers


def register(client, email="coach@example.com", password="strong-pass-1"):
    return client.post("/auth/register", json={"email": email, "password": password, "full_name": "Coach Carter"})


def login(client, email="coach@example.com", password="strong-pass-1"):
    return client.post("/auth/login", data={"username": email, "password": password})


def test_register_login_and_me(client):
    resp = register(client)
    assert resp.status_code == 200
    token = login(client).json()["access_token"]
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "coach@example.com"
    assert me.json()["role"] == "trainer"


def test_new_trainer_starts_on_free(client):
    user_id = register(client).json()["id"]
    status = client.get("/billing/status", headers=auth_headers(user_id)).json()
    assert status["tier"] == "free"
    assert status["is_active"] is False


def test_register_twice_is_rejected(client):
    register(client)
    assert register(client).status_code == 400


def test_login_with_wrong_password(client):
    register(client)
    assert login(client, password="nope-nope").status_code == 401


def test_bad_token_is_rejected(client):
    resp = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


def test_password_reset_flow(client):
    register(client)
    with patch("fitcoach.mail.send_password_reset_email", return_value=True) as send:
        resp = client.post("/auth/forgot-password", json={"email": "coach@example.com"})
    assert resp.status_code == 200
    token = parse_qs(urlparse(send.call_args.args[1]).query)["token"][0]

    assert client.post("/auth/reset-password", json={"token": token, "password": "brand-new-pass"}).status_code == 200
    assert login(client, password="brand-new-pass").status_code == 200
    # single use
    assert client.post("/auth/reset-password", json={"token": token, "password": "another-pass"}).status_code == 400


def test_forgot_password_does_not_reveal_accounts(client):
    with patch("fitcoach.mail.send_password_reset_email") as send:
        resp = client.post("/auth/forgot-password", json={"email": "ghost@example.com"})
    assert resp.status_code == 200
    send.assert_not_called()


def test_invited_student_cannot_use_trainer_routes(client, make_trainer, session_factory):
    trainer_id = make_trainer()
    with patch("fitcoach.mail.send_invite_email", return_value=True):
        body = client.post("/students/invite", json={"name": "Gil", "email": "gil@example.com"},
                           headers={"x-trainer-id": str(trainer_id)}).json()
    resp = client.get("/students", headers=auth_headers(body["student"]["user_id"], role="student"))
    assert resp.status_code == 403
