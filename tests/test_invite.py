from unittest.mock import patch

from fitcoach.models import PasswordResetToken, Student, User


def invite(client, trainer_id, **body):
    headers = {"x-trainer-id": str(trainer_id)} if trainer_id is not None else {}
    return client.post("/students/invite", json=body, headers=headers)


def users_with_email(session_factory, email):
    with session_factory() as session:
        return session.query(User).filter(User.email == email).count()


def test_invite_creates_identity_and_profile(client, session_factory, make_trainer):
    trainer_id = make_trainer()
    with patch("fitcoach.mail.send_invite_email", return_value=True) as send:
        resp = invite(client, trainer_id, name="Bia Lima", email="Bia@Example.com", phone="555-0101",
                      birthDate="1994-03-02", goal="Run a 10k", isActive=True)
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Student invited successfully"
    assert body["student"]["email"] == "bia@example.com"
    assert body["student"]["status"] == "onboarding"

    with session_factory() as session:
        user = session.query(User).filter(User.email == "bia@example.com").one()
        student = session.query(Student).filter(Student.user_id == user.id).one()
        assert user.role == "student"
        assert student.trainer_id == trainer_id
        assert student.status == "onboarding"
        assert student.birth_date.isoformat() == "1994-03-02"
        assert session.query(PasswordResetToken).filter(PasswordResetToken.user_id == user.id).count() == 1

    send.assert_called_once()
    reset_url = send.call_args.args[3]
    assert "/auth/reset-password?token=" in reset_url


def test_invite_missing_email_creates_nothing(client, session_factory, make_trainer):
    trainer_id = make_trainer()
    resp = invite(client, trainer_id, name="No Email")
    assert resp.status_code == 400
    assert "error" in resp.json()
    with session_factory() as session:
        assert session.query(User).filter(User.role == "student").count() == 0
        assert session.query(Student).count() == 0


def test_invite_missing_name_is_rejected(client, make_trainer):
    resp = invite(client, make_trainer(), email="someone@example.com")
    assert resp.status_code == 400


def test_invite_requires_trainer_header(client, session_factory):
    resp = invite(client, None, name="Caio", email="caio@example.com")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Trainer ID is required"}
    assert users_with_email(session_factory, "caio@example.com") == 0


def test_profile_failure_leaves_no_orphaned_identity(client, session_factory):
    # no such trainer, so the profile insert violates students.trainer_id
    with patch("fitcoach.mail.send_invite_email") as send:
        resp = invite(client, 9999, name="Duda", email="duda@example.com")
    assert resp.status_code == 500
    assert resp.json()["error"]
    assert users_with_email(session_factory, "duda@example.com") == 0
    send.assert_not_called()


def test_duplicate_identity_is_a_server_error(client, session_factory, make_trainer):
    trainer_id = make_trainer()
    with patch("fitcoach.mail.send_invite_email", return_value=True):
        assert invite(client, trainer_id, name="Eva", email="eva@example.com").status_code == 200
        resp = invite(client, trainer_id, name="Eva Again", email="eva@example.com")
    assert resp.status_code == 500
    with session_factory() as session:
        assert session.query(Student).filter(Student.email == "eva@example.com").count() == 1


def test_undelivered_email_still_invites(client, session_factory, make_trainer):
    trainer_id = make_trainer()
    with patch("fitcoach.mail.send_invite_email", return_value=False):
        resp = invite(client, trainer_id, name="Fabi", email="fabi@example.com")
    assert resp.status_code == 200
    assert users_with_email(session_factory, "fabi@example.com") == 1


def test_invite_blank_email_counts_as_missing(client, session_factory, make_trainer):
    resp = invite(client, make_trainer(), name="Ana", email="   ")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Name and email are required"}
    assert invite(client, make_trainer(), name="Ana", email="").status_code == 400
    with session_factory() as session:
        assert session.query(User).filter(User.role == "student").count() == 0


def test_invite_malformed_email_is_rejected(client, session_factory, make_trainer):
    resp = invite(client, make_trainer(), name="Ana", email="not-an-email")
    assert resp.status_code == 400
    assert "Invalid email address" in resp.json()["error"]
    with session_factory() as session:
        assert session.query(User).filter(User.role == "student").count() == 0
