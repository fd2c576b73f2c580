import os
import tempfile

# the app creates its default database at import time; keep it out of the repo
os.environ.setdefault("DATABASE_URL", f"sqlite:///{tempfile.mkdtemp()}/fitcoach.db")

import datetime as dt
import hashlib
import hmac
import json
import time

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from fitcoach import deps, webhooks
from fitcoach.auth import hash_password
from fitcoach.db import get_db, make_engine
from fitcoach.main import app
from fitcoach.models import Base, Student, Trainer, User

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
def session_factory(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory, monkeypatch):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    monkeypatch.setattr(webhooks, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def make_trainer(session_factory):
    counter = {"n": 0}

    def _make(tier="free", status="inactive", parent_id=None, password="secret-pass"):
        counter["n"] += 1
        email = f"trainer{counter['n']}@example.com"
        with session_factory() as session:
            user = User(email=email, password_hash=hash_password(password), role="trainer", full_name=f"Trainer {counter['n']}")
            session.add(user)
            session.flush()
            session.add(Trainer(
                id=user.id,
                email=email,
                full_name=user.full_name,
                subscription_tier=tier,
                subscription_status=status,
                parent_trainer_id=parent_id,
            ))
            session.commit()
            return user.id

    return _make


@pytest.fixture
def make_student(session_factory):
    def _make(trainer_id, name="Ana Souza", status="active"):
        with session_factory() as session:
            student = Student(trainer_id=trainer_id, full_name=name, email=f"{name.split()[0].lower()}@example.com", status=status)
            session.add(student)
            session.commit()
            return student.id

    return _make


def auth_headers(user_id, role="trainer"):
    token = jwt.encode(
        {"sub": str(user_id), "role": role, "exp": dt.datetime.now(dt.timezone.utc) + dt.timedelta(hours=1)},
        deps.JWT_SECRET,
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


def stripe_signature(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    timestamp = timestamp or int(time.time())
    signed = hmac.new(secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signed}"


def stripe_event(event_type: str, obj: dict, event_id: str = "evt_test_1") -> str:
    return json.dumps({"id": event_id, "object": "event", "type": event_type, "data": {"object": obj}})
