from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sipdesk import email_service
from sipdesk.auth import Actor, create_access_token
from sipdesk.clock import FixedClock, get_clock
from sipdesk.database import Base, get_db
from sipdesk.main import app
from sipdesk.models import User

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role="customer", wallet=0, email=None):
        counter["n"] += 1
        user = User(
            full_name=f"{role.title()} {counter['n']}",
            email=email or f"{role}{counter['n']}@example.com",
            role=role,
            referral_wallet=wallet,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def actor_for():
    def _actor(user):
        return Actor(user_id=user.id, role=user.role)

    return _actor


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 10, 9, 30))


@pytest.fixture
def sent_emails(monkeypatch):
    """Capture outgoing email instead of calling Resend"""
    sent = []

    async def fake_send_email(to, subject, mjml_content, from_address=None):
        sent.append({"to": to, "subject": subject})
        return {"id": "test"}

    monkeypatch.setattr(email_service, "send_email", fake_send_email)
    return sent


@pytest.fixture
def client(engine, db, clock, sent_emails):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    # Tables come from the engine fixture, so the lifespan hook is not entered
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}

    return _headers

