"""
Pytest configuration and fixtures for the alerting backend tests
"""
from datetime import datetime
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from secureheart_alerts.adapters.push import PushClient, PushMessage
from secureheart_alerts.core.config import Settings
from secureheart_alerts.main import create_app
from secureheart_alerts.repositories import db_models
from secureheart_alerts.repositories.repository import Repository
from secureheart_alerts.services.emergency_processor import EmergencyEventProcessor
from secureheart_alerts.services.notification_dispatcher import NotificationDispatcher


class FakePushClient(PushClient):
    """Records messages; tokens listed in `failures` raise the given error instead."""

    def __init__(self):
        self.sent: List[PushMessage] = []
        self.failures: Dict[str, Exception] = {}
        self.calls: Dict[str, int] = {}

    def send(self, message: PushMessage, timeout: Optional[float] = None) -> str:
        self.calls[message.token] = self.calls.get(message.token, 0) + 1
        exc = self.failures.get(message.token)
        if exc is not None:
            raise exc
        self.sent.append(message)
        return f"projects/test/messages/{len(self.sent)}"

    def sent_to(self, token: str) -> List[PushMessage]:
        return [m for m in self.sent if m.token == token]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def repository(engine):
    repo = Repository(engine)
    repo.init_db()
    return repo


@pytest.fixture
def push_client():
    return FakePushClient()


@pytest.fixture
def dispatcher(push_client):
    return NotificationDispatcher(push_client, timeout=1.0, sleep=lambda _: None)


@pytest.fixture
def processor(repository, dispatcher):
    return EmergencyEventProcessor(repository, dispatcher)


@pytest.fixture
def make_user(engine):
    """Insert a user with a fixed id."""
    def _make(user_id: str, push_token: str = "") -> db_models.User:
        user = db_models.User(id=user_id, auth_token=f"token-{user_id}", push_token=push_token)
        with Session(engine, expire_on_commit=False) as session:
            session.add(user)
            session.commit()
        return user
    return _make


@pytest.fixture
def add_contact(engine):
    """Insert one entry into owner's linked contacts."""
    def _add(
        owner_user_id: str,
        contact_user_id: str,
        first_name: str = "Contact",
        push_token: str = "",
        share_location_with_me: bool = False,
    ) -> db_models.LinkedContact:
        contact = db_models.LinkedContact(
            owner_user_id=owner_user_id,
            contact_user_id=contact_user_id,
            contact_first_name=first_name,
            push_token=push_token,
            linked_at=datetime.utcnow(),
            share_location_with_me=share_location_with_me,
        )
        with Session(engine, expire_on_commit=False) as session:
            session.add(contact)
            session.commit()
        return contact
    return _add


@pytest.fixture
def make_request(repository):
    """Write an emergency request and return its id."""
    def _make(user_id: str = "u1", **overrides) -> str:
        fields = dict(
            emergency_event_id=f"evt-{user_id}",
            user_id=user_id,
            user_first_name="Alice",
            heart_rate=165,
            severity="critical",
            timestamp=1700000000.0,
            share_location=False,
        )
        fields.update(overrides)
        return repository.create_emergency_request(**fields)
    return _make


@pytest.fixture
def test_settings():
    return Settings(scheduler_enabled=False, _env_file=None)


@pytest.fixture
def client(engine, push_client, test_settings):
    app = create_app(settings=test_settings, engine=engine, push_client=push_client)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def sign_in(client):
    """Anonymous sign-in; returns (user_id, auth headers)."""
    def _sign_in():
        resp = client.post("/auth/anonymous")
        assert resp.status_code == 201, resp.text
        data = resp.json()
        return data["user_id"], {"Authorization": f"Bearer {data['auth_token']}"}
    return _sign_in
