import os

# Tests never touch a real database file or real Twilio credentials
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["TWILIO_ACCOUNT_SID"] = ""
os.environ["TWILIO_AUTH_TOKEN"] = ""
os.environ["TWILIO_FROM_NUMBER"] = ""

from types import SimpleNamespace  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from paddle_rack.config import Settings  # noqa: E402
from paddle_rack.database import get_session  # noqa: E402
from paddle_rack.main import app  # noqa: E402
from paddle_rack.models import Court, Facility, Queue  # noqa: E402
from paddle_rack.services.notifier import Notifier, SmsClient  # noqa: E402
from paddle_rack.services.queue_engine import QueueEngine  # noqa: E402
from paddle_rack.services.webhook_emitter import WebhookEmitter  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Models are registered by importing paddle_rack.models (tests/__init__.py)
# 4. Schema is dropped and recreated for every test
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def make_test_session() -> Session:
    return Session(test_engine)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema."""
    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="settings")
def settings_fixture():
    return Settings()


@pytest.fixture(name="seed")
def seed_fixture(session: Session):
    """One facility, one intermediate queue feeding two courts."""
    facility = Facility(name="Riverside Pickleball", timezone="America/New_York")
    session.add(facility)
    session.commit()
    session.refresh(facility)

    queue = Queue(facility_id=facility.id, name="Intermediate", skill_level="intermediate")
    session.add(queue)
    session.commit()
    session.refresh(queue)

    court_1 = Court(facility_id=facility.id, queue_id=queue.id, name="Court 1")
    court_2 = Court(facility_id=facility.id, queue_id=queue.id, name="Court 2")
    session.add(court_1)
    session.add(court_2)
    session.commit()
    session.refresh(court_1)
    session.refresh(court_2)

    return SimpleNamespace(facility=facility, queue=queue, court=court_1, court_2=court_2)


@pytest.fixture(name="webhook_requests")
def webhook_requests_fixture():
    """Requests captured by the fake webhook receiver."""
    return []


@pytest.fixture(name="webhook_emitter")
def webhook_emitter_fixture(webhook_requests):
    def handler(request: httpx.Request) -> httpx.Response:
        webhook_requests.append(request)
        return httpx.Response(200, json={"received": True})

    emitter = WebhookEmitter(httpx.Client(transport=httpx.MockTransport(handler)))
    yield emitter
    emitter.close()


@pytest.fixture(name="notifier")
def notifier_fixture():
    return Notifier(make_test_session, SmsClient())


@pytest.fixture(name="queue_engine")
def queue_engine_fixture(settings, notifier, webhook_emitter):
    return QueueEngine(settings, notifier, webhook_emitter)


@pytest.fixture(name="client")
def client_fixture(session: Session, queue_engine: QueueEngine):
    """Provide a test client with overridden database session and collaborators.

    app.state is replaced after startup has run so the app never uses its own
    engine or collaborators.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        app.state.queue_engine = queue_engine
        app.state.session_factory = make_test_session
        yield client

    app.dependency_overrides.clear()
