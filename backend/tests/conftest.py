"""
Praxis OS Backend: Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   No real database, auth provider or push service is used. Sessions are
       AsyncMocks, and the API client swaps the auth client, session and
       push sender through app.dependency_overrides.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── mock_db_session: Mock database session
    ├── make_result:     Builds mock `execute()` results
    ├── fake_auth:       Token → identity table instead of the auth provider
    ├── fake_sender:     Recording push sender with scripted outcomes
    └── test_client:     HTTPX AsyncClient wired to the app with the fakes above
"""

import os

# Override settings for testing BEFORE any praxis imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["DB_APPLY_RLS_CLAIMS"] = "false"
os.environ["SUPABASE_URL"] = "https://abcdefgh.supabase.co"
os.environ["SUPABASE_ANON_KEY"] = "test-anon-key"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["VAPID_PUBLIC_KEY"] = "test-public-key"
os.environ["VAPID_PRIVATE_KEY"] = "test-private-key"
os.environ["VAPID_SUBJECT"] = "mailto:praxis@example.com"
os.environ["PUSH_RETRY_INITIAL_WAIT"] = "0"
os.environ["PUSH_RETRY_MAX_WAIT"] = "0.1"

import uuid  # noqa: E402
from typing import Any, Dict, List, Optional, Tuple  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from praxis.exceptions import ConfigurationError  # noqa: E402
from praxis.services.auth_base import AuthClient, CallerIdentity  # noqa: E402
from praxis.services.push_base import DeliveryOutcome, PushSender  # noqa: E402

THERAPIST_ID = uuid.UUID("11111111-1111-4111-8111-111111111111")
PATIENT_USER_ID = uuid.UUID("22222222-2222-4222-8222-222222222222")
ADMIN_ID = uuid.UUID("33333333-3333-4333-8333-333333333333")

THERAPIST_TOKEN = "therapist-token"
PATIENT_TOKEN = "patient-token"
ADMIN_TOKEN = "admin-token"


class FakeAuthClient(AuthClient):
    """Resolves a fixed set of tokens; everything else is anonymous."""

    def __init__(self, users: Dict[str, CallerIdentity]):
        self.users = users
        self.calls: List[str] = []

    async def get_user(self, access_token: str) -> Optional[CallerIdentity]:
        self.calls.append(access_token)
        return self.users.get(access_token)

    async def close(self) -> None:
        return None


class FakePushSender(PushSender):
    """Records deliveries; outcome per endpoint, SENT when not scripted."""

    def __init__(self):
        self.outcomes: Dict[str, DeliveryOutcome] = {}
        self.sent: List[Tuple[Dict[str, Any], Dict[str, Any]]] = []
        self.configured = True

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError()

    async def send(self, subscription: Dict[str, Any], payload: Dict[str, Any]) -> DeliveryOutcome:
        self.sent.append((subscription, payload))
        return self.outcomes.get(subscription.get("endpoint"), DeliveryOutcome.SENT)


@pytest.fixture
def mock_db_session():
    """
    A mock AsyncSession. Configure `execute` per test:

        mock_db_session.execute.return_value = make_result(scalar=course_id)
        mock_db_session.execute.side_effect = [result_a, result_b]
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    return session


@pytest.fixture
def make_result():
    """Factory for the object `await session.execute(...)` returns."""

    def _make(scalar: Any = None, rows: Optional[List[Any]] = None, first: Any = None) -> MagicMock:
        result = MagicMock()
        result.scalar_one_or_none.return_value = scalar
        result.first.return_value = first
        items = rows if rows is not None else ([scalar] if scalar is not None else [])
        result.scalars.return_value.all.return_value = items
        result.scalars.return_value.first.return_value = items[0] if items else None
        return result

    return _make


@pytest.fixture
def therapist():
    return CallerIdentity(id=THERAPIST_ID, email="therapeut@example.com")


@pytest.fixture
def patient_user():
    return CallerIdentity(id=PATIENT_USER_ID, email="patient@example.com")


@pytest.fixture
def fake_auth(therapist, patient_user):
    return FakeAuthClient(
        {
            THERAPIST_TOKEN: therapist,
            PATIENT_TOKEN: patient_user,
            ADMIN_TOKEN: CallerIdentity(id=ADMIN_ID, email="admin@example.com"),
        }
    )


@pytest.fixture
def fake_sender():
    return FakePushSender()


@pytest_asyncio.fixture
async def test_client(mock_db_session, fake_auth, fake_sender):
    """
    HTTPX AsyncClient talking to the app in-process.

        response = await test_client.get("/health")
    """
    from praxis.database import get_db_session
    from praxis.main import app
    from praxis.services.auth_service import get_auth_client
    from praxis.services.webpush_service import get_push_sender

    async def _session():
        yield mock_db_session

    app.dependency_overrides[get_db_session] = _session
    app.dependency_overrides[get_auth_client] = lambda: fake_auth
    app.dependency_overrides[get_push_sender] = lambda: fake_sender

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
