"""
Shared fixtures: an in-memory database, an in-memory local store and
recording stand-ins for the geocoder transport and notification senders.
"""

from typing import Dict, List, Optional, Set, Tuple

import aiohttp
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models.alert  # noqa: F401
import app.models.emergency  # noqa: F401
import app.models.ledger  # noqa: F401
import app.models.trip  # noqa: F401
import app.models.user  # noqa: F401
from app.config import Settings
from app.core.emergency_alert import EmergencyAlertService
from app.core.geocoding import Geocoder
from app.core.identity import IdentityGateway
from app.core.incident_ledger import IncidentLedger
from app.core.local_store import InMemoryLocalStore
from app.core.store import StoreGateway
from app.models.emergency import EmergencyEvent, EmergencyType, GeoPoint
from app.models.user import EmergencyContactCreate, UserProfileCreate
from app.utils.notifications import EmailSender, SMSSender

MUMBAI = GeoPoint(lat=19.0760, lng=72.8777)

FIXED_NOW = 1_700_000_000.0

# ============================================================================
# FAKES
# ============================================================================

class RecordingSMSService(SMSSender):
    """Records every send; phones in `failing` raise, phones in `rejecting` return False"""

    def __init__(self, failing: Optional[Set[str]] = None, rejecting: Optional[Set[str]] = None):
        self.sent: List[Tuple[str, str]] = []
        self.failing = failing or set()
        self.rejecting = rejecting or set()

    async def send_sms(self, phone: str, message: str) -> bool:
        self.sent.append((phone, message))
        if phone in self.failing:
            raise aiohttp.ClientConnectionError("sms gateway unreachable")
        return phone not in self.rejecting

class RecordingEmailService(EmailSender):
    def __init__(self, failing: Optional[Set[str]] = None):
        self.sent: List[Tuple[str, str, str]] = []
        self.failing = failing or set()

    async def send_email(self, to_email: str, subject: str, body: str) -> bool:
        self.sent.append((to_email, subject, body))
        if to_email in self.failing:
            raise OSError("smtp unreachable")
        return True

class FakeResponse:
    def __init__(self, status: int, payload: Dict):
        self.status = status
        self.payload = payload

    async def json(self):
        return self.payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

class FakeHTTPSession:
    """Stands in for aiohttp.ClientSession; records requests and replays one response"""

    def __init__(self, status: int = 200, payload: Optional[Dict] = None):
        self.status = status
        self.payload = payload or {}
        self.requests: List[Tuple[str, str, Dict]] = []

    def __call__(self):
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def get(self, url, **kwargs):
        self.requests.append(("GET", url, kwargs))
        return FakeResponse(self.status, self.payload)

    def post(self, url, **kwargs):
        self.requests.append(("POST", url, kwargs))
        return FakeResponse(self.status, self.payload)

def offline_session():
    raise aiohttp.ClientConnectionError("network unreachable")

def broken_session_factory():
    raise OSError("database unreachable")

# ============================================================================
# CONFIGURATION & DATABASE
# ============================================================================

@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite+aiosqlite://",
        SECRET_KEY="test-secret-key",
        API_URL="http://ledger.test",
        LOCAL_STORE_PATH=str(tmp_path / "local_store"),
    )

@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()

@pytest.fixture
def store(session_factory) -> StoreGateway:
    return StoreGateway(session_factory)

@pytest.fixture
def identity(session_factory, test_settings) -> IdentityGateway:
    return IdentityGateway(session_factory, test_settings)

@pytest.fixture
def local_store() -> InMemoryLocalStore:
    return InMemoryLocalStore()

# ============================================================================
# EMERGENCY PIPELINE
# ============================================================================

@pytest.fixture
def sms_service() -> RecordingSMSService:
    return RecordingSMSService()

@pytest.fixture
def email_service() -> RecordingEmailService:
    return RecordingEmailService()

@pytest.fixture
def offline_geocoder() -> Geocoder:
    return Geocoder("https://geocode.test/json", "test-key", session_factory=offline_session)

@pytest.fixture
def ledger(local_store) -> IncidentLedger:
    return IncidentLedger(
        local_store,
        "http://ledger.test",
        session_factory=offline_session,
        clock=lambda: FIXED_NOW,
    )

@pytest.fixture
def terminal_failures() -> List:
    return []

@pytest.fixture
def emergency_service(
    store, identity, offline_geocoder, sms_service, email_service, ledger,
    local_store, terminal_failures
) -> EmergencyAlertService:
    return EmergencyAlertService(
        store=store,
        identity=identity,
        geocoder=offline_geocoder,
        sms_service=sms_service,
        email_service=email_service,
        ledger=ledger,
        local_store=local_store,
        on_terminal_failure=terminal_failures.append,
        clock=lambda: FIXED_NOW,
    )

@pytest.fixture
async def traveler(identity):
    """A signed-up user with two contacts, one of them without email"""
    account, _ = await identity.sign_up(
        "traveler@example.com",
        "secret123",
        UserProfileCreate(name="Asha Rao", phone="+919800000000"),
    )
    user_id = str(account.id)
    await identity.add_emergency_contact(user_id, EmergencyContactCreate(
        name="Ravi", phone="+919811111111", email="ravi@example.com",
        relationship="brother", is_primary=True,
    ))
    await identity.add_emergency_contact(user_id, EmergencyContactCreate(
        name="Meera", phone="+919822222222", relationship="friend",
    ))
    return await identity.get_profile(user_id)

@pytest.fixture
def sos_event(traveler) -> EmergencyEvent:
    return EmergencyEvent(
        location=MUMBAI,
        timestamp="2024-03-01T10:15:00+00:00",
        emergency_type=EmergencyType.SOS_BUTTON,
        user_id=traveler.uid,
        digital_id=traveler.digital_id,
    )
