from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models import User
from app.services.code_generator import CodeGenerator
from app.services.code_validator import CodeValidator
from app.services.connection_memory_service import ConnectionMemoryService
from app.services.connection_reconciler import ConnectionReconciler
from app.services.connection_request_service import ConnectionRequestManager
from app.services.email_service import EmailTransport
from app.services.geocoding_service import ReverseGeocoder
from app.services.invitation_service import InvitationService
from app.services.notification_service import NotificationDispatcher
from app.services.rate_limit_service import RateLimiter
from app.services.scan_flow import ScanFlow
from app.services.scan_tracker import ScanTracker
from app.utils.id_generator import IdGenerator
from app.utils.pending_token import PendingTokenSigner

ORIGIN = "https://connect.example.com"
TOKEN_SECRET = "test-pending-secret"


class FakeClock:
    def __init__(self, start: datetime = None):
        self.current = start or datetime.now(timezone.utc).replace(microsecond=0)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


class FakeEmailTransport(EmailTransport):
    def __init__(self):
        self.sent = []
        self.fail_with = None

    async def send(self, to, subject, text, html_body=None):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html_body})


class FakeGeolocator:
    """Stands in for geopy's Nominatim."""

    def __init__(self, error: Exception = None):
        self.error = error
        self.calls = 0

    def reverse(self, point, exactly_one=True, language="en"):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return SimpleNamespace(
            address="1 Market St, San Francisco, United States",
            raw={"address": {"city": "San Francisco", "country": "United States"}}
        )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ids():
    return IdGenerator()


@pytest.fixture
def email_transport():
    return FakeEmailTransport()


@pytest.fixture
def geolocator():
    return FakeGeolocator()


@pytest.fixture
def geocoder(geolocator):
    return ReverseGeocoder("qr-connect-tests", timeout_seconds=1.0, geolocator=geolocator)


@pytest.fixture
def signer():
    return PendingTokenSigner(TOKEN_SECRET, ttl_days=7)


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db, clock):
    async def _make_user(user_id: str, email: str = None, **fields) -> User:
        user = User(
            id=user_id,
            email=email or f"{user_id}@example.com",
            first_name=fields.pop("first_name", user_id.capitalize()),
            last_name=fields.pop("last_name", "Tester"),
            created_at=clock.now(),
            updated_at=clock.now(),
            **fields
        )
        db.add(user)
        await db.commit()
        return user

    return _make_user


@pytest.fixture
def code_generator(db, clock, ids):
    return CodeGenerator(db, clock, ids, ORIGIN, ttl_hours=24)


@pytest.fixture
def code_validator(db, clock):
    return CodeValidator(db, clock)


@pytest.fixture
def scan_tracker(db, clock, ids, geocoder):
    return ScanTracker(db, clock, ids, geocoder)


@pytest.fixture
def rate_limiter(db, clock):
    return RateLimiter(db, clock)


@pytest.fixture
def invitation_service(db, clock, ids, email_transport, rate_limiter):
    return InvitationService(
        db, clock, ids, email_transport, ORIGIN,
        ttl_days=7,
        rate_limiter=rate_limiter,
        rate_limit_attempts=3,
        rate_limit_window=timedelta(hours=1)
    )


@pytest.fixture
def memory_service(db, clock, ids):
    return ConnectionMemoryService(db, clock, ids)


@pytest.fixture
def request_manager(db, clock, ids):
    return ConnectionRequestManager(db, clock, ids)


@pytest.fixture
def notifier(db, clock, ids):
    return NotificationDispatcher(db, clock, ids)


@pytest.fixture
def scan_flow(db, clock, ids, code_validator, scan_tracker, memory_service, request_manager,
              invitation_service, notifier, signer):
    return ScanFlow(db, clock, ids, code_validator, scan_tracker, memory_service, request_manager,
                    invitation_service, notifier, signer)


@pytest.fixture
def reconciler(db, invitation_service, memory_service, request_manager, notifier, signer):
    return ConnectionReconciler(db, invitation_service, memory_service, request_manager, notifier, signer)
