"""Shared fixtures: an in-memory sqlite database, users, events and an HTTP client."""
import os
from datetime import datetime, timedelta, timezone

# settle configuration before any angostura module reads it
os.environ["USE_REDIS_TOKEN_BUCKET"] = "0"
os.environ["CREATE_TABLES_ON_STARTUP"] = "0"
os.environ["CALENDAR_TIMEZONE"] = "UTC"
os.environ.setdefault("AUTH_PBKDF2_ROUNDS", "1000")

import httpx
import pytest
from sqlalchemy import event as sqla_event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from angostura import auth
from angostura.db import get_session
from angostura.main import app
from angostura.models import Base, Event, STATUS_AVAILABLE
from angostura.notifications import ConfirmationMailer, get_mailer
from angostura.services.profiles import SignUpForm, sign_up

PASSWORD = "secret-pass"


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @sqla_event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session):
    async def _make_user(username, *, admin=False, provider=False):
        profile = await sign_up(session, SignUpForm(
            username=username,
            full_name=f"{username.title()} Tester",
            email=f"{username}@example.com",
            phone="+1 555 123 4567",
            age=30,
            password=PASSWORD,
            confirm_password=PASSWORD,
        ))
        if admin or provider:
            profile.is_admin = admin
            profile.is_provider = provider
            await session.commit()
        return profile

    return _make_user


@pytest.fixture
def make_event(session):
    """Insert an event directly, skipping creation rules, so any state can be set up."""

    async def _make_event(title="Canyon Hike", *, start=None, hours=2, total_seats=10, seats_available=None,
                          status=STATUS_AVAILABLE, owner_id=None):
        start = start or datetime.now(timezone.utc) + timedelta(days=7)
        event = Event(
            title=title,
            description=f"{title} description",
            start_time=start,
            end_time=start + timedelta(hours=hours),
            duration=hours * 60,
            difficulty="Beginner",
            total_seats=total_seats,
            seats_available=total_seats if seats_available is None else seats_available,
            status=status,
            event_owner_id=owner_id,
        )
        session.add(event)
        await session.commit()
        await session.refresh(event)
        return event

    return _make_event


@pytest.fixture
def login(session):
    async def _login(profile):
        token = await auth.open_session(session, profile.id)
        return {"Authorization": f"Bearer {token}"}

    return _login


class FakeResend:
    """Stands in for the Resend API behind httpx.MockTransport."""

    def __init__(self):
        self.requests = []
        self.status_code = 200

    def __call__(self, request):
        self.requests.append(request)
        if self.status_code >= 400:
            return httpx.Response(self.status_code, text="mail provider unavailable")
        return httpx.Response(self.status_code, json={"id": f"email_{len(self.requests)}"})


@pytest.fixture
def resend():
    return FakeResend()


@pytest.fixture
async def client(session_factory, resend):
    async def _session_override():
        async with session_factory() as session:
            yield session

    mailer = ConfirmationMailer(api_key="test-key", transport=httpx.MockTransport(resend))
    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_mailer] = lambda: mailer

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()
