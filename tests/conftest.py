"""
Shared test fixtures — async DB, patched settings, test client.
"""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from scouts import models  # noqa: F401  (register tables)
from scouts.config import Settings
from scouts.database import Base, get_db
from scouts.main import app
from scouts.models.account import Account, UserPreferences
from scouts.models.scout import Scout, ScoutExecution


TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

NOW = datetime(2026, 3, 11, 12, 0, tzinfo=timezone.utc)  # a Wednesday

SLACK_WEBHOOK = "https://hooks.slack.com/services/T0123ABCD/B0456EFGH/abcDEF123ghi"


# ── Test Database (SQLite in-memory) ────────────────────

@pytest_asyncio.fixture()
async def db_engine():
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def verify_db(session_factory):
    """Fresh session for reading what the services committed."""
    def _open():
        return session_factory()
    return _open


# ── Patch every service module onto the test DB ─────────

SERVICE_MODULES = [
    "scouts.database",
    "scouts.services.reconciler",
    "scouts.services.dormancy",
    "scouts.services.dispatcher",
    "scouts.services.executor",
    "scouts.services.notify",
    "scouts.services.credentials",
]


@pytest.fixture(autouse=True)
def patch_db_factory(session_factory):
    patchers = [patch(f"{mod}.async_session_factory", session_factory) for mod in SERVICE_MODULES]
    for p in patchers:
        p.start()
    yield session_factory
    for p in patchers:
        p.stop()


@pytest_asyncio.fixture()
async def client(session_factory):
    """FastAPI test client with test DB injected."""

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Settings ────────────────────────────────────────────

SETTINGS_IMPORT_POINTS = [
    "scouts.config.settings",
    "scouts.routes.settings",
    "scouts.services.scout_cron.settings",
    "scouts.services.executor.settings",
    "scouts.services.notify.settings",
    "scouts.services.credentials.settings",
]


@pytest.fixture(autouse=True)
def mock_settings():
    """Deterministic settings, patched at ALL import points."""
    test_settings = Settings(
        database_url=TEST_DB_URL,
        cron_enabled=False,
        stuck_execution_timeout_secs=180,
        executor_max_runtime_secs=180,
        inactivity_threshold_days=30,
        agent_url="",
        firecrawl_partner_key="partner_test_key",
        firecrawl_api_url="https://firecrawl.test/v1/partner/keys",
        slack_test_cooldown_secs=60,
        notification_timezone="Asia/Tokyo",
    )
    patchers = [patch(target, test_settings) for target in SETTINGS_IMPORT_POINTS]
    for p in patchers:
        p.start()
    yield test_settings
    for p in patchers:
        p.stop()


# ── Sample data ─────────────────────────────────────────

def make_scout(**overrides) -> Scout:
    """A complete, active daily scout; override any column."""
    fields = {
        "id": str(uuid.uuid4()),
        "user_id": "user-1",
        "title": "Ramen openings",
        "goal": "Find new ramen shops opening nearby",
        "description": "Track announcements of new ramen restaurants",
        "location": {"city": "Tokyo"},
        "search_queries": ["new ramen shop opening"],
        "frequency": "daily",
        "is_active": True,
    }
    fields.update(overrides)
    return Scout(**fields)


def make_execution(scout: Scout, started_at: datetime, status: str = "succeeded", **overrides) -> ScoutExecution:
    fields = {
        "scout_id": scout.id,
        "status": status,
        "started_at": started_at,
        "completed_at": None if status == "running" else started_at + timedelta(seconds=40),
    }
    fields.update(overrides)
    return ScoutExecution(**fields)


def make_account(account_id: str, last_sign_in_at: datetime | None) -> Account:
    return Account(id=account_id, email=f"{account_id}@example.com", last_sign_in_at=last_sign_in_at)


@pytest.fixture
def sample_scout():
    return make_scout()


@pytest_asyncio.fixture()
async def seed(db_session):
    """Persist objects and return them: ``await seed(scout, execution)``."""
    async def _seed(*objs):
        for obj in objs:
            db_session.add(obj)
            await db_session.flush()
        await db_session.commit()
        return objs
    return _seed


@pytest_asyncio.fixture()
async def slack_prefs(seed):
    prefs = UserPreferences(user_id="user-1", slack_webhook_url=SLACK_WEBHOOK)
    await seed(prefs)
    return prefs
