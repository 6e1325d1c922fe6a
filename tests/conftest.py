import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Ensure project root is on sys.path so `import txmonitor` works when running pytest from root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Force test database URL before any txmonitor imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LEDGER_PROBE"] = "scripted"

from txmonitor.db import base  # noqa: E402
from txmonitor.db.base import Base  # noqa: E402
from txmonitor.monitor.clients import ScriptedLedgerProbe  # noqa: E402
from txmonitor.monitor.config import MonitorConfig, RateLimitConfig  # noqa: E402
from txmonitor.monitor.models import TxRecord  # noqa: E402
from txmonitor.monitor.ports import WebhookNotifier, WebhookResult  # noqa: E402
from txmonitor.monitor.publisher import InMemoryEventPublisher  # noqa: E402
from txmonitor.monitor.rate_limiter import RateLimiter  # noqa: E402
from txmonitor.monitor.state_machine import MonitorContext  # noqa: E402
from txmonitor.monitor.stores import InMemoryRecordStore, InMemoryUserDirectory  # noqa: E402

SUBMITTED_AT = 1_700_000_000_000


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = SUBMITTED_AT):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


class RecordingNotifier(WebhookNotifier):
    """Webhook notifier that remembers every delivery."""

    def __init__(self, delivered: bool = True):
        self.delivered = delivered
        self.calls = []

    async def notify(self, url, payload, idempotency_key):
        self.calls.append((url, payload, idempotency_key))
        return WebhookResult(url=url, delivered=self.delivered)


def make_record(tx_hash: str = "0xabc", **overrides) -> TxRecord:
    fields = dict(
        tx_hash=tx_hash,
        from_address="0xsender",
        to_address="0xreceiver",
        value=2_500_000_000_000_000_000,
        type="transferETH",
        nonce=7,
        ts=SUBMITTED_AT,
    )
    fields.update(overrides)
    return TxRecord(**fields)


def fast_config(**overrides) -> MonitorConfig:
    """Monitor config with no waiting between polls."""
    fields = dict(
        time_limit_ms=10_000,
        poll_interval_ms=0,
        initial_delay_ms=0,
        rate_limit=RateLimitConfig(max_concurrent=5, min_interval_ms=0),
    )
    fields.update(overrides)
    return MonitorConfig(**fields)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_context(notifier):
    """Build a MonitorContext around in-memory collaborators."""

    def _make(probe=None, store=None, users=None, config=None, publisher=None):
        config = config or fast_config()
        return MonitorContext(
            probe=probe or ScriptedLedgerProbe(),
            rate_limiter=RateLimiter(config.rate_limit),
            store=store or InMemoryRecordStore(),
            users=users or InMemoryUserDirectory(),
            publisher=publisher or InMemoryEventPublisher(),
            notifier=notifier,
            config=config,
        )

    return _make


@pytest_asyncio.fixture(scope="function")
async def test_db():
    """
    Provide a session factory bound to a fresh in-memory database.

    The application session factory is swapped for the test one so code
    using a default UnitOfWork hits the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    previous_factory = base.AsyncSessionLocal
    base.AsyncSessionLocal = session_factory
    try:
        yield session_factory
    finally:
        base.AsyncSessionLocal = previous_factory
        await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_db):
    """Get a database session for a test."""
    async with test_db() as session:
        yield session
        await session.rollback()  # Ensure clean state after test
