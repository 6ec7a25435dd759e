"""
Pytest configuration and fixtures for multiblog tests

Every test that touches storage gets its own SQLite file under tmp_path, so
concurrent transactions behave like separate connections to one database.
"""

import os
import sys
from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH119, PTH120

from multiblog.database import Base, build_session_factory  # noqa: E402
from multiblog.services.isolation import IsolationEnforcer  # noqa: E402
from multiblog.services.notification_service import BackgroundDispatcher, EmailNotifier  # noqa: E402
from multiblog.services.provisioning import ProvisioningWorkflow  # noqa: E402
from multiblog.services.registration_store import RegistrationSessionStore  # noqa: E402
from multiblog.services.tenant_directory import TenantDirectory, TenantRegistration  # noqa: E402
from multiblog.services.tenant_resolver import TenantResolver  # noqa: E402
from multiblog.utils.audit import AuditSink  # noqa: E402

PLATFORM_DOMAIN = "platform.tld"
RESERVED_LABELS = ["www", "admin", "api", "app", "signup"]
THEMES = ["classic", "minimal"]


class FakeClock:
    """Controllable replacement for utcnow()."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingSink(AuditSink):
    """Audit sink that keeps events in memory as well as logging them."""

    def __init__(self):
        super().__init__()
        self.events: list[tuple[str, dict]] = []

    def _emit(self, level, event, message, fields):
        self.events.append((event, fields))
        super()._emit(level, event, message, fields)

    def of(self, event: str) -> list[dict]:
        return [fields for name, fields in self.events if name == event]


class RecordingNotifier(EmailNotifier):
    def __init__(self):
        super().__init__(from_email="no-reply@platform.tld", platform_domain=PLATFORM_DOMAIN)
        self.sent = []

    async def deliver(self, message) -> None:
        self.sent.append(message)


def make_registration(subdomain: str = "acme", **overrides) -> TenantRegistration:
    values = {
        "owner_ref": f"user-{subdomain}",
        "owner_email": f"owner@{subdomain}.example.com",
        "display_name": subdomain.title(),
        "subdomain": subdomain,
        "theme": "classic",
    }
    values.update(overrides)
    return TenantRegistration(**values)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 12, 0, 0))


@pytest.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'multiblog_test.db'}", echo=False)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def directory(session_factory, clock):
    return TenantDirectory(
        session_factory,
        platform_domain=PLATFORM_DOMAIN,
        reserved_labels=RESERVED_LABELS,
        grace_period=timedelta(days=30),
        suggestion_count=3,
        clock=clock,
    )


@pytest.fixture
def resolver(directory):
    return TenantResolver(
        directory,
        platform_domain=PLATFORM_DOMAIN,
        reserved_labels=RESERVED_LABELS,
        cache_ttl_seconds=60,
        cache_max_entries=100,
    )


@pytest.fixture
def enforcer(session_factory, sink):
    return IsolationEnforcer(session_factory, sink)


@pytest.fixture
def store(session_factory, clock):
    return RegistrationSessionStore(
        session_factory,
        ttl=timedelta(hours=24),
        themes=THEMES,
        default_theme="classic",
        clock=clock,
    )


@pytest.fixture
def dispatcher():
    return BackgroundDispatcher()


@pytest.fixture
def workflow(directory, store, notifier, sink, dispatcher, clock):
    return ProvisioningWorkflow(
        directory,
        store,
        notifier=notifier,
        sink=sink,
        dispatcher=dispatcher,
        commit_timeout=5.0,
        default_plan_tier="free",
        clock=clock,
    )


@pytest.fixture
async def acme(directory):
    """A registered, active tenant on acme.platform.tld."""
    await directory.register(make_registration("acme"))
    return await directory.resolve("acme")


@pytest.fixture
async def globex(directory):
    await directory.register(make_registration("globex"))
    return await directory.resolve("globex")
