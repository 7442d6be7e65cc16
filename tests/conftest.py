"""Pytest fixtures for WebQ tests."""

import operator
import re
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID

import pytest
import pytest_asyncio
import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from uuid_utils.compat import uuid7

from webq.config.settings import ErasureConfig, Settings, StorageBackend
from webq.db.config import create_engine, create_session_factory
from webq.db.models import (
    Account,
    Base,
    ClientOnboarding,
    ClientProject,
    CookieConsentLog,
    DesignDelivery,
    DesignDeliveryFile,
    DesignFeedback,
    DesignOrder,
    Notification,
    Profile,
    ProjectCredential,
    ProjectFile,
    ProjectTicket,
    TicketMessage,
    TimelineMessage,
    UserRole,
)
from webq.erasure.coordinator import ErasureCoordinator, build_erasure_coordinator
from webq.storage.memory import InMemoryObjectStore

STORAGE_HOST = "https://portal.example.co"


# =============================================================================
# Structlog Configuration Fixture
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_structlog_after_test():
    """Reset structlog configuration after each test.

    This ensures tests that modify structlog global state
    don't affect other tests.
    """
    yield
    structlog.reset_defaults()
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


# =============================================================================
# Clock and settings
# =============================================================================


class FakeClock:
    """Controllable replacement for utc_now()."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 2, 9, 30, tzinfo=UTC))


@pytest.fixture
def erasure_config() -> ErasureConfig:
    return ErasureConfig(
        secret_key=SecretStr("test-erasure-secret"),
        execution_timeout_seconds=30.0,
    )


@pytest.fixture
def test_settings(erasure_config: ErasureConfig) -> Settings:
    """Settings for tests: in-memory object storage and database locks."""
    return Settings(
        ENVIRONMENT="test",
        DEBUG=True,
        log_level="DEBUG",
        API_SECRET_KEY=SecretStr("test-api-secret-0123456789abcdef"),
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        STORAGE_BACKEND=StorageBackend.MEMORY,
        erasure=erasure_config,
    )


# =============================================================================
# Database fixtures
# =============================================================================


@pytest_asyncio.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine so concurrent sessions see each other's commits."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'webq.db'}", poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(test_engine)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def count_rows(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[int]]:
    """Count rows of a model, optionally filtered by column equality."""

    async def _count(model, **filters) -> int:
        query = select(func.count()).select_from(model)
        for name, value in filters.items():
            query = query.where(getattr(model, name) == value)
        async with session_factory() as session:
            return await session.scalar(query)

    return _count


# =============================================================================
# Portal data
# =============================================================================


def storage_url(bucket: str, key: str) -> str:
    return f"{STORAGE_HOST}/storage/v1/object/public/{bucket}/{key}"


@dataclass
class SeededAccount:
    """Ids and storage objects of a seeded client account."""

    account_id: UUID
    project_ids: list[UUID] = field(default_factory=list)
    ticket_id: UUID | None = None
    objects: list[tuple[str, str]] = field(default_factory=list)


@pytest.fixture
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def seed_account(
    session_factory: async_sessionmaker[AsyncSession],
    object_store: InMemoryObjectStore,
) -> Callable[..., Awaitable[SeededAccount]]:
    """Insert a client account with projects, a ticket, design work and files.

    The account owns 2 projects with 3 project files between them, 1 ticket
    with 2 messages, one design order with 2 delivered files, and a brand
    logo; 6 storage objects in total.
    """

    async def _seed(store: InMemoryObjectStore | None = None, email: str | None = None):
        store = store if store is not None else object_store
        account_id = uuid7()
        seeded = SeededAccount(account_id=account_id)

        def add_object(bucket: str, key: str) -> str:
            store.put(bucket, key, b"data")
            seeded.objects.append((bucket, key))
            return storage_url(bucket, key)

        async with session_factory() as session, session.begin():
            session.add(Account(id=account_id, email=email or f"{account_id}@client.example"))
            await session.flush()

            project_ids = [uuid7(), uuid7()]
            order_id, ticket_id = uuid7(), uuid7()
            session.add_all(
                [
                    Profile(user_id=account_id, full_name="Dana Client"),
                    UserRole(user_id=account_id, role="client"),
                    Notification(user_id=account_id, message="Welcome aboard"),
                    Notification(user_id=account_id, message="Your invoice is ready"),
                    ClientOnboarding(
                        user_id=account_id,
                        company_name="Dana Studio",
                        logo_url=add_object("brand-files", f"{account_id}/logo.png"),
                    ),
                    TimelineMessage(client_id=account_id, body="Kickoff call booked"),
                    ClientProject(id=project_ids[0], client_id=account_id, name="Website"),
                    ClientProject(id=project_ids[1], client_id=account_id, name="Shop"),
                    DesignOrder(id=order_id, client_id=account_id, title="Brand refresh"),
                ]
            )
            await session.flush()

            delivery_id = uuid7()
            session.add_all(
                [
                    ProjectFile(
                        project_id=project_ids[0],
                        file_name="f1.pdf",
                        file_url=add_object("project-files", f"{project_ids[0]}/f1.pdf"),
                    ),
                    ProjectFile(
                        project_id=project_ids[0],
                        file_name="f2.pdf",
                        file_url=add_object("project-files", f"{project_ids[0]}/f2.pdf"),
                    ),
                    ProjectFile(
                        project_id=project_ids[1],
                        file_name="f3.pdf",
                        file_url=add_object("project-files", f"{project_ids[1]}/f3.pdf"),
                    ),
                    ProjectCredential(
                        project_id=project_ids[1], label="Hosting", secret_value="hunter2"
                    ),
                    ProjectTicket(id=ticket_id, project_id=project_ids[0], title="Broken link"),
                    DesignDelivery(id=delivery_id, order_id=order_id),
                ]
            )
            await session.flush()

            # Second delivery file is stored as a bare bucket/key path
            add_object("brand-files", f"{account_id}/mockup.png")
            session.add_all(
                [
                    TicketMessage(ticket_id=ticket_id, body="The footer link is broken"),
                    TicketMessage(ticket_id=ticket_id, body="Fixed, please check"),
                    DesignDeliveryFile(
                        delivery_id=delivery_id,
                        file_url=add_object("design-files", f"{order_id}/v1.png"),
                    ),
                    DesignDeliveryFile(
                        delivery_id=delivery_id,
                        file_url=f"brand-files/{account_id}/mockup.png",
                    ),
                    DesignFeedback(delivery_id=delivery_id, body="Love it"),
                ]
            )

        seeded.project_ids = project_ids
        seeded.ticket_id = ticket_id
        return seeded

    return _seed


@pytest.fixture
def seed_consent(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[None]]:
    """Insert cookie consent log rows for an anonymous session."""

    async def _seed(session_id: UUID, count: int = 2) -> None:
        async with session_factory() as session, session.begin():
            session.add_all(
                CookieConsentLog(
                    session_id=session_id,
                    preferences={"analytics": bool(i % 2), "marketing": False},
                )
                for i in range(count)
            )

    return _seed


# =============================================================================
# Challenges
# =============================================================================

_PROMPT = re.compile(r"^(\d+) ([+\-×]) (\d+) = \?$")
_OPS = {"+": operator.add, "-": operator.sub, "×": operator.mul}


@pytest.fixture
def solve_challenge() -> Callable[[str], int]:
    """Compute the answer of a challenge prompt like ``"7 × 3 = ?"``."""

    def _solve(prompt: str) -> int:
        match = _PROMPT.match(prompt)
        assert match, f"unexpected prompt {prompt!r}"
        return _OPS[match.group(2)](int(match.group(1)), int(match.group(3)))

    return _solve


# =============================================================================
# Coordinator and API fixtures
# =============================================================================


@pytest.fixture
def coordinator(
    test_settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    object_store: InMemoryObjectStore,
    clock: FakeClock,
) -> ErasureCoordinator:
    return build_erasure_coordinator(test_settings, session_factory, object_store, clock=clock)


@pytest.fixture
def test_app(
    test_settings: Settings,
    coordinator: ErasureCoordinator,
    session_factory: async_sessionmaker[AsyncSession],
) -> FastAPI:
    """FastAPI app wired to the test database and in-memory storage."""
    from webq.api.app import create_app

    return create_app(
        settings=test_settings,
        coordinator=coordinator,
        session_factory=session_factory,
    )


@pytest_asyncio.fixture
async def test_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client calling the app in-process."""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
        headers={"User-Agent": "pytest-browser/1.0"},
    ) as client:
        yield client


@pytest_asyncio.fixture
async def operator_client(
    test_app: FastAPI,
    test_settings: Settings,
) -> AsyncGenerator[AsyncClient, None]:
    """Client carrying the operator API key."""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
        headers={
            "Authorization": f"Bearer {test_settings.API_SECRET_KEY.get_secret_value()}",
        },
    ) as client:
        yield client
