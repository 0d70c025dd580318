"""
Shared fixtures for Propel PRD backend tests.

Each test gets its own SQLite database file (via aiosqlite) created with
``Base.metadata.create_all``. Set TEST_DATABASE_URL to point the global
engine elsewhere; the per-test stores always use the temporary file.

Gemini and webhook traffic never leaves the process: API tests override the
generator/notifier dependencies with the recording fakes below.
"""
from __future__ import annotations

import os
from typing import Any, AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Override DATABASE_URL *before* any app module is imported, so that
# settings.DATABASE_URL and the global engine never point at a real server.
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

from app.database import Base, get_db  # noqa: E402
from app.dependencies.gateways import get_generator, get_notifier, get_persistence  # noqa: E402
from app.main import app  # noqa: E402
from app.models import database_models  # noqa: E402,F401
from app.models.schemas import (  # noqa: E402
    PRD,
    AppSettings,
    ApprovalStatus,
    Comment,
    GenerationContext,
)
from app.services.generation import GenerationGateway  # noqa: E402
from app.services.persistence import (  # noqa: E402
    DatabasePersistenceGateway,
    PersistenceError,
    PersistenceGateway,
)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakePersistence(PersistenceGateway):
    """
    In-memory store that records every call.

    Set ``fail`` to make every write raise ``PersistenceError``, or
    ``fail_fetch`` / ``fail_settings`` for the read paths.
    """

    def __init__(self) -> None:
        self.records: Dict[str, Dict[str, Any]] = {}
        self.app_settings: Optional[AppSettings] = None
        self.saved: List[PRD] = []
        self.comments: List[tuple] = []
        self.upvotes: List[tuple] = []
        self.statuses: List[tuple] = []
        self.fail = False
        self.fail_fetch = False
        self.fail_settings = False

    def _check(self) -> None:
        if self.fail:
            raise PersistenceError("store unavailable")

    async def fetch_by_id(self, prd_id: str) -> Optional[Dict[str, Any]]:
        if self.fail_fetch:
            raise PersistenceError("store unavailable")
        return self.records.get(prd_id)

    async def save(self, prd: PRD) -> PRD:
        self._check()
        self.saved.append(prd)
        self.records[prd.id] = prd.model_dump(mode="json", by_alias=True)
        return prd

    async def add_comment(self, prd_id: str, comment: Comment) -> List[Comment]:
        self._check()
        self.comments.append((prd_id, comment))
        return [comment]

    async def toggle_upvote(self, prd_id: str, increment: bool) -> int:
        self._check()
        self.upvotes.append((prd_id, increment))
        return len(self.upvotes)

    async def update_status(self, prd_id: str, status: ApprovalStatus) -> None:
        self._check()
        self.statuses.append((prd_id, status))

    async def get_settings(self) -> AppSettings:
        if self.fail_settings:
            raise PersistenceError("settings unavailable")
        return self.app_settings or AppSettings()

    async def save_settings(self, app_settings: AppSettings) -> None:
        self._check()
        self.app_settings = app_settings


class FakeGenerator(GenerationGateway):
    """
    Generator returning canned text and recording the context of every call.

    ``section_text`` may be a string or a callable ``(title, context) -> str``.
    Set ``error`` to raise it from every call.
    """

    def __init__(self, section_text: Any = "Generated content", description: str = "A product.") -> None:
        self.section_text = section_text
        self.description = description
        self.enhanced: Optional[str] = None
        self.error: Optional[Exception] = None
        self.section_calls: List[tuple] = []
        self.description_calls: List[str] = []
        self.enhance_calls: List[tuple] = []

    async def generate_section(self, title: str, context: GenerationContext) -> str:
        self.section_calls.append((title, context))
        if self.error:
            raise self.error
        if callable(self.section_text):
            return self.section_text(title, context)
        return self.section_text

    async def generate_description(self, product_name: str) -> str:
        self.description_calls.append(product_name)
        if self.error:
            raise self.error
        return self.description

    async def enhance(self, text: str, instruction: str) -> str:
        self.enhance_calls.append((text, instruction))
        if self.error:
            raise self.error
        return self.enhanced if self.enhanced is not None else text


class FakeNotifier:
    """Stands in for WebhookNotifier; records approval events."""

    def __init__(self, delivered: bool = True) -> None:
        self.delivered = delivered
        self.approvals: List[Dict[str, Any]] = []
        self.tested: List[str] = []

    async def trigger_approval(self, webhook_url, prd_id, status, title, comment=None,
                               approver_name=None, approver_email=None) -> bool:
        self.approvals.append(
            {
                "webhook_url": webhook_url,
                "prd_id": prd_id,
                "status": status,
                "title": title,
                "comment": comment,
                "approver_name": approver_name,
                "approver_email": approver_email,
            }
        )
        return self.delivered

    async def test_connection(self, webhook_url: str) -> bool:
        self.tested.append(webhook_url)
        return self.delivered


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Session factory bound to a fresh SQLite file with all tables created."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'propel_test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def db_store(session_factory) -> DatabasePersistenceGateway:
    return DatabasePersistenceGateway(session_factory)


@pytest.fixture
def fake_store() -> FakePersistence:
    return FakePersistence()


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def fake_notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest_asyncio.fixture
async def client(
    session_factory,
    db_store: DatabasePersistenceGateway,
    fake_generator: FakeGenerator,
    fake_notifier: FakeNotifier,
) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with the DB, store, generator
    and notifier dependencies overridden for the test.
    """

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_persistence] = lambda: db_store
    app.dependency_overrides[get_generator] = lambda: fake_generator
    app.dependency_overrides[get_notifier] = lambda: fake_notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def stored_record(prd_id: str = "prd-1", **overrides: Any) -> Dict[str, Any]:
    """A camelCase record as the store would return it."""
    record: Dict[str, Any] = {
        "id": prd_id,
        "productName": "Acme",
        "shortDescription": "Rockets for roadrunners.",
        "sections": [
            {"id": "executive_summary", "content": "Stored summary", "isEnabled": True},
        ],
        "upvotes": 3,
        "comments": [],
        "approvalStatus": "pending",
        "status": "draft",
    }
    record.update(overrides)
    return record


