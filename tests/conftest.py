"""Pytest configuration and fixtures for the CRO audit API test suite.

Provides:
- In-memory SQLite session with the GA4 aggregate tables
- Mock database session and an HTTP client with ``get_db`` overridden
- Session factory helper for agent tools
- Model factories for GA4 rows, projects, connectors and reports
"""

import uuid
from collections.abc import AsyncGenerator, AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cro_audit.core.deps import get_db
from cro_audit.main import app
from cro_audit.models.base import Base
from cro_audit.models.ga4 import Ga4Event, Ga4PagePath
from cro_audit.models.project import Connector, ConnectorType, Project
from cro_audit.schemas.cro_report import CroReport, FunnelAnalysis, QualitativeInsights

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
PROJECT_ID = UUID("11111111-1111-1111-1111-111111111111")
CONNECTOR_ID = UUID("22222222-2222-2222-2222-222222222222")
OTHER_PROJECT_ID = UUID("33333333-3333-3333-3333-333333333333")
TEST_MODEL_ID = "anthropic.claude-sonnet-4-20250514-v1:0"


# ---------------------------------------------------------------------------
# SQLite database with the GA4 aggregate tables
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def sqlite_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a session on a fresh in-memory SQLite database.

    Only the GA4 tables are created; the other tables use PostgreSQL-only
    column types (JSONB, vector).
    """
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(
            Base.metadata.create_all,
            tables=[Ga4Event.__table__, Ga4PagePath.__table__],
        )
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def ga4_event_factory(sqlite_session: AsyncSession) -> Callable[..., Any]:
    """Factory that inserts GA4 event aggregate rows."""

    async def _create(
        *,
        event_name: str,
        active_users: int,
        sessions: int | None = None,
        date: str = "20250115",
        project_id: UUID = PROJECT_ID,
        connector_id: UUID = CONNECTOR_ID,
        browser: str | None = "Chrome",
        device_category: str | None = "desktop",
        country: str | None = "United States",
        operating_system: str | None = "Windows",
        screen_resolution: str | None = "1920x1080",
    ) -> Ga4Event:
        event = Ga4Event(
            project_id=project_id,
            connector_id=connector_id,
            date=date,
            event_name=event_name,
            browser=browser,
            device_category=device_category,
            country=country,
            operating_system=operating_system,
            screen_resolution=screen_resolution,
            active_users=active_users,
            sessions=sessions if sessions is not None else active_users,
        )
        sqlite_session.add(event)
        await sqlite_session.commit()
        return event

    return _create


@pytest.fixture
def page_path_factory(sqlite_session: AsyncSession) -> Callable[..., Any]:
    """Factory that inserts GA4 page-path aggregate rows."""

    async def _create(
        *,
        page_path: str,
        screen_page_views: int,
        total_users: int,
        user_engagement_duration: float,
        date: str = "20250115",
        project_id: UUID = PROJECT_ID,
        connector_id: UUID = CONNECTOR_ID,
    ) -> Ga4PagePath:
        row = Ga4PagePath(
            project_id=project_id,
            connector_id=connector_id,
            date=date,
            page_path=page_path,
            screen_page_views=screen_page_views,
            total_users=total_users,
            user_engagement_duration=user_engagement_duration,
        )
        sqlite_session.add(row)
        await sqlite_session.commit()
        return row

    return _create


# ---------------------------------------------------------------------------
# Mock database session
# ---------------------------------------------------------------------------


def scalar_result(value: Any) -> MagicMock:
    """Build a mock ``Result`` whose ``scalar_one_or_none()`` returns ``value``."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def make_session_factory(session: Any) -> Callable[[], Any]:
    """Build a session factory that always yields ``session``."""

    @asynccontextmanager
    async def _factory() -> AsyncIterator[Any]:
        yield session

    return _factory


@pytest.fixture
def mock_db() -> MagicMock:
    """Mock AsyncSession; tests queue results on ``execute``."""
    session = MagicMock(spec=AsyncSession)
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


# ---------------------------------------------------------------------------
# HTTP clients
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(mock_db: MagicMock) -> AsyncGenerator[AsyncClient, None]:
    """Async test client with ``get_db`` overridden by the mock session."""

    async def _override_db() -> AsyncGenerator[MagicMock, None]:
        yield mock_db

    app.dependency_overrides[get_db] = _override_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def plain_client() -> AsyncGenerator[AsyncClient, None]:
    """Minimal async test client with NO dependency overrides."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ---------------------------------------------------------------------------
# Model factories (unsaved)
# ---------------------------------------------------------------------------


def make_project(project_id: UUID = PROJECT_ID, name: str = "Test Shop") -> Project:
    """Build an in-memory Project."""
    return Project(id=project_id, name=name, description=None)


def make_connector(
    connector_id: UUID = CONNECTOR_ID,
    project_id: UUID = PROJECT_ID,
    connector_type: ConnectorType = ConnectorType.GA4,
) -> Connector:
    """Build an in-memory Connector."""
    return Connector(
        id=connector_id,
        project_id=project_id,
        name="GA4 property",
        connector_type=connector_type,
        config={"property_id": "123456"},
    )


def make_report(
    project_id: UUID = PROJECT_ID,
    connector_id: UUID = CONNECTOR_ID,
    executive_summary: str = "Mobile checkout loses most users.",
) -> CroReport:
    """Build a finished CroReport."""
    return CroReport(
        id=uuid.uuid4(),
        project_id=project_id,
        connector_id=connector_id,
        created_at=datetime(2025, 2, 18, 12, 0, tzinfo=UTC),
        executive_summary=executive_summary,
        funnel_analysis=FunnelAnalysis(overview="Funnel overview"),
        qualitative_insights=QualitativeInsights(overview="Feedback overview"),
        recommendations=[],
        model_used=TEST_MODEL_ID,
        input_tokens=1200,
        output_tokens=300,
        tool_calls_count=4,
        duration_ms=5400,
    )
