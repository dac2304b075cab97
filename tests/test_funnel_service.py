"""Tests for FunnelService against the GA4 aggregate tables.

Covers:
- Missing dataset detection (events and page paths)
- Dimension projection including "all" and unset values
- Project/connector isolation and SQL date filtering
- Drop-off points, scroll depth, page paths and event names
"""

import uuid
from collections.abc import Callable
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from cro_audit.schemas.funnel import FunnelDimension
from cro_audit.services.funnel_service import DatasetNotFoundError, FunnelService
from tests.conftest import CONNECTOR_ID, PROJECT_ID


class TestDatasetChecks:
    """Tests for the 'pull data first' failure."""

    async def test_funnel_without_data_raises(self, sqlite_session: AsyncSession) -> None:
        """Querying a connector that never had data fails fast."""
        service = FunnelService(sqlite_session)

        with pytest.raises(DatasetNotFoundError, match="Pull GA4 data first"):
            await service.get_funnel(PROJECT_ID, CONNECTOR_ID, "20250101", "20250131")

    async def test_data_outside_range_returns_empty(
        self,
        sqlite_session: AsyncSession,
        ga4_event_factory: Callable[..., Any],
    ) -> None:
        """A populated dataset with no rows in range returns an empty funnel."""
        await ga4_event_factory(event_name="session_start", active_users=10, date="20240601")
        service = FunnelService(sqlite_session)

        result = await service.get_funnel(PROJECT_ID, CONNECTOR_ID, "20250101", "20250131")

        assert result == []

    async def test_other_connector_data_does_not_count(
        self,
        sqlite_session: AsyncSession,
        ga4_event_factory: Callable[..., Any],
    ) -> None:
        """Data of another connector does not satisfy the dataset check."""
        await ga4_event_factory(
            event_name="session_start", active_users=10, connector_id=uuid.uuid4()
        )
        service = FunnelService(sqlite_session)

        assert await service.has_event_data(PROJECT_ID, CONNECTOR_ID) is False
        with pytest.raises(DatasetNotFoundError):
            await service.ensure_event_data(PROJECT_ID, CONNECTOR_ID)

    async def test_page_paths_without_data_raises(
        self,
        sqlite_session: AsyncSession,
        ga4_event_factory: Callable[..., Any],
    ) -> None:
        """Page paths have their own dataset check."""
        await ga4_event_factory(event_name="session_start", active_users=10)
        service = FunnelService(sqlite_session)

        with pytest.raises(DatasetNotFoundError, match="page path"):
            await service.get_page_paths(PROJECT_ID, CONNECTOR_ID, "20250101", "20250131")


class TestGetFunnel:
    """Tests for funnel queries."""

    async def test_all_dimension_groups_everything(
        self,
        sqlite_session: AsyncSession,
        ga4_event_factory: Callable[..., Any],
    ) -> None:
        """Dimension 'all' reports a single ALL partition."""
        await ga4_event_factory(
            event_name="session_start", active_users=60, device_category="mobile"
        )
        await ga4_event_factory(
            event_name="session_start", active_users=40, device_category="desktop"
        )
        await ga4_event_factory(event_name="view_item_list", active_users=80)
        service = FunnelService(sqlite_session)

        stages = await service.get_funnel(PROJECT_ID, CONNECTOR_ID, "20250101", "20250131")

        assert [(s.dimension, s.funnel_stage, s.total_users) for s in stages] == [
            ("ALL", "Home", 100),
            ("ALL", "PLP", 80),
        ]
        assert stages[1].dropoff_pct == 20.0

    async def test_device_dimension(
        self,
        sqlite_session: AsyncSession,
        ga4_event_factory: Callable[..., Any],
    ) -> None:
        """Rows are partitioned by the requested dimension column."""
        await ga4_event_factory(
            event_name="session_start", active_users=60, device_category="mobile"
        )
        await ga4_event_factory(
            event_name="session_start", active_users=40, device_category=None
        )
        service = FunnelService(sqlite_session)

        stages = await service.get_funnel(
            PROJECT_ID,
            CONNECTOR_ID,
            "20250101",
            "20250131",
            FunnelDimension.DEVICE_CATEGORY,
        )

        assert [(s.dimension, s.ranking) for s in stages] == [("mobile", 1), ("(not set)", 2)]

    async def test_identical_periods_compare_equal(
        self,
        sqlite_session: AsyncSession,
        ga4_event_factory: Callable[..., Any],
    ) -> None:
        """Running the same range twice yields identical funnels."""
        await ga4_event_factory(event_name="session_start", active_users=100)
        await ga4_event_factory(event_name="view_cart", active_users=20)
        service = FunnelService(sqlite_session)

        first = await service.get_funnel(PROJECT_ID, CONNECTOR_ID, "20250101", "20250131")
        second = await service.get_funnel(PROJECT_ID, CONNECTOR_ID, "20250101", "20250131")

        assert first == second

    async def test_drop_off_points(
        self,
        sqlite_session: AsyncSession,
        ga4_event_factory: Callable[..., Any],
    ) -> None:
        """Drop-off points come worst first."""
        await ga4_event_factory(event_name="session_start", active_users=100)
        await ga4_event_factory(event_name="view_item_list", active_users=90)
        await ga4_event_factory(event_name="view_item", active_users=30)
        service = FunnelService(sqlite_session)

        points = await service.get_drop_off_points(
            PROJECT_ID, CONNECTOR_ID, "20250101", "20250131"
        )

        assert [p.funnel_stage for p in points] == ["PDP", "PLP"]


class TestOtherViews:
    """Tests for scroll depth, page paths and event names."""

    async def test_scroll_depth(
        self,
        sqlite_session: AsyncSession,
        ga4_event_factory: Callable[..., Any],
    ) -> None:
        """Only scroll events are loaded and ordered by depth."""
        await ga4_event_factory(event_name="scroll_50", active_users=50)
        await ga4_event_factory(event_name="scroll_25", active_users=100)
        await ga4_event_factory(event_name="session_start", active_users=500)
        service = FunnelService(sqlite_session)

        result = await service.get_scroll_depth(PROJECT_ID, CONNECTOR_ID, "20250101", "20250131")

        assert [(r.scroll_depth, r.drop_off_pct) for r in result] == [
            ("scroll_25", None),
            ("scroll_50", 50.0),
        ]

    async def test_page_paths(
        self,
        sqlite_session: AsyncSession,
        page_path_factory: Callable[..., Any],
    ) -> None:
        """Page paths are aggregated within the range."""
        await page_path_factory(
            page_path="/cart", screen_page_views=10, total_users=5, user_engagement_duration=50.0
        )
        await page_path_factory(
            page_path="/cart",
            screen_page_views=10,
            total_users=5,
            user_engagement_duration=50.0,
            date="20250201",
        )
        service = FunnelService(sqlite_session)

        result = await service.get_page_paths(PROJECT_ID, CONNECTOR_ID, "20250101", "20250131")

        assert len(result) == 1
        assert result[0].total_pageviews == 10
        assert result[0].avg_time_per_pageview_sec == 5.0
        assert result[0].avg_time_per_user_sec == 10.0

    async def test_event_names(
        self,
        sqlite_session: AsyncSession,
        ga4_event_factory: Callable[..., Any],
    ) -> None:
        """Every event name in range is listed."""
        await ga4_event_factory(event_name="page_view", active_users=10, sessions=30)
        await ga4_event_factory(event_name="session_start", active_users=10, sessions=12)
        service = FunnelService(sqlite_session)

        result = await service.get_event_names(PROJECT_ID, CONNECTOR_ID, "20250101", "20250131")

        assert [(e.event_name, e.total_events) for e in result] == [
            ("page_view", 30),
            ("session_start", 12),
        ]
