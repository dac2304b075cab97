"""Funnel analytics service over the GA4 aggregate tables."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cro_audit.models.ga4 import Ga4Event, Ga4PagePath
from cro_audit.schemas.funnel import (
    EventNameSummary,
    FunnelDimension,
    FunnelStage,
    PagePathAnalytics,
    ScrollDepthData,
)
from cro_audit.services.funnel.engine import (
    FUNNEL_STAGES,
    SCROLL_EVENTS,
    EventRow,
    PagePathRow,
    compute_event_names,
    compute_funnel,
    compute_page_paths,
    compute_scroll_depth,
    rank_drop_offs,
)

logger = logging.getLogger(__name__)

ALL_DIMENSION_VALUE = "ALL"
NOT_SET_DIMENSION_VALUE = "(not set)"


class DatasetNotFoundError(Exception):
    """Raised when no GA4 data was ever pulled for a project connector."""

    def __init__(self, message: str = "No data available. Pull GA4 data first.") -> None:
        super().__init__(message)
        self.message = message


class FunnelService:
    """Loads GA4 aggregates for one project connector and runs the funnel engine."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def has_event_data(self, project_id: UUID, connector_id: UUID) -> bool:
        """Check whether any GA4 event rows exist for the connector."""
        stmt = (
            select(Ga4Event.id)
            .where(Ga4Event.project_id == project_id, Ga4Event.connector_id == connector_id)
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.first() is not None

    async def ensure_event_data(self, project_id: UUID, connector_id: UUID) -> None:
        """Raise DatasetNotFoundError unless GA4 event data has been pulled."""
        if not await self.has_event_data(project_id, connector_id):
            raise DatasetNotFoundError()

    async def _load_events(
        self,
        project_id: UUID,
        connector_id: UUID,
        start_date: str,
        end_date: str,
        dimension: FunnelDimension,
        event_names: frozenset[str] | None = None,
    ) -> list[EventRow]:
        await self.ensure_event_data(project_id, connector_id)

        dimension_column: Any = (
            None if dimension == FunnelDimension.ALL else getattr(Ga4Event, dimension.value)
        )
        columns = [Ga4Event.date, Ga4Event.event_name, Ga4Event.active_users, Ga4Event.sessions]
        if dimension_column is not None:
            columns.append(dimension_column.label("dimension_value"))

        stmt = select(*columns).where(
            Ga4Event.project_id == project_id,
            Ga4Event.connector_id == connector_id,
            Ga4Event.date >= start_date,
            Ga4Event.date <= end_date,
        )
        if event_names is not None:
            stmt = stmt.where(Ga4Event.event_name.in_(sorted(event_names)))

        result = await self.db.execute(stmt)

        return [
            EventRow(
                date=row.date,
                dimension_value=(
                    ALL_DIMENSION_VALUE
                    if dimension_column is None
                    else row.dimension_value or NOT_SET_DIMENSION_VALUE
                ),
                event_name=row.event_name,
                active_users=row.active_users or 0,
                sessions=row.sessions or 0,
            )
            for row in result.all()
        ]

    async def get_funnel(
        self,
        project_id: UUID,
        connector_id: UUID,
        start_date: str,
        end_date: str,
        dimension: FunnelDimension = FunnelDimension.ALL,
    ) -> list[FunnelStage]:
        """Get the ranked funnel for a date range, optionally broken down by a dimension.

        Args:
            project_id: Owning project
            connector_id: GA4 connector the data was pulled through
            start_date: Inclusive start, ``YYYYMMDD``
            end_date: Inclusive end, ``YYYYMMDD``
            dimension: Grouping attribute

        Returns:
            Funnel stages ordered by stage, then users descending

        Raises:
            DatasetNotFoundError: If no GA4 data was pulled for the connector
        """
        rows = await self._load_events(
            project_id,
            connector_id,
            start_date,
            end_date,
            dimension,
            event_names=frozenset(FUNNEL_STAGES),
        )
        stages = compute_funnel(rows, start_date, end_date)
        logger.info(
            "Funnel computed for connector %s (%s-%s, %s): %d rows",
            connector_id,
            start_date,
            end_date,
            dimension.value,
            len(stages),
        )
        return stages

    async def get_drop_off_points(
        self,
        project_id: UUID,
        connector_id: UUID,
        start_date: str,
        end_date: str,
    ) -> list[FunnelStage]:
        """Get the overall funnel stages that lose users, worst drop-off first."""
        stages = await self.get_funnel(project_id, connector_id, start_date, end_date)
        return rank_drop_offs(stages)

    async def get_scroll_depth(
        self,
        project_id: UUID,
        connector_id: UUID,
        start_date: str,
        end_date: str,
        dimension: FunnelDimension = FunnelDimension.ALL,
    ) -> list[ScrollDepthData]:
        """Get scroll-depth milestones with drop-off between them."""
        rows = await self._load_events(
            project_id,
            connector_id,
            start_date,
            end_date,
            dimension,
            event_names=SCROLL_EVENTS,
        )
        return compute_scroll_depth(rows, start_date, end_date)

    async def get_event_names(
        self,
        project_id: UUID,
        connector_id: UUID,
        start_date: str,
        end_date: str,
    ) -> list[EventNameSummary]:
        """List the GA4 event names present in a date range with their totals."""
        rows = await self._load_events(
            project_id, connector_id, start_date, end_date, FunnelDimension.ALL
        )
        return compute_event_names(rows, start_date, end_date)

    async def get_page_paths(
        self,
        project_id: UUID,
        connector_id: UUID,
        start_date: str,
        end_date: str,
    ) -> list[PagePathAnalytics]:
        """Get pageview and engagement totals per page path.

        Raises:
            DatasetNotFoundError: If no page-path data was pulled for the connector
        """
        base_filter = (
            Ga4PagePath.project_id == project_id,
            Ga4PagePath.connector_id == connector_id,
        )
        exists_stmt = select(Ga4PagePath.id).where(*base_filter).limit(1)
        if (await self.db.execute(exists_stmt)).first() is None:
            raise DatasetNotFoundError("No data available. Pull GA4 page path data first.")

        stmt = select(
            Ga4PagePath.date,
            Ga4PagePath.page_path,
            Ga4PagePath.screen_page_views,
            Ga4PagePath.total_users,
            Ga4PagePath.user_engagement_duration,
        ).where(
            *base_filter,
            Ga4PagePath.date >= start_date,
            Ga4PagePath.date <= end_date,
        )
        result = await self.db.execute(stmt)

        rows = [
            PagePathRow(
                date=row.date,
                page_path=row.page_path,
                screen_page_views=row.screen_page_views or 0,
                total_users=row.total_users or 0,
                user_engagement_duration=row.user_engagement_duration or 0.0,
            )
            for row in result.all()
        ]
        return compute_page_paths(rows, start_date, end_date)
