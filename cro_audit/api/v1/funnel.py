"""GA4 funnel analytics endpoints."""

from collections.abc import Awaitable
from typing import Annotated, TypeVar

from fastapi import APIRouter, HTTPException, Query, status

from cro_audit.core.deps import DBSession, Ga4ConnectorDep
from cro_audit.schemas.funnel import (
    EventNameSummary,
    FunnelDimension,
    FunnelStage,
    PagePathAnalytics,
    ScrollDepthData,
)
from cro_audit.services.funnel_service import DatasetNotFoundError, FunnelService

T = TypeVar("T")

router = APIRouter()

DateParam = Annotated[str, Query(pattern=r"^\d{8}$", description="Date in YYYYMMDD format")]


async def _or_conflict(call: Awaitable[T]) -> T:
    try:
        return await call
    except DatasetNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message) from e


@router.get(
    "/{project_id}/connectors/{connector_id}/funnel",
    response_model=list[FunnelStage],
)
async def get_funnel(
    connector: Ga4ConnectorDep,
    db: DBSession,
    start_date: DateParam,
    end_date: DateParam,
    dimension: FunnelDimension = FunnelDimension.ALL,
) -> list[FunnelStage]:
    """Get the ranked conversion funnel for a date range."""
    service = FunnelService(db)
    return await _or_conflict(
        service.get_funnel(connector.project_id, connector.id, start_date, end_date, dimension)
    )


@router.get(
    "/{project_id}/connectors/{connector_id}/scroll-depth",
    response_model=list[ScrollDepthData],
)
async def get_scroll_depth(
    connector: Ga4ConnectorDep,
    db: DBSession,
    start_date: DateParam,
    end_date: DateParam,
    dimension: FunnelDimension = FunnelDimension.ALL,
) -> list[ScrollDepthData]:
    """Get scroll-depth milestones with drop-off between them."""
    service = FunnelService(db)
    return await _or_conflict(
        service.get_scroll_depth(
            connector.project_id, connector.id, start_date, end_date, dimension
        )
    )


@router.get(
    "/{project_id}/connectors/{connector_id}/page-paths",
    response_model=list[PagePathAnalytics],
)
async def get_page_paths(
    connector: Ga4ConnectorDep,
    db: DBSession,
    start_date: DateParam,
    end_date: DateParam,
) -> list[PagePathAnalytics]:
    """Get pageviews and engagement time per page path."""
    service = FunnelService(db)
    return await _or_conflict(
        service.get_page_paths(connector.project_id, connector.id, start_date, end_date)
    )


@router.get(
    "/{project_id}/connectors/{connector_id}/event-names",
    response_model=list[EventNameSummary],
)
async def get_event_names(
    connector: Ga4ConnectorDep,
    db: DBSession,
    start_date: DateParam,
    end_date: DateParam,
) -> list[EventNameSummary]:
    """List GA4 event names in a date range (debug view)."""
    service = FunnelService(db)
    return await _or_conflict(
        service.get_event_names(connector.project_id, connector.id, start_date, end_date)
    )
