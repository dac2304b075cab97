"""Funnel analytics schemas."""

import enum

from cro_audit.schemas.common import BaseSchema


class FunnelDimension(str, enum.Enum):
    """Grouping attribute for funnel queries.

    ``ALL`` groups every row under the literal dimension value ``"ALL"``.
    """

    ALL = "all"
    BROWSER = "browser"
    DEVICE_CATEGORY = "device_category"
    COUNTRY = "country"
    OPERATING_SYSTEM = "operating_system"
    SCREEN_RESOLUTION = "screen_resolution"

    @classmethod
    def parse(cls, value: str | None) -> "FunnelDimension":
        """Parse a dimension name, falling back to ``ALL`` for unknown values."""
        try:
            return cls(value)
        except ValueError:
            return cls.ALL


class FunnelStage(BaseSchema):
    """One (dimension value, stage) row of a funnel analysis."""

    stage_order: int
    dimension: str
    funnel_stage: str
    total_users: int
    total_interactions: int
    prev_stage_users: int | None = None
    users_dropped: int | None = None
    dropoff_pct: float | None = None
    conversion_from_start_pct: float | None = None
    stage_conversion_pct: float | None = None
    ranking: int


class ScrollDepthData(BaseSchema):
    """Scroll-depth milestone for one dimension value."""

    dimension: str
    scroll_depth: str
    events: int
    users: int
    prev_stage_users: int | None = None
    drop_off_pct: float | None = None
    users_lost: int | None = None


class PagePathAnalytics(BaseSchema):
    """Pageview and engagement totals for one page path."""

    page_path: str
    total_pageviews: int
    total_users: int
    total_engagement_seconds: float
    avg_time_per_pageview_sec: float | None = None
    avg_time_per_user_sec: float | None = None


class EventNameSummary(BaseSchema):
    """Totals for one GA4 event name (debug view)."""

    event_name: str
    total_events: int
    total_users: int
