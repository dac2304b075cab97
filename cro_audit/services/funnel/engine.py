"""Funnel analytics over GA4 event aggregates.

Everything here is pure computation: the caller loads raw aggregate rows and
the functions below filter, group and derive the conversion metrics. Dates
are fixed-width ``YYYYMMDD`` strings, so range filters compare them as text.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from cro_audit.schemas.funnel import (
    EventNameSummary,
    FunnelStage,
    PagePathAnalytics,
    ScrollDepthData,
)

# GA4 event name -> (stage name, stage order)
FUNNEL_STAGES: dict[str, tuple[str, int]] = {
    "session_start": ("Home", 1),
    "view_item_list": ("PLP", 2),
    "view_item": ("PDP", 3),
    "view_cart": ("Cart", 4),
    "begin_checkout": ("Checkout", 5),
    "add_shipping_info": ("Shipping", 6),
    "add_payment_info": ("Payment", 7),
    "purchase": ("Confirmation", 8),
}

SCROLL_EVENTS = frozenset(
    {"scroll_25", "scroll_50", "scroll_75", "scroll_90", "25", "50", "75", "90"}
)

# Dimension values kept per stage, ranked by users
MAX_ROWS_PER_STAGE = 10


@dataclass(frozen=True)
class EventRow:
    """One daily event aggregate, already projected onto a single dimension."""

    date: str
    dimension_value: str
    event_name: str
    active_users: int
    sessions: int


@dataclass(frozen=True)
class PagePathRow:
    """One daily page-path aggregate."""

    date: str
    page_path: str
    screen_page_views: int
    total_users: int
    user_engagement_duration: float


def _in_range(date: str, start_date: str, end_date: str) -> bool:
    return start_date <= date <= end_date


def _round_half_up(value: Decimal | float, ndigits: int = 2) -> float:
    """Round halves away from zero, as SQL ``ROUND`` does."""
    return float(Decimal(value).quantize(Decimal(1).scaleb(-ndigits), rounding=ROUND_HALF_UP))


def _pct(numerator: int, denominator: int | None, ndigits: int = 2) -> float | None:
    """Percentage of ``numerator`` over ``denominator``, null when undefined."""
    if not denominator:
        return None
    return _round_half_up(Decimal(100 * numerator) / Decimal(denominator), ndigits)


def compute_funnel(
    rows: Iterable[EventRow],
    start_date: str,
    end_date: str,
) -> list[FunnelStage]:
    """Build the ranked funnel for a date range.

    Rows whose event is not a funnel event are discarded. Within each
    dimension value, lag metrics compare a stage with the previous stage
    that has data. For every stage only the ``MAX_ROWS_PER_STAGE`` dimension
    values with the most users are kept; ties are broken by dimension value.

    Args:
        rows: Raw event aggregates
        start_date: Inclusive start, ``YYYYMMDD``
        end_date: Inclusive end, ``YYYYMMDD``

    Returns:
        Stages ordered by stage order, then users descending
    """
    users: dict[tuple[str, int], int] = defaultdict(int)
    interactions: dict[tuple[str, int], int] = defaultdict(int)

    for row in rows:
        stage = FUNNEL_STAGES.get(row.event_name)
        if stage is None or not _in_range(row.date, start_date, end_date):
            continue
        key = (row.dimension_value, stage[1])
        users[key] += row.active_users
        interactions[key] += row.sessions

    stage_names = {order: name for name, order in FUNNEL_STAGES.values()}

    orders_by_dimension: dict[str, list[int]] = defaultdict(list)
    for dimension, order in users:
        orders_by_dimension[dimension].append(order)

    by_stage: dict[int, list[FunnelStage]] = defaultdict(list)
    for dimension, orders in orders_by_dimension.items():
        orders.sort()
        first_users = users[(dimension, orders[0])]
        prev_users: int | None = None

        for order in orders:
            current = users[(dimension, order)]
            dropped = prev_users - current if prev_users is not None else None
            by_stage[order].append(
                FunnelStage(
                    stage_order=order,
                    dimension=dimension,
                    funnel_stage=stage_names[order],
                    total_users=current,
                    total_interactions=interactions[(dimension, order)],
                    prev_stage_users=prev_users,
                    users_dropped=dropped,
                    dropoff_pct=_pct(dropped, prev_users) if dropped is not None else None,
                    conversion_from_start_pct=_pct(current, first_users),
                    stage_conversion_pct=_pct(current, prev_users),
                    ranking=0,
                )
            )
            prev_users = current

    result: list[FunnelStage] = []
    for order in sorted(by_stage):
        ranked = sorted(by_stage[order], key=lambda s: (-s.total_users, s.dimension))
        for position, stage_row in enumerate(ranked[:MAX_ROWS_PER_STAGE], start=1):
            result.append(stage_row.model_copy(update={"ranking": position}))

    return result


def rank_drop_offs(stages: Sequence[FunnelStage]) -> list[FunnelStage]:
    """Keep stages that lose users, worst first.

    The sort is stable so equal drop-offs keep their funnel order.
    """
    losing = [s for s in stages if s.dropoff_pct is not None and s.dropoff_pct > 0]
    return sorted(losing, key=lambda s: -(s.dropoff_pct or 0.0))


def scroll_depth_key(event_name: str) -> tuple[int, int, str]:
    """Sort key for scroll events: numeric depth first, unparsable names last."""
    stripped = event_name.replace("scroll_", "").replace("%", "")
    try:
        return (0, int(stripped), event_name)
    except ValueError:
        return (1, 0, event_name)


def compute_scroll_depth(
    rows: Iterable[EventRow],
    start_date: str,
    end_date: str,
) -> list[ScrollDepthData]:
    """Scroll-depth milestones per dimension value with drop-off between them."""
    events: dict[tuple[str, str], int] = defaultdict(int)
    users: dict[tuple[str, str], int] = defaultdict(int)

    for row in rows:
        if row.event_name not in SCROLL_EVENTS or not _in_range(row.date, start_date, end_date):
            continue
        key = (row.dimension_value, row.event_name)
        events[key] += row.sessions
        users[key] += row.active_users

    depths_by_dimension: dict[str, list[str]] = defaultdict(list)
    for dimension, event_name in users:
        depths_by_dimension[dimension].append(event_name)

    result: list[ScrollDepthData] = []
    for dimension in sorted(depths_by_dimension):
        prev_users: int | None = None
        for event_name in sorted(depths_by_dimension[dimension], key=scroll_depth_key):
            current = users[(dimension, event_name)]
            lost = prev_users - current if prev_users is not None else None
            result.append(
                ScrollDepthData(
                    dimension=dimension,
                    scroll_depth=event_name,
                    events=events[(dimension, event_name)],
                    users=current,
                    prev_stage_users=prev_users,
                    drop_off_pct=_pct(lost, prev_users, 1) if lost is not None else None,
                    users_lost=lost,
                )
            )
            prev_users = current

    return result


def compute_page_paths(
    rows: Iterable[PagePathRow],
    start_date: str,
    end_date: str,
) -> list[PagePathAnalytics]:
    """Pageviews, users and engagement time per page path, busiest first."""
    pageviews: dict[str, int] = defaultdict(int)
    users: dict[str, int] = defaultdict(int)
    engagement: dict[str, float] = defaultdict(float)

    for row in rows:
        if not _in_range(row.date, start_date, end_date):
            continue
        pageviews[row.page_path] += row.screen_page_views
        users[row.page_path] += row.total_users
        engagement[row.page_path] += row.user_engagement_duration

    result = [
        PagePathAnalytics(
            page_path=path,
            total_pageviews=pageviews[path],
            total_users=users[path],
            total_engagement_seconds=engagement[path],
            avg_time_per_pageview_sec=(
                _round_half_up(engagement[path] / pageviews[path]) if pageviews[path] else None
            ),
            avg_time_per_user_sec=(
                _round_half_up(engagement[path] / users[path]) if users[path] else None
            ),
        )
        for path in pageviews
    ]
    result.sort(key=lambda p: (-p.total_pageviews, p.page_path))
    return result


def compute_event_names(
    rows: Iterable[EventRow],
    start_date: str,
    end_date: str,
) -> list[EventNameSummary]:
    """Totals per event name, used to see which GA4 events exist in a range."""
    events: dict[str, int] = defaultdict(int)
    users: dict[str, int] = defaultdict(int)

    for row in rows:
        if not _in_range(row.date, start_date, end_date):
            continue
        events[row.event_name] += row.sessions
        users[row.event_name] += row.active_users

    result = [
        EventNameSummary(event_name=name, total_events=events[name], total_users=users[name])
        for name in events
    ]
    result.sort(key=lambda e: (-e.total_events, e.event_name))
    return result
