"""Pydantic schemas for request/response validation."""

from cro_audit.schemas.common import HealthResponse
from cro_audit.schemas.cro_report import (
    CroRecommendation,
    CroReport,
    DropOff,
    FunnelAnalysis,
    MetricChange,
    PeriodComparison,
    QualitativeInsights,
    ReportFields,
    ThemeWithData,
)
from cro_audit.schemas.funnel import (
    EventNameSummary,
    FunnelDimension,
    FunnelStage,
    PagePathAnalytics,
    ScrollDepthData,
)

__all__ = [
    "HealthResponse",
    # Funnel analytics
    "FunnelDimension",
    "FunnelStage",
    "ScrollDepthData",
    "PagePathAnalytics",
    "EventNameSummary",
    # CRO reports
    "CroReport",
    "ReportFields",
    "FunnelAnalysis",
    "DropOff",
    "PeriodComparison",
    "MetricChange",
    "QualitativeInsights",
    "ThemeWithData",
    "CroRecommendation",
]
