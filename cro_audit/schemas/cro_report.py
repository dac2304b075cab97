"""CRO audit report schemas.

These models validate the JSON section produced by the agent and are also
the response shape of the report endpoints.
"""

from datetime import datetime
from uuid import UUID

from pydantic import ConfigDict, Field

from cro_audit.schemas.common import BaseSchema


class ReportSchema(BaseSchema):
    """Immutable base for report models."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        frozen=True,
    )


class DropOff(ReportSchema):
    """A critical funnel drop-off and the feedback that explains it."""

    stage: str
    drop_rate: float
    severity: str
    correlated_feedback: list[str] = Field(default_factory=list)


class MetricChange(ReportSchema):
    """Change of one metric between two periods."""

    metric: str
    before: float | None = None
    after: float | None = None
    change_pct: float | None = None
    interpretation: str


class PeriodComparison(ReportSchema):
    """Comparison of two date ranges (``YYYYMMDD-YYYYMMDD``)."""

    period_a: str
    period_b: str
    changes: list[MetricChange] = Field(default_factory=list)


class FunnelAnalysis(ReportSchema):
    """Quantitative section of the report."""

    overview: str = ""
    critical_drop_offs: list[DropOff] = Field(default_factory=list)
    period_comparison: PeriodComparison | None = None


class ThemeWithData(ReportSchema):
    """A feedback theme backed by quotes and metrics."""

    theme: str
    sentiment: str
    supporting_quotes: list[str] = Field(default_factory=list)
    related_metrics: list[str] = Field(default_factory=list)


class QualitativeInsights(ReportSchema):
    """Qualitative section of the report."""

    overview: str = ""
    themes_with_data: list[ThemeWithData] = Field(default_factory=list)


class CroRecommendation(ReportSchema):
    """One actionable recommendation."""

    title: str
    priority: str
    category: str
    description: str
    supporting_evidence: list[str] = Field(default_factory=list)
    expected_impact: str


class ReportFields(ReportSchema):
    """Report content extracted from the model's final answer."""

    executive_summary: str = ""
    funnel_analysis: FunnelAnalysis = Field(default_factory=FunnelAnalysis)
    qualitative_insights: QualitativeInsights = Field(default_factory=QualitativeInsights)
    recommendations: list[CroRecommendation] = Field(default_factory=list)


class CroReport(ReportFields):
    """A finished CRO audit report with run metadata."""

    id: UUID
    project_id: UUID
    connector_id: UUID
    created_at: datetime
    model_used: str
    input_tokens: int
    output_tokens: int
    tool_calls_count: int
    duration_ms: int
