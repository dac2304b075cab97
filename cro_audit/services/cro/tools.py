"""LangChain tools for the CRO audit agent.

Tools are created per run via create_cro_tools() so each one closes over the
run's project, connector and session factory. ``dispatch`` is total: whatever
goes wrong inside a tool comes back as ``{"error": "..."}`` so the
conversation stays well-formed and the model can react to the failure.
"""

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, time
from functools import cached_property
from typing import Any, Literal
from uuid import UUID

from anthropic.types import ToolParam
from langchain_core.tools import BaseTool, ToolException, tool
from langchain_core.utils.function_calling import convert_to_openai_tool
from pydantic import BaseModel, Field, ValidationError, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cro_audit.schemas.funnel import FunnelDimension
from cro_audit.services.embedding_service import EmbeddingService
from cro_audit.services.feedback_service import FeedbackService
from cro_audit.services.funnel_service import DatasetNotFoundError, FunnelService
from cro_audit.services.survey_service import SurveyService

logger = logging.getLogger(__name__)

DimensionName = Literal[
    "all",
    "browser",
    "device_category",
    "country",
    "operating_system",
    "screen_resolution",
]

NO_FEEDBACK_MESSAGE = (
    "No feedback analysis available. Survey comments have not been analyzed yet."
)


@dataclass
class ToolContext:
    """Per-run scope shared by every tool call."""

    project_id: UUID
    connector_id: UUID
    session_factory: async_sessionmaker[AsyncSession]
    embedding_service: EmbeddingService

    @cached_property
    def tools(self) -> dict[str, BaseTool]:
        """The run's tools by name."""
        return {t.name: t for t in create_cro_tools(self)}

    @cached_property
    def definitions(self) -> list[ToolParam]:
        """Tool definitions advertised to the model."""
        return tool_definitions(self.tools.values())


# --- Input schemas ---


class DimensionInput(BaseModel):
    """Optional funnel grouping."""

    dimension: DimensionName = Field(
        "all", description="Optional dimension to group by. Default: all"
    )

    @field_validator("dimension", mode="before")
    @classmethod
    def unknown_dimension_means_all(cls, value: Any) -> str:
        if isinstance(value, str):
            return FunnelDimension.parse(value).value
        return FunnelDimension.ALL.value


class DateRangeInput(BaseModel):
    """Input for tools over a GA4 date range."""

    start_date: str = Field(description="Start date in YYYYMMDD format")
    end_date: str = Field(description="End date in YYYYMMDD format")


class FunnelOverviewInput(DateRangeInput, DimensionInput):
    """Input for the funnel overview."""


class ComparePeriodsInput(DimensionInput):
    """Input for comparing two funnels."""

    period_a_start: str = Field(description="Period A start date in YYYYMMDD format")
    period_a_end: str = Field(description="Period A end date in YYYYMMDD format")
    period_b_start: str = Field(description="Period B start date in YYYYMMDD format")
    period_b_end: str = Field(description="Period B end date in YYYYMMDD format")


class SearchSurveyCommentsInput(BaseModel):
    """Input for semantic survey comment search."""

    query: str = Field(description="Natural language search query")
    limit: int = Field(10, description="Max results to return. Default: 10", ge=1)
    min_similarity: float = Field(
        0.3,
        description="Minimum cosine similarity threshold (0-1). Default: 0.3",
        ge=0.0,
        le=1.0,
    )


class SurveyByPeriodInput(BaseModel):
    """Input for listing survey comments in a date window."""

    start_date: str = Field(description="Start date in YYYY-MM-DD format")
    end_date: str = Field(description="End date in YYYY-MM-DD format")
    limit: int = Field(50, description="Max results to return. Default: 50", ge=1)


class NoInput(BaseModel):
    """Input for tools without parameters."""


# --- Helpers ---


def _format_date(value: datetime | None) -> str | None:
    return value.strftime("%Y-%m-%d") if value else None


def _parse_day(value: str, field: str, at: time) -> datetime:
    try:
        day = datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as e:
        raise ToolException(f"Invalid {field} format (expected YYYY-MM-DD): {e}") from e
    return datetime.combine(day, at, tzinfo=UTC)


# --- Tools ---


def create_cro_tools(ctx: ToolContext) -> list[BaseTool]:
    """Create the CRO audit tools for one run.

    Each tool opens its own database session from ``ctx.session_factory`` so
    tools running concurrently never share a session.
    """

    @tool(args_schema=FunnelOverviewInput)
    async def get_funnel_overview(start_date: str, end_date: str, dimension: str = "all") -> str:
        """Get the e-commerce funnel for a date range. Returns the stages (Home -> PLP ->
        PDP -> Cart -> Checkout -> Shipping -> Payment -> Confirmation) with user counts,
        drop-off rates and conversion percentages."""
        async with ctx.session_factory() as db:
            stages = await FunnelService(db).get_funnel(
                ctx.project_id, ctx.connector_id, start_date, end_date, FunnelDimension(dimension)
            )
        return json.dumps([stage.model_dump(mode="json") for stage in stages])

    @tool(args_schema=ComparePeriodsInput)
    async def compare_periods(
        period_a_start: str,
        period_a_end: str,
        period_b_start: str,
        period_b_end: str,
        dimension: str = "all",
    ) -> str:
        """Compare funnel performance between two date ranges. Returns both funnels side
        by side so you can spot regressions or improvements."""
        grouping = FunnelDimension(dimension)
        async with ctx.session_factory() as db:
            service = FunnelService(db)
            funnel_a = await service.get_funnel(
                ctx.project_id, ctx.connector_id, period_a_start, period_a_end, grouping
            )
            funnel_b = await service.get_funnel(
                ctx.project_id, ctx.connector_id, period_b_start, period_b_end, grouping
            )

        return json.dumps(
            {
                "period_a": {
                    "start": period_a_start,
                    "end": period_a_end,
                    "funnel": [stage.model_dump(mode="json") for stage in funnel_a],
                },
                "period_b": {
                    "start": period_b_start,
                    "end": period_b_end,
                    "funnel": [stage.model_dump(mode="json") for stage in funnel_b],
                },
            }
        )

    @tool(args_schema=DateRangeInput)
    async def get_page_paths(start_date: str, end_date: str) -> str:
        """Get page-level analytics: pageviews, users and engagement time per page. Useful
        for finding high-traffic pages with low engagement."""
        async with ctx.session_factory() as db:
            pages = await FunnelService(db).get_page_paths(
                ctx.project_id, ctx.connector_id, start_date, end_date
            )
        return json.dumps([page.model_dump(mode="json") for page in pages])

    @tool(args_schema=DateRangeInput)
    async def get_drop_off_points(start_date: str, end_date: str) -> str:
        """Find the biggest funnel drop-off points, worst first. Returns the stages where
        the most users are lost."""
        async with ctx.session_factory() as db:
            stages = await FunnelService(db).get_drop_off_points(
                ctx.project_id, ctx.connector_id, start_date, end_date
            )
        return json.dumps([stage.model_dump(mode="json") for stage in stages])

    @tool(args_schema=SearchSurveyCommentsInput)
    async def search_survey_comments(
        query: str, limit: int = 10, min_similarity: float = 0.3
    ) -> str:
        """Search user survey comments by semantic similarity. Use it to find what users
        say about a topic (e.g. 'checkout problem', 'slow loading', 'mobile issue')."""
        try:
            embedding = await ctx.embedding_service.generate_embedding(query)
        except Exception as e:
            raise ToolException(f"Embedding generation failed: {e}") from e

        if not embedding:
            raise ToolException("Empty query produced no embedding")

        async with ctx.session_factory() as db:
            matches = await SurveyService(db).search_comments(
                ctx.project_id, embedding, limit=limit, min_similarity=min_similarity
            )

        # Embedding vectors are never sent back to the model
        return json.dumps(
            [
                {
                    "comment": match.comment,
                    "similarity": match.similarity,
                    "rating": match.rating,
                    "date": _format_date(match.date),
                    "country": match.country,
                    "device": match.device,
                    "url": match.url,
                }
                for match in matches
            ]
        )

    @tool(args_schema=SurveyByPeriodInput)
    async def get_survey_by_period(start_date: str, end_date: str, limit: int = 50) -> str:
        """Get user survey comments within a date range (YYYY-MM-DD). Use it to see what
        users said during a specific period, e.g. when a funnel drop was detected."""
        start = _parse_day(start_date, "start_date", time.min)
        end = _parse_day(end_date, "end_date", time(23, 59, 59))

        async with ctx.session_factory() as db:
            comments = await SurveyService(db).list_comments_by_period(
                ctx.project_id, start, end, limit=limit
            )

        return json.dumps(
            [
                {
                    "comment": comment.comment,
                    "rating": comment.rating,
                    "date": _format_date(comment.date),
                    "country": comment.country,
                    "device": comment.device,
                    "url": comment.url,
                }
                for comment in comments
            ]
        )

    @tool(args_schema=NoInput)
    async def get_survey_stats() -> str:
        """Get overall survey statistics: total responses, average rating, date range and
        number of comments."""
        async with ctx.session_factory() as db:
            stats = await SurveyService(db).get_stats(ctx.project_id)

        return json.dumps(
            {
                "total_responses": stats.total_responses,
                "average_rating": stats.average_rating,
                "first_response_date": (
                    stats.first_response_date.isoformat() if stats.first_response_date else None
                ),
                "last_response_date": (
                    stats.last_response_date.isoformat() if stats.last_response_date else None
                ),
                "responses_with_comments": stats.responses_with_comments,
            }
        )

    @tool(args_schema=NoInput)
    async def get_feedback_themes() -> str:
        """Get the most recent AI-generated feedback analysis: themes, sentiment breakdown,
        key issues and recommendations derived from user comments."""
        async with ctx.session_factory() as db:
            analysis = await FeedbackService(db).get_latest_analysis(ctx.project_id)

        if analysis is None:
            return json.dumps({"message": NO_FEEDBACK_MESSAGE})

        structured = analysis.analysis or {}
        return json.dumps(
            {
                "themes": structured.get("themes", []),
                "sentiment_breakdown": structured.get("sentiment_breakdown", {}),
                "key_issues": structured.get("key_issues", []),
                "recommendations": structured.get("recommendations", []),
                "narrative": analysis.narrative,
                "created_at": analysis.created_at.strftime("%Y-%m-%d %H:%M"),
            }
        )

    return [
        get_funnel_overview,
        compare_periods,
        get_page_paths,
        get_drop_off_points,
        search_survey_comments,
        get_survey_by_period,
        get_survey_stats,
        get_feedback_themes,
    ]


def tool_definitions(tools: Iterable[BaseTool]) -> list[ToolParam]:
    """Describe tools in the Anthropic tool format."""
    definitions: list[ToolParam] = []
    for t in tools:
        schema = convert_to_openai_tool(t)["function"]["parameters"]
        schema.setdefault("properties", {})
        schema.setdefault("required", [])
        definitions.append(ToolParam(name=t.name, description=t.description, input_schema=schema))
    return definitions


# --- Dispatch ---


def _describe_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or "input"
    if first["type"] == "missing":
        return f"Missing required field: {field}"
    return f"Invalid value for {field}: {first['msg']}"


async def dispatch(name: str, tool_input: dict[str, Any], ctx: ToolContext) -> str:
    """Execute a tool by name and return its JSON result.

    Never raises ``Exception``: unknown tools, invalid input and downstream
    failures are returned as ``{"error": "<message>"}``. Task cancellation
    still propagates.

    Args:
        name: Tool name requested by the model
        tool_input: Tool input from the ``tool_use`` block
        ctx: Per-run tool scope

    Returns:
        JSON string sent back to the model as the tool result
    """
    try:
        selected = ctx.tools.get(name)
        if selected is None:
            raise ToolException(f"Unknown tool: {name}")
        result = await selected.ainvoke(tool_input)
        return result if isinstance(result, str) else json.dumps(result)
    except ValidationError as e:
        message = _describe_validation_error(e)
    except (ToolException, DatasetNotFoundError) as e:
        message = str(e)
    except SQLAlchemyError as e:
        message = f"Database error: {e}"
    except Exception as e:
        logger.exception("Unexpected error in tool %s", name)
        message = f"Tool execution failed: {e}"

    logger.warning("Tool %s failed: %s", name, message)
    return json.dumps({"error": message})
