"""Extraction of the structured CRO report from the model's final answer."""

import json
import logging
from datetime import UTC, datetime
from typing import Any, TypeVar
from uuid import UUID, uuid4

from pydantic import BaseModel, TypeAdapter, ValidationError

from cro_audit.schemas.cro_report import (
    CroRecommendation,
    CroReport,
    FunnelAnalysis,
    QualitativeInsights,
    ReportFields,
)
from cro_audit.services.cro.errors import ReportParseError

T = TypeVar("T", bound=BaseModel)

logger = logging.getLogger(__name__)

RAW_PREFIX_LOG_CHARS = 500

_recommendations_adapter = TypeAdapter(list[CroRecommendation])


def extract_json(raw: str) -> str | None:
    """Return the first balanced ``{...}`` object in ``raw``, or None.

    Braces inside JSON string literals do not count towards nesting.
    """
    start = raw.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(raw)):
        char = raw[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return raw[start : index + 1]

    return None


def _strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json") :]
    elif cleaned.startswith("```"):
        cleaned = cleaned[len("```") :]
    if cleaned.endswith("```"):
        cleaned = cleaned[: -len("```")]
    return cleaned.strip()


def _load_report_object(raw: str) -> dict[str, Any]:
    cleaned = _strip_code_fences(raw)

    try:
        value = json.loads(cleaned)
    except json.JSONDecodeError:
        value = None
    if isinstance(value, dict):
        return value

    extracted = extract_json(cleaned)
    if extracted is None:
        raise ReportParseError("No JSON object found in response")

    try:
        value = json.loads(extracted)
    except json.JSONDecodeError as e:
        raise ReportParseError(f"Failed to parse extracted JSON: {e}") from e

    if not isinstance(value, dict):
        raise ReportParseError("No JSON object found in response")
    return value


def _parse_section(data: dict[str, Any], field: str, model: type[T]) -> T:
    value = data.get(field)
    if value is None:
        return model()
    try:
        return model.model_validate(value)
    except ValidationError as e:
        raise ReportParseError(f"Failed to parse {field}: {e}") from e


def parse_report(raw: str) -> ReportFields:
    """Parse the model's final answer into report fields.

    The answer should be a single JSON object but may be wrapped in code
    fences or surrounded by prose. Missing sections default to empty ones;
    sections that are present must match the report schema.

    Raises:
        ReportParseError: If no valid report object can be extracted
    """
    try:
        data = _load_report_object(raw)
    except ReportParseError as e:
        logger.warning(
            "Could not extract CRO report JSON; raw text starts with: %s",
            raw[:RAW_PREFIX_LOG_CHARS],
        )
        raise ReportParseError(
            f"Failed to parse CRO report from LLM response: {e.message}"
        ) from e

    summary = data.get("executive_summary")

    recommendations_raw = data.get("recommendations")
    try:
        recommendations = (
            _recommendations_adapter.validate_python(recommendations_raw)
            if recommendations_raw is not None
            else []
        )
    except ValidationError as e:
        raise ReportParseError(f"Failed to parse recommendations: {e}") from e

    return ReportFields(
        executive_summary=summary if isinstance(summary, str) else "",
        funnel_analysis=_parse_section(data, "funnel_analysis", FunnelAnalysis),
        qualitative_insights=_parse_section(data, "qualitative_insights", QualitativeInsights),
        recommendations=recommendations,
    )


def build_report(
    fields: ReportFields,
    *,
    project_id: UUID,
    connector_id: UUID,
    model_used: str,
    input_tokens: int,
    output_tokens: int,
    tool_calls_count: int,
    duration_ms: int,
) -> CroReport:
    """Assemble the final immutable report from parsed fields and run metadata."""
    return CroReport(
        id=uuid4(),
        project_id=project_id,
        connector_id=connector_id,
        created_at=datetime.now(UTC),
        executive_summary=fields.executive_summary,
        funnel_analysis=fields.funnel_analysis,
        qualitative_insights=fields.qualitative_insights,
        recommendations=fields.recommendations,
        model_used=model_used,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        tool_calls_count=tool_calls_count,
        duration_ms=duration_ms,
    )
