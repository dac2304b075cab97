"""Persistence of generated CRO reports."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cro_audit.models.cro_report import CroReport as CroReportModel
from cro_audit.schemas.cro_report import CroReport

logger = logging.getLogger(__name__)


class CroReportService:
    """Stores and reads CRO reports."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def save(self, report: CroReport) -> None:
        """Persist a finished report."""
        row = CroReportModel(
            id=report.id,
            project_id=report.project_id,
            connector_id=report.connector_id,
            created_at=report.created_at,
            updated_at=report.created_at,
            executive_summary=report.executive_summary,
            funnel_analysis=report.funnel_analysis.model_dump(mode="json"),
            qualitative_insights=report.qualitative_insights.model_dump(mode="json"),
            recommendations=[r.model_dump(mode="json") for r in report.recommendations],
            model_used=report.model_used,
            input_tokens=report.input_tokens,
            output_tokens=report.output_tokens,
            tool_calls_count=report.tool_calls_count,
            duration_ms=report.duration_ms,
        )
        self.db.add(row)
        await self.db.commit()
        logger.info("Saved CRO report %s for project %s", report.id, report.project_id)

    async def list_for_project(self, project_id: UUID) -> list[CroReport]:
        """List a project's reports, newest first."""
        stmt = (
            select(CroReportModel)
            .where(CroReportModel.project_id == project_id)
            .order_by(CroReportModel.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return [CroReport.model_validate(row) for row in result.scalars().all()]

    async def get(self, report_id: UUID) -> CroReport | None:
        """Get one report by id."""
        result = await self.db.execute(
            select(CroReportModel).where(CroReportModel.id == report_id)
        )
        row = result.scalar_one_or_none()
        return CroReport.model_validate(row) if row else None
