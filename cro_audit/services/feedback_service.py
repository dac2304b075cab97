"""Lookup of cached feedback theme analyses."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cro_audit.models.feedback import FeedbackAnalysis


class FeedbackService:
    """Read access to feedback analyses generated by the background pipeline."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_latest_analysis(self, project_id: UUID) -> FeedbackAnalysis | None:
        """Get the most recent analysis for a project, if any."""
        stmt = (
            select(FeedbackAnalysis)
            .where(FeedbackAnalysis.project_id == project_id)
            .order_by(FeedbackAnalysis.created_at.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
