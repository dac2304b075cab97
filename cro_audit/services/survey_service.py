"""Survey response retrieval: semantic search, period listing and stats."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cro_audit.models.survey import SurveyResponse


@dataclass
class SurveyCommentMatch:
    """A survey comment retrieved by vector search."""

    comment: str
    similarity: float
    rating: float | None
    date: datetime | None
    country: str | None
    device: str | None
    url: str | None


@dataclass
class SurveyComment:
    """A survey comment from a date window."""

    comment: str
    rating: float | None
    date: datetime | None
    country: str | None
    device: str | None
    url: str | None


@dataclass
class SurveyStats:
    """Aggregate counters over a project's survey responses."""

    total_responses: int
    average_rating: float | None
    first_response_date: datetime | None
    last_response_date: datetime | None
    responses_with_comments: int


class SurveyService:
    """Read access to a project's survey responses."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def search_comments(
        self,
        project_id: UUID,
        query_embedding: list[float],
        limit: int = 10,
        min_similarity: float = 0.3,
    ) -> list[SurveyCommentMatch]:
        """Find comments semantically similar to a query embedding.

        Args:
            project_id: Filter to this project only
            query_embedding: Embedding of the search query
            limit: Maximum number of comments to return
            min_similarity: Minimum cosine similarity (0-1)

        Returns:
            Matching comments, most similar first
        """
        # similarity = 1 - cosine distance
        max_distance = 1 - min_similarity
        distance = SurveyResponse.comment_embedding.cosine_distance(query_embedding)

        stmt = (
            select(
                SurveyResponse.comments,
                (1 - distance).label("similarity"),
                SurveyResponse.ratings,
                SurveyResponse.date,
                SurveyResponse.country,
                SurveyResponse.device,
                SurveyResponse.url,
            )
            .where(
                SurveyResponse.project_id == project_id,
                SurveyResponse.comment_embedding.isnot(None),
                SurveyResponse.comments.isnot(None),
                distance <= max_distance,
            )
            .order_by(distance)
            .limit(limit)
        )

        result = await self.db.execute(stmt)

        return [
            SurveyCommentMatch(
                comment=row.comments,
                similarity=float(row.similarity),
                rating=row.ratings,
                date=row.date,
                country=row.country,
                device=row.device,
                url=row.url,
            )
            for row in result.all()
        ]

    async def list_comments_by_period(
        self,
        project_id: UUID,
        start: datetime,
        end: datetime,
        limit: int = 50,
    ) -> list[SurveyComment]:
        """List non-empty comments submitted within ``[start, end]``, newest first."""
        stmt = (
            select(
                SurveyResponse.comments,
                SurveyResponse.ratings,
                SurveyResponse.date,
                SurveyResponse.country,
                SurveyResponse.device,
                SurveyResponse.url,
            )
            .where(
                SurveyResponse.project_id == project_id,
                SurveyResponse.date >= start,
                SurveyResponse.date <= end,
                SurveyResponse.comments.isnot(None),
                SurveyResponse.comments != "",
            )
            .order_by(SurveyResponse.date.desc().nulls_last())
            .limit(limit)
        )

        result = await self.db.execute(stmt)

        return [
            SurveyComment(
                comment=row.comments,
                rating=row.ratings,
                date=row.date,
                country=row.country,
                device=row.device,
                url=row.url,
            )
            for row in result.all()
        ]

    async def get_stats(self, project_id: UUID) -> SurveyStats:
        """Get aggregate counters over all of a project's responses."""
        stmt = select(
            func.count().label("total"),
            func.avg(SurveyResponse.ratings).label("average_rating"),
            func.min(SurveyResponse.date).label("first_date"),
            func.max(SurveyResponse.date).label("last_date"),
            func.count(SurveyResponse.comments)
            .filter(SurveyResponse.comments != "")
            .label("with_comments"),
        ).where(SurveyResponse.project_id == project_id)

        row = (await self.db.execute(stmt)).one()

        return SurveyStats(
            total_responses=row.total or 0,
            average_rating=float(row.average_rating) if row.average_rating is not None else None,
            first_response_date=row.first_date,
            last_response_date=row.last_date,
            responses_with_comments=row.with_comments or 0,
        )
