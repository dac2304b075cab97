"""Cached AI analysis of survey feedback."""

import uuid
from typing import Any

from sqlalchemy import ForeignKey, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from cro_audit.models.base import Base


class FeedbackAnalysis(Base):
    """Theme analysis of a project's survey comments.

    ``analysis`` holds the structured result with the keys ``themes``,
    ``sentiment_breakdown``, ``key_issues`` and ``recommendations``. The
    newest row per project is the current analysis.
    """

    __tablename__ = "feedback_analyses"

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    analysis: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        default=dict,
        nullable=False,
    )
    narrative: Mapped[str] = mapped_column(Text, default="", nullable=False)

    def __repr__(self) -> str:
        return f"<FeedbackAnalysis {self.project_id}>"
