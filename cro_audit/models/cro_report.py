"""Persisted CRO audit reports."""

import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import BigInteger, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cro_audit.models.base import Base

if TYPE_CHECKING:
    from cro_audit.models.project import Project


class CroReport(Base):
    """A generated CRO audit report.

    Nested report sections are stored as JSONB in the shape of the API
    schema. Rows are written once and never updated.
    """

    __tablename__ = "cro_reports"

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    connector_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("connectors.id", ondelete="CASCADE"),
        nullable=False,
    )

    executive_summary: Mapped[str] = mapped_column(Text, default="", nullable=False)
    funnel_analysis: Mapped[dict[str, Any]] = mapped_column(JSONB, default=dict, nullable=False)
    qualitative_insights: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        default=dict,
        nullable=False,
    )
    recommendations: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB,
        default=list,
        nullable=False,
    )

    # Run metadata
    model_used: Mapped[str] = mapped_column(String(255), nullable=False)
    input_tokens: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    output_tokens: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tool_calls_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    duration_ms: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    # Relationships
    project: Mapped["Project"] = relationship(
        "Project",
        back_populates="cro_reports",
    )

    def __repr__(self) -> str:
        return f"<CroReport {self.id} project={self.project_id}>"
