"""Project and data-source connector models."""

import enum
import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import Enum, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cro_audit.models.base import Base

if TYPE_CHECKING:
    from cro_audit.models.cro_report import CroReport


class ConnectorType(str, enum.Enum):
    """Supported data-source connectors."""

    GA4 = "ga4"
    SURVEY_CSV = "survey_csv"


class Project(Base):
    """A CRO project.

    Projects own the analytics connectors, survey responses, cached feedback
    analyses and generated reports. They are created elsewhere; this service
    only reads them.
    """

    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    connectors: Mapped[list["Connector"]] = relationship(
        "Connector",
        back_populates="project",
        cascade="all, delete-orphan",
    )
    cro_reports: Mapped[list["CroReport"]] = relationship(
        "CroReport",
        back_populates="project",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Project {self.name}>"


class Connector(Base):
    """A data source attached to a project (e.g. one GA4 property)."""

    __tablename__ = "connectors"

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    connector_type: Mapped[ConnectorType] = mapped_column(
        Enum(
            ConnectorType,
            name="connector_type",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )

    # Provider-specific settings (GA4 property id, etc.)
    config: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        default=dict,
        nullable=False,
    )

    # Relationships
    project: Mapped["Project"] = relationship(
        "Project",
        back_populates="connectors",
    )

    def __repr__(self) -> str:
        return f"<Connector {self.name} ({self.connector_type.value})>"
