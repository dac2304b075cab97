"""GA4 aggregate tables populated by the ingestion pipeline."""

import uuid

from sqlalchemy import BigInteger, Float, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from cro_audit.models.base import Base


class Ga4Event(Base):
    """Daily GA4 event aggregate for one combination of dimension values.

    Dates are stored as fixed-width ``YYYYMMDD`` strings, exactly as the GA4
    Data API reports them, so range filters compare lexicographically.
    """

    __tablename__ = "ga4_events"
    __table_args__ = (
        Index("ix_ga4_events_project_connector_date", "project_id", "connector_id", "date"),
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    connector_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("connectors.id", ondelete="CASCADE"),
        nullable=False,
    )

    date: Mapped[str] = mapped_column(String(8), nullable=False)
    event_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Dimensions
    browser: Mapped[str | None] = mapped_column(String(255), nullable=True)
    device_category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    country: Mapped[str | None] = mapped_column(String(255), nullable=True)
    operating_system: Mapped[str | None] = mapped_column(String(255), nullable=True)
    screen_resolution: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Metrics
    active_users: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    sessions: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<Ga4Event {self.date} {self.event_name}>"


class Ga4PagePath(Base):
    """Daily GA4 page-path aggregate."""

    __tablename__ = "ga4_page_paths"
    __table_args__ = (
        Index("ix_ga4_page_paths_project_connector_date", "project_id", "connector_id", "date"),
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    connector_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("connectors.id", ondelete="CASCADE"),
        nullable=False,
    )

    date: Mapped[str] = mapped_column(String(8), nullable=False)
    page_path: Mapped[str] = mapped_column(Text, nullable=False)

    screen_page_views: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_users: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    # Seconds
    user_engagement_duration: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    def __repr__(self) -> str:
        return f"<Ga4PagePath {self.date} {self.page_path}>"
