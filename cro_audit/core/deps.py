"""Dependency injection for FastAPI routes."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cro_audit.core.database import get_async_session
from cro_audit.core.logging_config import bind_project
from cro_audit.models.project import Connector, ConnectorType, Project


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Alias for get_async_session used by route dependencies."""
    async for session in get_async_session():
        yield session


# Database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]


async def get_project_or_404(
    project_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> Project:
    """Get a project from the path or fail with 404."""
    result = await db.execute(select(Project).where(Project.id == project_id))
    project = result.scalar_one_or_none()

    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found",
        )

    bind_project(project.id)
    return project


async def get_ga4_connector_for_project(
    project_id: UUID,
    connector_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> Connector:
    """Get a GA4 connector that belongs to the given project.

    Connectors of another project are reported as missing rather than
    forbidden so their existence is not leaked across projects.
    """
    result = await db.execute(select(Connector).where(Connector.id == connector_id))
    connector = result.scalar_one_or_none()

    if not connector or connector.project_id != project_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Connector not found",
        )

    if connector.connector_type != ConnectorType.GA4:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Connector is not a GA4 connector",
        )

    bind_project(project_id)
    return connector


ProjectDep = Annotated[Project, Depends(get_project_or_404)]
Ga4ConnectorDep = Annotated[Connector, Depends(get_ga4_connector_for_project)]
