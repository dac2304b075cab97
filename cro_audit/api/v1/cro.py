"""CRO audit report endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from cro_audit.core.database import async_session_maker
from cro_audit.core.deps import DBSession, ProjectDep
from cro_audit.models.project import Connector, ConnectorType
from cro_audit.schemas.cro_report import CroReport
from cro_audit.services.cro.agent import CroAgentService
from cro_audit.services.cro.errors import (
    CroAgentError,
    MissingCredentialError,
)
from cro_audit.services.cro.tools import ToolContext
from cro_audit.services.cro_report_service import CroReportService
from cro_audit.services.embedding_service import EmbeddingService, get_embedding_service
from cro_audit.services.funnel_service import DatasetNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()


def get_cro_agent_service() -> CroAgentService:
    """Create the agent service from settings."""
    return CroAgentService()


@router.post("/{project_id}/cro/report", response_model=CroReport)
async def generate_report(
    project: ProjectDep,
    db: DBSession,
    agent: CroAgentService = Depends(get_cro_agent_service),
    embedding_service: EmbeddingService = Depends(get_embedding_service),
) -> CroReport:
    """Run the CRO agent against the project's GA4 connector.

    The report is returned even if it cannot be stored.
    """
    logger.info("CRO report requested for project %s", project.id)

    result = await db.execute(
        select(Connector)
        .where(
            Connector.project_id == project.id,
            Connector.connector_type == ConnectorType.GA4,
        )
        .order_by(Connector.created_at)
        .limit(1)
    )
    connector = result.scalar_one_or_none()
    if not connector:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No GA4 connector found for this project",
        )

    context = ToolContext(
        project_id=project.id,
        connector_id=connector.id,
        session_factory=async_session_maker,
        embedding_service=embedding_service,
    )

    try:
        report = await agent.generate_report(project.id, connector.id, context)
    except MissingCredentialError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=e.message,
        ) from e
    except DatasetNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=e.message,
        ) from e
    except CroAgentError as e:
        logger.error("CRO report generation failed for project %s: %s", project.id, e.message)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=e.message,
        ) from e

    try:
        await CroReportService(db).save(report)
    except SQLAlchemyError as e:
        logger.warning("Failed to persist CRO report %s: %s", report.id, e)

    return report


@router.get("/{project_id}/cro/reports", response_model=list[CroReport])
async def list_reports(
    project: ProjectDep,
    db: DBSession,
) -> list[CroReport]:
    """List a project's CRO reports, newest first."""
    return await CroReportService(db).list_for_project(project.id)


@router.get("/{project_id}/cro/reports/{report_id}", response_model=CroReport)
async def get_report(
    project: ProjectDep,
    report_id: UUID,
    db: DBSession,
) -> CroReport:
    """Get one CRO report of the project."""
    report = await CroReportService(db).get(report_id)

    if not report or report.project_id != project.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="CRO report not found",
        )

    return report
