"""SQLAlchemy models."""

from cro_audit.models.base import Base
from cro_audit.models.cro_report import CroReport
from cro_audit.models.feedback import FeedbackAnalysis
from cro_audit.models.ga4 import Ga4Event, Ga4PagePath
from cro_audit.models.project import Connector, ConnectorType, Project
from cro_audit.models.survey import SurveyResponse

__all__ = [
    # Base
    "Base",
    # Projects & Connectors
    "Project",
    "Connector",
    "ConnectorType",
    # Analytics
    "Ga4Event",
    "Ga4PagePath",
    # Qualitative
    "SurveyResponse",
    "FeedbackAnalysis",
    # Reports
    "CroReport",
]
