from fastapi import Depends, Request

from app.config import Settings, get_settings
from app.exceptions import AnalysisFailure
from app.services.analyzer import ModelClient, PlantAnalyzerService
from app.services.report import ReportRenderer


def get_model_client(request: Request) -> ModelClient:
    """Return the model client created at start-up."""
    client = getattr(request.app.state, "model_client", None)
    if client is None:
        raise AnalysisFailure("AI model client is not initialised")
    return client


def get_analyzer_service(model_client: ModelClient = Depends(get_model_client)) -> PlantAnalyzerService:
    return PlantAnalyzerService(model_client)


def get_report_renderer(settings: Settings = Depends(get_settings)) -> ReportRenderer:
    return ReportRenderer(settings.REPORTS_DIR)
