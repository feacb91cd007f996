# app/api/routes.py
import logging
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse
from starlette.datastructures import UploadFile

from app.config import Settings, get_settings
from app.dependencies import get_analyzer_service, get_report_renderer
from app.exceptions import (
    AnalysisFailure,
    InvalidUpload,
    MissingInput,
    PlantServiceError,
    RenderFailure,
)
from app.models.plant_record import AnalysisResponse, ErrorResponse, FailureResponse, ReportRequest
from app.services.analyzer import PlantAnalyzerService
from app.services.report import ReportRenderer
from app.services.storage import remove_file, save_upload

router = APIRouter()
logger = logging.getLogger(__name__)

# Formats the report renderer can decode again
SUPPORTED_CONTENT_TYPES = ["image/jpeg", "image/png", "image/webp"]

IMAGE_UPLOAD_BODY = {
    "requestBody": {
        "required": True,
        "content": {
            "multipart/form-data": {
                "schema": {
                    "type": "object",
                    "properties": {"image": {"type": "string", "format": "binary"}},
                    "required": ["image"],
                }
            }
        },
    }
}


@router.post(
    "/analyze",
    response_model=AnalysisResponse,
    summary="Analyze a plant image",
    description="Upload one image and receive species identification, health assessment and care advice",
    responses={400: {"model": ErrorResponse}, 413: {"model": ErrorResponse}, 500: {"model": FailureResponse}},
    openapi_extra=IMAGE_UPLOAD_BODY,
)
async def analyze_plant_image(
        request: Request,
        settings: Settings = Depends(get_settings),
        analyzer: PlantAnalyzerService = Depends(get_analyzer_service),
) -> AnalysisResponse:
    """
    API endpoint for plant image analysis.

    Args:
        request: Multipart request carrying exactly one file in the "image" field.
        settings: Application settings.
        analyzer: Analyzer service bound to the shared model client.

    Returns:
        The normalized plant record plus the image as a data URI.
    """
    form = await request.form()
    # Plain-text parts under "image" are not uploads
    files = [
        upload for upload in form.getlist("image")
        if isinstance(upload, UploadFile) and upload.filename
    ]
    if len(files) != 1:
        raise MissingInput()
    upload = files[0]

    if upload.content_type not in SUPPORTED_CONTENT_TYPES:
        raise InvalidUpload(f"Invalid file type. Only {', '.join(SUPPORTED_CONTENT_TYPES)} allowed.")

    try:
        upload_path = await save_upload(upload, settings.UPLOAD_DIR, settings.MAX_UPLOAD_SIZE)
        if upload_path.stat().st_size == 0:
            remove_file(upload_path, "empty upload")
            raise InvalidUpload("Uploaded file is empty.")

        return await analyzer.analyze_upload(upload_path, upload.content_type)

    except PlantServiceError:
        raise
    except Exception as e:
        logger.error(f"Error during image analysis: {str(e)}", exc_info=True)
        raise AnalysisFailure(str(e)) from e
    finally:
        await upload.close()


@router.post(
    "/download",
    response_class=FileResponse,
    summary="Download a PDF report",
    description="Render a plant record (as returned by /analyze) into a PDF attachment",
    responses={200: {"content": {"application/pdf": {}}}, 500: {"model": FailureResponse}},
)
async def download_report(
        request: Request,
        background_tasks: BackgroundTasks,
        renderer: ReportRenderer = Depends(get_report_renderer),
):
    """
    API endpoint for PDF report generation. Missing fields take their defaults;
    the temporary file is deleted once it has been sent.
    """
    try:
        body = await request.json()
    except (ValueError, RecursionError) as e:
        raise RenderFailure(f"Request body is not valid JSON: {e}") from e
    if not isinstance(body, dict):
        raise RenderFailure("Request body must be a JSON object")

    report_request = ReportRequest.model_validate(body)

    try:
        report = await run_in_threadpool(renderer.render, report_request, report_request.image)
    except PlantServiceError:
        raise
    except Exception as e:
        logger.error(f"Error during report generation: {str(e)}", exc_info=True)
        raise RenderFailure(str(e)) from e

    background_tasks.add_task(remove_file, report.path, "report")
    return FileResponse(
        report.path,
        media_type="application/pdf",
        filename=report.download_name,
        background=background_tasks,
    )


@router.get(
    "/health",
    summary="API health status",
    description="Check if the analysis service is available"
)
async def health_check(request: Request) -> Dict[str, Any]:
    return {
        "status": "healthy",
        "service": "plant-report-service",
        "version": "0.1.0",
        "model_client": getattr(request.app.state, "model_client", None) is not None,
    }
