# app/services/analyzer.py
import base64
import logging
import time
from pathlib import Path
from typing import Optional, Protocol

from fastapi.concurrency import run_in_threadpool

from app.exceptions import AnalysisFailure
from app.models.plant_record import AnalysisResponse
from app.services.normalizer import normalize_model_response
from app.services.storage import remove_file

logger = logging.getLogger(__name__)

PLANT_ANALYSIS_PROMPT = """
Analyze this plant image and provide a detailed analysis in JSON format with this exact structure:
{
  "species": {
    "name": "Scientific and common names",
    "characteristics": "Distinctive features",
    "family": "Plant family",
    "origin": "Native region"
  },
  "health": {
    "status": "Healthy/Unhealthy",
    "issues": ["List any problems"],
    "assessment": "Detailed evaluation"
  },
  "recommendations": {
    "care": ["Care instructions"],
    "treatment": ["Treatment suggestions"],
    "notes": "Additional advice"
  },
  "interesting_facts": "Notable information"
}
IMPORTANT: Provide ONLY the raw JSON without any additional text or markdown formatting.
"""


class ModelClient(Protocol):
    async def generate_content(self, prompt: str, image_bytes: bytes, mime_type: str) -> str:
        ...


def build_data_uri(mime_type: str, image_bytes: bytes) -> str:
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


class PlantAnalyzerService:
    """Analyses plant images with the upstream model."""

    def __init__(self, model_client: ModelClient):
        self.model_client = model_client

    async def analyze_upload(self, upload_path: Path, mime_type: str) -> AnalysisResponse:
        """
        Analyse a stored upload and return the normalized record.

        The upload is deleted as soon as it has been read, whatever happens
        afterwards; a failed read deletes it too.
        """
        start_time = time.time()

        try:
            image_bytes = await run_in_threadpool(Path(upload_path).read_bytes)
        except OSError as e:
            logger.error(f"Could not read uploaded image {upload_path}: {e}", exc_info=True)
            raise AnalysisFailure(f"Could not read uploaded image: {e}") from e
        finally:
            remove_file(upload_path, "uploaded image")

        return await self.analyze_bytes(image_bytes, mime_type, start_time=start_time)

    async def analyze_bytes(self, image_bytes: bytes, mime_type: str, start_time: Optional[float] = None) -> AnalysisResponse:
        if start_time is None:
            start_time = time.time()

        response_text = await self.model_client.generate_content(
            PLANT_ANALYSIS_PROMPT, image_bytes, mime_type
        )
        record = normalize_model_response(response_text)

        processing_time = int((time.time() - start_time) * 1000)
        logger.info(f"Analysed {mime_type} image as '{record.species.name}' in {processing_time} ms")

        return AnalysisResponse(
            success=True,
            species=record.species,
            health=record.health,
            recommendations=record.recommendations,
            interesting_facts=record.interesting_facts,
            image=build_data_uri(mime_type, image_bytes),
        )
