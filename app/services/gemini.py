# app/services/gemini.py
import asyncio
import logging

from google import genai
from google.genai import types

from app.exceptions import AnalysisFailure

logger = logging.getLogger(__name__)


class GeminiClient:
    """
    Thin wrapper around the Google GenAI client.

    One instance is created at application start-up and shared by all requests.
    Each call is a single attempt bounded by ``timeout_seconds``.
    """

    def __init__(self, api_key: str, model_name: str, timeout_seconds: float = 60.0):
        self.client = genai.Client(api_key=api_key)
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds

    async def generate_content(self, prompt: str, image_bytes: bytes, mime_type: str) -> str:
        """Send the prompt plus an inline image and return the reply text ("" if empty)."""
        content_part = types.Part.from_bytes(data=image_bytes, mime_type=mime_type)

        logger.info(f"Calling {self.model_name} with {len(image_bytes)} bytes of {mime_type}")
        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=self.model_name,
                    contents=[prompt, content_part],
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"{self.model_name} did not answer within {self.timeout_seconds}s")
            raise AnalysisFailure(
                f"AI model did not respond within {self.timeout_seconds:g} seconds"
            ) from e
        except Exception as e:
            logger.error(f"{self.model_name} call failed: {e}", exc_info=True)
            raise AnalysisFailure(f"AI model request failed: {e}") from e

        text = response.text or ""
        logger.debug(f"Raw response: {text}")
        return text
