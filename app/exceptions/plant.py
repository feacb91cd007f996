"""
Exceptions raised while analysing plant images and rendering reports.

Each exception knows the HTTP status and JSON body it is reported with, so the
request boundary can convert any of them without inspecting the type.
"""
from typing import Any, Dict, Optional


class PlantServiceError(Exception):
    """Base exception for all request-level failures"""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, details: str = ""):
        super().__init__(details or self.error)
        self.details = details or self.error

    def to_content(self) -> Dict[str, Any]:
        return {"success": False, "error": self.error, "details": self.details}


class MissingInput(PlantServiceError):
    """The client omitted the image upload"""

    status_code = 400
    error = "No image file uploaded"

    def to_content(self) -> Dict[str, Any]:
        return {"error": self.error}


class InvalidUpload(PlantServiceError):
    """The uploaded file has an unsupported type or is too large"""

    status_code = 400
    error = "Invalid image upload"

    def __init__(self, details: str, status_code: Optional[int] = None):
        super().__init__(details)
        if status_code is not None:
            self.status_code = status_code

    def to_content(self) -> Dict[str, Any]:
        return {"error": self.details}


class AnalysisFailure(PlantServiceError):
    """The upstream model call failed or its reply was unusable"""

    error = "Plant analysis failed"


class ParseFailure(AnalysisFailure):
    """The model reply did not contain a parseable JSON object"""

    def __init__(self, details: str = "Failed to parse AI response", raw_text: str = ""):
        super().__init__(details)
        self.raw_text = raw_text


class RenderFailure(PlantServiceError):
    """The PDF report could not be laid out or written"""

    error = "Failed to generate report"
