from typing import Any, Dict, List, Optional, get_origin
from inspect import isclass

from pydantic import BaseModel, Field, model_validator

_MISSING = object()


def _coerce_text(value: Any) -> Any:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return _MISSING


def _coerce_text_list(value: Any) -> Any:
    if not isinstance(value, list):
        return _MISSING
    items = []
    for item in value:
        text = _coerce_text(item)
        if text is not _MISSING:
            items.append(text)
    return items


def _coerce_value(annotation: Any, value: Any) -> Any:
    """Coerce a raw value to the field's shape, or return _MISSING to use the default."""
    if annotation in (str, Optional[str]):
        return _coerce_text(value)
    if get_origin(annotation) is list:
        return _coerce_text_list(value)
    if isclass(annotation) and issubclass(annotation, BaseModel):
        if isinstance(value, BaseModel):
            return value.model_dump()
        return value if isinstance(value, dict) else _MISSING
    return value


class LenientModel(BaseModel):
    """
    Base model that never rejects input.

    Fields that are absent, null or of an unexpected shape are dropped before
    validation so they take their declared defaults.
    """

    @model_validator(mode="before")
    @classmethod
    def fill_defaults(cls, data: Any) -> Dict[str, Any]:
        if isinstance(data, BaseModel):
            data = data.model_dump()
        if not isinstance(data, dict):
            return {}
        cleaned = {}
        for name, field in cls.model_fields.items():
            if name not in data:
                continue
            value = _coerce_value(field.annotation, data[name])
            if value is not _MISSING:
                cleaned[name] = value
        return cleaned


class SpeciesInfo(LenientModel):
    """Identification of the analysed plant"""
    name: str = Field("Unknown", description="Scientific and common names")
    characteristics: str = Field("", description="Distinctive features")
    family: str = Field("", description="Plant family")
    origin: str = Field("", description="Native region")


class HealthInfo(LenientModel):
    """Health assessment of the analysed plant"""
    status: str = Field("Unknown", description="Health status, e.g. Healthy/Unhealthy")
    issues: List[str] = Field(default_factory=list, description="Detected problems")
    assessment: str = Field("", description="Detailed evaluation")


class Recommendations(LenientModel):
    """Care and treatment advice"""
    care: List[str] = Field(default_factory=list, description="Care instructions")
    treatment: List[str] = Field(default_factory=list, description="Treatment suggestions")
    notes: str = Field("", description="Additional advice")


class PlantRecord(LenientModel):
    """Normalized description of one plant, assembled per request and never persisted"""
    species: SpeciesInfo = Field(default_factory=SpeciesInfo)
    health: HealthInfo = Field(default_factory=HealthInfo)
    recommendations: Recommendations = Field(default_factory=Recommendations)
    interesting_facts: str = Field("", description="Notable information")


class ReportRequest(PlantRecord):
    """Body of the report download; the image is optional"""
    image: Optional[str] = Field(None, description="Plant image as a data URI")


class AnalysisResponse(PlantRecord):
    """Successful analysis result returned to the client"""
    success: bool = True
    image: str = Field(..., description="Uploaded image as a data URI")


class ErrorResponse(BaseModel):
    """Client error body"""
    error: str


class FailureResponse(BaseModel):
    """Server error body"""
    success: bool = False
    error: str
    details: str
