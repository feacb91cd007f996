# Custom exceptions package
from app.exceptions.plant import (
    PlantServiceError,
    MissingInput,
    InvalidUpload,
    AnalysisFailure,
    ParseFailure,
    RenderFailure,
)

__all__ = [
    'PlantServiceError',
    'MissingInput',
    'InvalidUpload',
    'AnalysisFailure',
    'ParseFailure',
    'RenderFailure',
]
