# app/models/__init__.py
# Imports for easier usage
from app.models.plant_record import (
    PlantRecord,
    SpeciesInfo,
    HealthInfo,
    Recommendations,
    ReportRequest,
    AnalysisResponse,
    ErrorResponse,
    FailureResponse,
)
