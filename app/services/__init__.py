# app/services/__init__.py
# Import the services
from app.services.analyzer import PlantAnalyzerService
from app.services.report import ReportRenderer
