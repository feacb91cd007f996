import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.api.routes import router as api_router
from app.config import get_settings
from app.exceptions import PlantServiceError
from app.services.gemini import GeminiClient
from app.services.storage import purge_stale_files

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One model client for the whole process lifetime
    app.state.model_client = GeminiClient(
        api_key=settings.GEMINI_API_KEY,
        model_name=settings.GEMINI_MODEL,
        timeout_seconds=settings.GEMINI_TIMEOUT_SECONDS,
    )
    for directory in (settings.UPLOAD_DIR, settings.REPORTS_DIR):
        Path(directory).mkdir(parents=True, exist_ok=True)
        purge_stale_files(directory, settings.STALE_FILE_MAX_AGE_SECONDS)

    logger.info(f"Server running on port {settings.PORT}")
    logger.info(f"Uploads directory: {Path(settings.UPLOAD_DIR).resolve()}")
    yield

    for directory in (settings.UPLOAD_DIR, settings.REPORTS_DIR):
        purge_stale_files(directory, settings.STALE_FILE_MAX_AGE_SECONDS)
    app.state.model_client = None


app = FastAPI(
    title="Plant Report API",
    description="API for plant identification, health analysis and PDF reports",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PlantServiceError)
async def plant_service_error_handler(request: Request, exc: PlantServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.error}: {exc.details}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.details}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_content())


# Include routes
app.include_router(api_router, prefix=settings.API_PREFIX)


# Serve the static front-end if present, otherwise a plain root endpoint
if os.path.isdir(settings.STATIC_DIR):
    app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="static")
else:
    @app.get("/", tags=["Health"])
    async def root():
        return {"message": "Welcome to Plant Report API", "status": "active"}


# Customized OpenAPI documentation
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title="Plant Report API",
        version="0.1.0",
        description="Upload a plant photo for AI analysis and download the result as a PDF report",
        routes=app.routes,
    )
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.PORT, reload=settings.DEBUG)
