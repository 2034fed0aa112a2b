from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
import logging

from core.config import Settings, settings
from helper import ocr
from routers import ocr_router
from services.task_service import TaskRunner

STATIC_DIR = Path(__file__).resolve().parent.parent / "static"


def create_application(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Creates and configures the FastAPI application instance.
    """
    app_settings = app_settings or settings

    # Configure logging
    logging.basicConfig(level=app_settings.LOG_LEVEL)

    # 1. Lifespan: the task runner lives as long as the app
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # --- STARTUP ---
        app.state.recognition_engine = ocr.engine_from_settings(app_settings)
        app.state.task_runner = TaskRunner(
            max_workers=app_settings.TASK_MAX_WORKERS,
            max_pending=app_settings.TASK_MAX_PENDING,
            retention_seconds=app_settings.JOB_RETENTION_SECONDS,
        )
        logging.info("Task runner started (mode=%s).", app_settings.OCR_MODE)

        yield  # Application runs here

        # --- SHUTDOWN ---
        # In-flight jobs run to completion before the runner stops
        app.state.task_runner.shutdown(wait=True)

    app = FastAPI(title=app_settings.PROJECT_NAME, lifespan=lifespan)
    app.state.settings = app_settings

    # 2. CORS Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 3. Include Routers
    app.include_router(ocr_router.router)

    # 4. Health Check & UI
    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "mode": app_settings.OCR_MODE,
            "language": app_settings.OCR_LANGUAGE,
        }

    @app.get("/", include_in_schema=False)
    async def index():
        return FileResponse(STATIC_DIR / "index.html")

    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    return app
