from typing import Annotated
from fastapi import Depends, Request

from core.config import Settings
from helper.ocr import RecognitionEngine
from services.task_service import TaskRunner


def get_task_runner(request: Request) -> TaskRunner:
    """The runner created by the application lifespan."""
    return request.app.state.task_runner


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_recognition_engine(request: Request) -> RecognitionEngine:
    """The engine built from the app's settings at startup."""
    return request.app.state.recognition_engine


runner_dependency = Annotated[TaskRunner, Depends(get_task_runner)]
settings_dependency = Annotated[Settings, Depends(get_settings)]
engine_dependency = Annotated[RecognitionEngine, Depends(get_recognition_engine)]
