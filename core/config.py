from typing import Literal, Optional

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Pydantic will automatically read from environment variables.
class Settings(BaseSettings):
    # Core App Settings
    PROJECT_NAME: str = "OCR Text Extractor"
    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    # OCR Settings
    OCR_LANGUAGE: str = "eng"
    # 'blocking' awaits the job inside the request, 'poll' returns a job handle
    OCR_MODE: Literal["blocking", "poll"] = "blocking"
    TESSERACT_CMD: Optional[str] = None
    TESSERACT_CONFIG: str = ""

    # Task Runner Settings
    TASK_MAX_WORKERS: int = 2
    TASK_MAX_PENDING: int = 32
    JOB_RETENTION_SECONDS: float = 600.0

settings = Settings()
