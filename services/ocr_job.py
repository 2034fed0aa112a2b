import base64
import logging
import threading
import time
from typing import Optional

from core.config import settings
from helper import ocr
from schemas.ocr_schema import JobPayload, OCRResult, ProgressEvent
from services.task_service import task

logger = logging.getLogger(__name__)

OCR_TASK_ID = "ocr-process"

_id_lock = threading.Lock()
_last_millis = 0


def new_result_id() -> str:
    """'ocr_' + epoch millis, bumped forward so no two results share an id."""
    global _last_millis
    with _id_lock:
        millis = max(int(time.time() * 1000), _last_millis + 1)
        _last_millis = millis
    return f"ocr_{millis}"


def log_progress(event: ProgressEvent):
    logger.debug("OCR progress: %s (%.0f%%)", event.status, event.progress * 100)


def run_ocr_job(
    payload: JobPayload,
    engine: Optional[ocr.RecognitionEngine] = None,
    language: Optional[str] = None,
) -> OCRResult:
    """
    Decodes the payload image and runs recognition on it.
    Never raises: any failure comes back as a result with status 'failed'.
    """
    logger.info("Processing OCR for file: %s", payload.file_name)
    try:
        engine = engine or ocr.default_engine()
        image_bytes = base64.b64decode(payload.image_data, validate=True)

        recognized = engine.recognize(
            image_bytes,
            language or settings.OCR_LANGUAGE,
            on_progress=log_progress,
        )

        result = OCRResult(
            id=new_result_id(),
            text=recognized.text,
            confidence=min(max(recognized.confidence, 0.0), 100.0),
            status="completed",
        )
        logger.info("OCR completed with %.1f%% confidence", result.confidence)
        return result

    except Exception:
        logger.exception("OCR processing failed for file: %s", payload.file_name)
        return OCRResult(id=new_result_id(), text="", confidence=0, status="failed")


@task(OCR_TASK_ID)
def ocr_process(
    payload: JobPayload,
    engine: Optional[ocr.RecognitionEngine] = None,
    language: Optional[str] = None,
) -> OCRResult:
    return run_ocr_job(payload, engine=engine, language=language)
