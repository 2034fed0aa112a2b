import base64
import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from core.deps import engine_dependency, runner_dependency, settings_dependency
from schemas.ocr_schema import ErrorResponse, JobPayload, OCRResult
from services.ocr_job import OCR_TASK_ID

logger = logging.getLogger(__name__)

NO_IMAGE_MESSAGE = "No image provided"
FAILED_MESSAGE = "Failed to process image"
JOB_NOT_FOUND_MESSAGE = "Job not found"

router = APIRouter(
    prefix="/api/ocr",
    tags=["ocr"],
)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def processing_response(job_id: str) -> JSONResponse:
    pending = OCRResult(id=job_id, text="", confidence=0, status="processing")
    return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=pending.model_dump())


# --- Endpoint 1: Upload an image and run OCR on it ---

@router.post(
    "",
    response_model=OCRResult,
    responses={
        202: {"model": OCRResult, "description": "Job accepted (poll mode)"},
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def extract_text(
    request: Request,
    runner: runner_dependency,
    engine: engine_dependency,
    app_settings: settings_dependency,
):
    """
    Accepts a multipart upload with one file field named 'image'.
    In blocking mode the request waits for the OCR job and returns its result.
    In poll mode it returns 202 with the job id to poll.
    """
    try:
        form = await request.form()
        image = form.get("image")
        if not isinstance(image, UploadFile):
            return error_response(status.HTTP_400_BAD_REQUEST, NO_IMAGE_MESSAGE)

        contents = await image.read()
        payload = JobPayload(
            imageData=base64.b64encode(contents).decode("ascii"),
            fileName=image.filename or "",
            mimeType=image.content_type or "",
        )

        poll_mode = app_settings.OCR_MODE == "poll"
        # Only poll clients ever look a handle up again
        handle = runner.submit(
            OCR_TASK_ID,
            payload,
            retain=poll_mode,
            engine=engine,
            language=app_settings.OCR_LANGUAGE,
        )

        if poll_mode:
            return processing_response(handle.id)

        return await handle.result()

    except Exception:
        logger.exception("OCR API Error")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, FAILED_MESSAGE)


# --- Endpoint 2: Poll a submitted job ---

@router.get(
    "/jobs/{job_id}",
    response_model=OCRResult,
    responses={
        202: {"model": OCRResult, "description": "Job still processing"},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def get_job_result(job_id: str, runner: runner_dependency):
    handle = runner.get(job_id)
    if handle is None:
        return error_response(status.HTTP_404_NOT_FOUND, JOB_NOT_FOUND_MESSAGE)

    if not handle.done():
        return processing_response(job_id)

    try:
        return await handle.result()
    except Exception:
        logger.exception("OCR job %s failed", job_id)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, FAILED_MESSAGE)
