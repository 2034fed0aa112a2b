from pydantic import BaseModel, ConfigDict, Field
from typing import Literal

OCRStatus = Literal["completed", "processing", "failed"]

class JobPayload(BaseModel):
    """What the upload endpoint hands to the 'ocr-process' job."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    image_data: str = Field(alias="imageData")  # base64
    file_name: str = Field(alias="fileName")
    mime_type: str = Field(alias="mimeType")

class OCRResult(BaseModel):
    id: str
    text: str
    confidence: float = Field(ge=0, le=100)
    status: OCRStatus

class RecognitionResult(BaseModel):
    text: str
    confidence: float

class ProgressEvent(BaseModel):
    status: str
    progress: float = Field(ge=0, le=1)

class ErrorResponse(BaseModel):
    error: str
