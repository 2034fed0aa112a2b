import logging
import math
import mimetypes
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import httpx

from schemas.ocr_schema import OCRResult

logger = logging.getLogger(__name__)

INVALID_IMAGE_MESSAGE = "Please select a valid image file"
FAILED_MESSAGE = "OCR processing failed"
EMPTY_TEXT_MESSAGE = "No text found in the image"
DOWNLOAD_FILENAME = "extracted-text.txt"


class ClientState(str, Enum):
    IDLE = "idle"
    IMAGE_SELECTED = "imageSelected"
    PROCESSING = "processing"
    RESULT_SHOWN = "resultShown"
    ERROR_SHOWN = "errorShown"


class ClientStateError(RuntimeError):
    """Raised when an action is not available in the current state."""


class OCRRequestError(Exception):
    pass


@dataclass(frozen=True)
class SelectedImage:
    filename: str
    data: bytes
    mime_type: str


class OCRClientSession:
    """
    Scripted counterpart of the upload page: select an image, extract its text,
    download the result. Mirrors the page's states and messages.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        client: Optional[httpx.Client] = None,
        poll_interval: float = 1.0,
        max_polls: int = 300,
    ):
        self._client = client or httpx.Client(base_url=base_url)
        self._owns_client = client is None
        self.poll_interval = poll_interval
        self.max_polls = max_polls

        self.state = ClientState.IDLE
        self.image: Optional[SelectedImage] = None
        self.result: Optional[OCRResult] = None
        self.error: Optional[str] = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        if self._owns_client:
            self._client.close()

    def select(self, filename: str, data: bytes, mime_type: Optional[str] = None) -> bool:
        """Returns False (and records an error) when the file is not an image."""
        mime_type = mime_type or mimetypes.guess_type(filename)[0] or ""
        self.result = None

        if not mime_type.startswith("image/"):
            self.image = None
            self.error = INVALID_IMAGE_MESSAGE
            self.state = ClientState.IDLE
            return False

        self.image = SelectedImage(filename=filename, data=data, mime_type=mime_type)
        self.error = None
        self.state = ClientState.IMAGE_SELECTED
        return True

    def extract(self) -> Optional[OCRResult]:
        if self.image is None:
            raise ClientStateError("Select an image before extracting text.")
        if self.state == ClientState.PROCESSING:
            raise ClientStateError("Extraction already in progress.")

        self.state = ClientState.PROCESSING
        self.error = None

        try:
            response = self._client.post(
                "/api/ocr",
                files={"image": (self.image.filename, self.image.data, self.image.mime_type)},
            )
            if response.status_code == 202:
                response = self._poll(response.json()["id"])
            if response.status_code != 200:
                raise OCRRequestError(f"Server responded {response.status_code}")
            result = OCRResult.model_validate(response.json())
        except Exception as e:
            # 400, 500 and network errors all get the same message
            logger.warning("OCR request failed: %s", e)
            self.result = None
            self.error = FAILED_MESSAGE
            self.state = ClientState.ERROR_SHOWN
            return None

        self.result = result
        self.state = ClientState.RESULT_SHOWN
        return result

    def _poll(self, job_id: str) -> httpx.Response:
        for _ in range(self.max_polls):
            time.sleep(self.poll_interval)
            response = self._client.get(f"/api/ocr/jobs/{job_id}")
            if response.status_code != 202:
                return response
        raise OCRRequestError(f"Job {job_id} still processing after {self.max_polls} polls")

    @property
    def display_text(self) -> Optional[str]:
        if self.result is None:
            return None
        return self.result.text or EMPTY_TEXT_MESSAGE

    @property
    def confidence_label(self) -> Optional[str]:
        if self.result is None:
            return None
        # Round half up, as the page does
        return f"Confidence: {math.floor(self.result.confidence + 0.5)}%"

    def download(self, directory=".") -> Path:
        """Writes the extracted text to extracted-text.txt (UTF-8) and returns its path."""
        if self.state != ClientState.RESULT_SHOWN or not self.result.text:
            raise ClientStateError("No extracted text to download.")
        path = Path(directory) / DOWNLOAD_FILENAME
        path.write_bytes(self.result.text.encode("utf-8"))
        return path
