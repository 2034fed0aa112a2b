import io
import logging
from collections import defaultdict
from functools import lru_cache
from typing import Callable, Optional, Protocol

import PIL.Image as Image
import pytesseract
from pytesseract import Output

from core.config import Settings, settings
from schemas.ocr_schema import ProgressEvent, RecognitionResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


class RecognitionEngine(Protocol):
    """
    Recognition port.
    Implementations accept raw image bytes and return text plus a 0-100 confidence,
    raising on unreadable or corrupt image data.
    """
    def recognize(
        self,
        image_bytes: bytes,
        language: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> RecognitionResult:
        ...


def emit_progress(on_progress: Optional[ProgressCallback], status: str, progress: float):
    """Sends one progress event. A failing listener never affects recognition."""
    if on_progress is None:
        return
    try:
        on_progress(ProgressEvent(status=status, progress=progress))
    except Exception:
        logger.warning("Progress listener failed for event %r", status, exc_info=True)


def mean_word_confidence(confidences) -> float:
    """
    Averages tesseract word confidences.
    Entries below zero mark layout boxes (page, block, line) and are skipped.
    """
    words = [float(c) for c in confidences if float(c) >= 0]
    if not words:
        return 0.0
    return sum(words) / len(words)


def lines_from_data(data) -> str:
    """
    Rebuilds plain text from tesseract word data.
    Words are grouped by (block, paragraph, line) and joined with spaces; lines with newlines.
    """
    lines = defaultdict(list)
    for i, word in enumerate(data["text"]):
        word = word.strip()
        if not word:
            continue
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        lines[key].append(word)
    return "\n".join(" ".join(lines[key]) for key in sorted(lines))


# =====================================================================================
# TESSERACT ENGINE
# =====================================================================================
class TesseractEngine:
    def __init__(self, tesseract_cmd: Optional[str] = None, config: str = ""):
        """
        Args:
            tesseract_cmd (str): Path to the tesseract binary, None to use PATH.
            config (str): Extra tesseract CLI options, e.g. '--psm 6'.
        """
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.config = config

    def recognize(self, image_bytes, language, on_progress=None):
        emit_progress(on_progress, "loading image", 0.0)
        # Pillow raises UnidentifiedImageError on anything it cannot decode
        with Image.open(io.BytesIO(image_bytes)) as img:
            img.load()
            image = img.convert("RGB")

        emit_progress(on_progress, "recognizing text", 0.5)
        # One tesseract pass: text and confidence both come from the word data
        data = pytesseract.image_to_data(
            image, lang=language, config=self.config, output_type=Output.DICT
        )
        emit_progress(on_progress, "recognizing text", 1.0)

        return RecognitionResult(
            text=lines_from_data(data),
            confidence=mean_word_confidence(data["conf"]),
        )


def engine_from_settings(app_settings: Settings) -> RecognitionEngine:
    logger.info("Using tesseract engine (cmd=%s)", app_settings.TESSERACT_CMD or "tesseract")
    return TesseractEngine(app_settings.TESSERACT_CMD, app_settings.TESSERACT_CONFIG)


@lru_cache(maxsize=1)
def default_engine() -> RecognitionEngine:
    """Process-wide engine built from the module-level settings."""
    return engine_from_settings(settings)
