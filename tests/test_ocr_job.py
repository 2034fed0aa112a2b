import base64
import logging

from schemas.ocr_schema import JobPayload, RecognitionResult
from services import ocr_job
from services.task_service import get_task


def make_payload(data=b"image-bytes", file_name="photo.png"):
    return JobPayload(
        imageData=base64.b64encode(data).decode("ascii"),
        fileName=file_name,
        mimeType="image/png",
    )


def test_payload_uses_camel_case_on_the_wire():
    payload = make_payload()

    dumped = payload.model_dump(by_alias=True)

    assert set(dumped) == {"imageData", "fileName", "mimeType"}


def test_completed_result(engine):
    result = ocr_job.run_ocr_job(make_payload(b"abc"))

    assert result.status == "completed"
    assert result.text == "Hello"
    assert result.confidence == 92
    assert engine.calls == [(b"abc", "eng")]


def test_language_can_be_overridden(engine):
    ocr_job.run_ocr_job(make_payload(b"abc"), language="deu")

    assert engine.calls == [(b"abc", "deu")]


def test_explicit_engine_wins_over_default(engine):
    class Other:
        def recognize(self, image_bytes, language, on_progress=None):
            return RecognitionResult(text="other", confidence=50)

    result = ocr_job.run_ocr_job(make_payload(), engine=Other())

    assert result.text == "other"
    assert engine.calls == []


def test_engine_error_becomes_failed_result(engine, caplog):
    engine.error = OSError("corrupt image")

    with caplog.at_level(logging.ERROR, logger="services.ocr_job"):
        result = ocr_job.run_ocr_job(make_payload())

    assert result.status == "failed"
    assert result.text == ""
    assert result.confidence == 0
    assert result.id.startswith("ocr_")
    assert "OCR processing failed" in caplog.text


def test_bad_base64_becomes_failed_result(engine):
    payload = JobPayload(imageData="!!not base64!!", fileName="x.png", mimeType="image/png")

    result = ocr_job.run_ocr_job(payload)

    assert result.status == "failed"
    assert engine.calls == []


def test_confidence_is_clamped(engine):
    engine.confidence = 130.0
    assert ocr_job.run_ocr_job(make_payload()).confidence == 100

    engine.confidence = -4.0
    assert ocr_job.run_ocr_job(make_payload()).confidence == 0


def test_result_ids_are_unique_and_increasing():
    ids = [ocr_job.new_result_id() for _ in range(50)]

    millis = [int(i.removeprefix("ocr_")) for i in ids]
    assert millis == sorted(millis)
    assert len(set(ids)) == len(ids)


def test_progress_events_are_logged(engine, caplog):
    with caplog.at_level(logging.DEBUG, logger="services.ocr_job"):
        ocr_job.run_ocr_job(make_payload())

    assert "OCR progress: recognizing text (100%)" in caplog.text


def test_registered_as_ocr_process():
    assert get_task("ocr-process") is ocr_job.ocr_process
