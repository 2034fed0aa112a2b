import pytest
from fastapi.testclient import TestClient

from core.config import Settings
from core.init_app import create_application
from helper import ocr
from schemas.ocr_schema import ProgressEvent, RecognitionResult


class FakeEngine:
    """Deterministic stand-in for tesseract."""

    def __init__(self, text="Hello", confidence=92.0):
        self.text = text
        self.confidence = confidence
        self.error = None
        self.calls = []

    def recognize(self, image_bytes, language, on_progress=None):
        self.calls.append((image_bytes, language))
        if on_progress is not None:
            on_progress(ProgressEvent(status="recognizing text", progress=1.0))
        if self.error is not None:
            raise self.error
        return RecognitionResult(text=self.text, confidence=self.confidence)


@pytest.fixture
def engine(monkeypatch):
    fake = FakeEngine()
    monkeypatch.setattr(ocr, "default_engine", lambda: fake)
    monkeypatch.setattr(ocr, "engine_from_settings", lambda app_settings: fake)
    return fake


@pytest.fixture
def make_client(engine):
    clients = []

    def factory(**overrides):
        client = TestClient(create_application(Settings(**overrides)))
        client.__enter__()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def png_bytes():
    return b"\x89PNG\r\n\x1a\nnot-really-decoded-by-the-fake-engine"
