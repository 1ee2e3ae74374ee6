"""
Shared pytest fixtures for StrategyScribe tests.

Provides fake Transcriber / Analyzer / card reader doubles so no Whisper
model or LLM is ever loaded, and a fresh SQLite store per test.
"""

import threading

import pytest
from fastapi.testclient import TestClient

from db.database import DocumentStore
from notes.errors import AnalysisError, TranscriptionError
from notes.lifecycle import NoteManager
from notes.search import SearchEngine
from server.app import create_app
from server.relay import NoteRelay


class FakeTranscriber:
    """Returns a fixed transcript, or fails; can be held until released."""

    is_loaded = True

    def __init__(self, text: str = "We need more customers in Lisbon", fail: bool = False):
        self.text = text
        self.fail = fail
        self.calls = []
        self.release = threading.Event()
        self.release.set()

    def transcribe(self, audio_bytes: bytes, mime_type: str | None = None) -> dict:
        self.calls.append((audio_bytes, mime_type))
        self.release.wait(5)
        if self.fail:
            raise TranscriptionError("whisper exploded")
        return {"text": self.text, "language": "en", "duration_secs": 3}


class FakeAnalyzer:
    provider = "fake"

    def __init__(self, strategy: str = "focus on retention first", fail: bool = False):
        self.strategy = strategy
        self.fail = fail
        self.calls = []

    def analyze(self, text: str) -> dict:
        self.calls.append(text)
        if self.fail:
            raise AnalysisError("llm unavailable")
        return {"strategy": self.strategy, "model": "fake-model"}


class FakeCardReader:
    def __init__(self, text: str = ""):
        self.text = text
        self.calls = []

    def read_text(self, image: bytes, media_type: str = "image/png") -> str:
        self.calls.append((image, media_type))
        return self.text


@pytest.fixture
def store(tmp_path):
    with DocumentStore(tmp_path / "test.db") as s:
        yield s


@pytest.fixture
def transcriber():
    return FakeTranscriber()


@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest.fixture
def manager(store, transcriber, analyzer):
    m = NoteManager(store, transcriber, analyzer)
    yield m
    m.wait_idle(timeout=5)


@pytest.fixture
def search(store):
    engine = SearchEngine(store)
    yield engine
    engine.close()


@pytest.fixture
def seed(store):
    """Insert raw note documents with explicit timestamps."""
    notes = store.collection("transcriptions")

    def _seed(text: str, minute: int, strategy: str | None = None, status: str = "draft") -> str:
        doc = {
            "text": text,
            "textLower": text.lower(),
            "status": status,
            "metadata": {"source": "manual", "wordCount": len(text.split(" "))},
            "timestamp": f"2026-01-01T10:{minute:02d}:00+00:00",
        }
        if strategy is not None:
            doc["analysis"] = {
                "strategy": strategy,
                "model": "fake-model",
                "timestamp": f"2026-01-01T11:{minute:02d}:00+00:00",
            }
            doc["status"] = "analyzed"
        return notes.add(doc)

    return _seed


@pytest.fixture
def card_reader():
    return FakeCardReader("Jane Doe\njane@acme.io\n+1 (555) 123-4567\nAcme Corp\nHead of Sales")


@pytest.fixture
def relay():
    return NoteRelay()


@pytest.fixture
def client(store, manager, search, card_reader, relay):
    with TestClient(create_app(store, manager, search, card_reader, relay)) as c:
        yield c
