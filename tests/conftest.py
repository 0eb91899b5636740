"""
conftest.py
-----------
Shared pytest fixtures for Muninn tests.

Provides fixtures for:
- Database setup and teardown (temporary SQLite file with mirror and audio store)
- Manager instances bound to one session
- Fake speech-to-text and analysis collaborators
- A pipeline wired to the fakes
"""
import pytest
from typing import Any, Dict, List, Optional, Sequence

from muninn.core.config import JournalConfig
from muninn.core.exceptions import AnalysisError, TranscriptionError
from muninn.dataclasses.analysis import AgentTrajectory, Analysis, RelatedEntry
from muninn.nlp.protocols import AnalysisOutcome, TranscriptionResult


# ----- Fake collaborators -----

class FakeSpeechToText:
    """SpeechToText double: returns a fixed result or raises queued errors."""

    def __init__(self, text: str = "I walked to the river this morning.", duration: float = 12.5):
        self.text = text
        self.duration = duration
        self.calls: List[Dict[str, Any]] = []
        self.errors: List[Exception] = []

    def transcribe(self, audio: bytes, mime_type: str, prompt: Optional[str] = None):
        self.calls.append({"audio": audio, "mime_type": mime_type, "prompt": prompt})
        if self.errors:
            raise self.errors.pop(0)
        return TranscriptionResult(text=self.text, language="en", duration_seconds=self.duration)


class FakeAnalyzer:
    """EntryAnalyzer double with a configurable outcome."""

    def __init__(self):
        self.analysis = make_analysis()
        self.related: List[RelatedEntry] = []
        self.calls: List[Dict[str, Any]] = []
        self.question_calls: List[Sequence[Dict[str, Any]]] = []
        self.errors: List[Exception] = []
        self.questions = ["What surprised you?", "Who did you meet?", "What comes next?"]

    def analyze(self, entry_id, transcript, existing_tags, user_context=None, recent_entries=()):
        self.calls.append(
            {
                "entry_id": entry_id,
                "transcript": transcript,
                "existing_tags": list(existing_tags),
                "user_context": user_context,
                "recent_entries": list(recent_entries),
            }
        )
        if self.errors:
            raise self.errors.pop(0)
        return AnalysisOutcome(
            analysis=self.analysis,
            related=list(self.related),
            trajectory=AgentTrajectory(model="fake-model", num_turns=1),
        )

    def generate_interview_questions(self, recent_entries):
        self.question_calls.append(list(recent_entries))
        if not recent_entries:
            return ["What's on your mind today?"]
        return list(self.questions)


def make_analysis(**overrides) -> Analysis:
    """Analysis with sensible defaults for tests."""
    values = {
        "title": "Morning Walk",
        "summary": "A walk by the river.",
        "themes": ["nature"],
        "tags": ["Nature", "routine"],
        "mood": "calm",
        "follow_up_questions": ["Where will you walk tomorrow?"],
    }
    values.update(overrides)
    return Analysis(**values)


# ----- Path Fixtures -----

@pytest.fixture
def data_dir(tmp_path):
    """Temporary journal data directory."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def test_config(data_dir):
    """Config with a small upload ceiling and no retry delay."""
    return JournalConfig(
        data_dir=data_dir,
        max_upload_bytes=1024,
        retry_attempts=3,
        retry_initial_delay=0.0,
        retry_max_delay=0.0,
    )


# ----- Database Fixtures -----

@pytest.fixture
def audio_store(test_config):
    from muninn.pipeline.audio_store import LocalAudioStore

    return LocalAudioStore(test_config.audio_dir)


@pytest.fixture
def mirror(test_config):
    from muninn.pipeline.sql2md import MarkdownMirror

    return MarkdownMirror(test_config.entries_dir)


@pytest.fixture
def test_db(test_config, mirror, audio_store):
    """
    Create a test database with a fresh schema.

    Returns a JournalDB wired to a markdown mirror and audio store in the
    temporary data directory.
    """
    from muninn.database.manager import JournalDB

    db = JournalDB(test_config.db_path, mirror=mirror, audio_store=audio_store)
    yield db
    db.engine.dispose()


@pytest.fixture
def db_session(test_db):
    """A session whose work is committed when the test ends."""
    with test_db.session_scope() as session:
        yield session


@pytest.fixture
def entry_manager(db_session):
    from muninn.database.managers import EntryManager

    return EntryManager(db_session)


@pytest.fixture
def tag_manager(db_session):
    from muninn.database.managers import TagManager

    return TagManager(db_session)


@pytest.fixture
def link_manager(db_session):
    from muninn.database.managers import LinkManager

    return LinkManager(db_session)


@pytest.fixture
def cache_manager(db_session):
    from muninn.database.managers import CacheManager

    return CacheManager(db_session)


@pytest.fixture
def settings_manager(db_session):
    from muninn.database.managers import SettingsManager

    return SettingsManager(db_session)


# ----- Pipeline Fixtures -----

@pytest.fixture
def fake_stt():
    return FakeSpeechToText()


@pytest.fixture
def fake_analyzer():
    return FakeAnalyzer()


@pytest.fixture
def pipeline(test_db, fake_stt, fake_analyzer, audio_store, test_config):
    """JournalPipeline wired to fakes; retries never sleep."""
    from muninn.pipeline.orchestrator import JournalPipeline

    return JournalPipeline(
        test_db,
        fake_stt,
        fake_analyzer,
        audio_store,
        config=test_config,
        sleep=lambda seconds: None,
    )


@pytest.fixture
def transient_stt_error():
    return TranscriptionError("Whisper transcription failed: HTTP 503", retryable=True, status_code=503)


@pytest.fixture
def fatal_analysis_error():
    return AnalysisError("Analysis request failed: HTTP 400", retryable=False, status_code=400)
