"""
Tests for JournalPipeline with fake speech-to-text and analysis collaborators.
"""
from pathlib import Path

import pytest

from muninn.core.exceptions import (
    AnalysisError,
    InvalidEntryIdError,
    MissingAudioError,
    MissingTranscriptError,
    PayloadTooLargeError,
    StorageError,
    TranscriptionError,
    UnsupportedMediaTypeError,
    ValidationError,
)
from muninn.dataclasses.analysis import RelatedEntry
from muninn.database.models import EntryStatus
from muninn.pipeline.orchestrator import INTERVIEW_QUESTIONS_KEY, mime_for_locator
from muninn.pipeline.uploads import ChunkUploadTracker

from conftest import make_analysis


@pytest.fixture
def audio_entry(pipeline):
    return pipeline.ingest_audio(b"fake-audio", "audio/webm;codecs=opus")


class TestMimeForLocator:
    @pytest.mark.parametrize(
        "locator, mime_type",
        [
            ("/a/b.webm", "audio/webm"),
            ("/a/b.OGG", "audio/ogg"),
            ("b.mp3", "audio/mpeg"),
            ("b.m4a", "audio/mp4"),
            ("noextension", "audio/webm"),
        ],
    )
    def test_mapping(self, locator, mime_type):
        assert mime_for_locator(locator) == mime_type


class TestIngest:
    def test_ingest_audio(self, pipeline, audio_store):
        entry = pipeline.ingest_audio(b"fake-audio", "audio/ogg")

        assert entry.status == EntryStatus.PENDING_TRANSCRIPTION
        assert entry.audio_path.endswith(f"{entry.id}.ogg")
        assert audio_store.read(entry.audio_path) == b"fake-audio"

    def test_unsupported_mime_creates_nothing(self, pipeline):
        with pytest.raises(UnsupportedMediaTypeError):
            pipeline.ingest_audio(b"data", "text/plain")

        assert pipeline.db.count_entries() == 0

    def test_oversized_creates_nothing(self, pipeline, test_config):
        with pytest.raises(PayloadTooLargeError):
            pipeline.ingest_audio(b"x" * (test_config.max_upload_bytes + 1), "audio/webm")

        assert pipeline.db.count_entries() == 0

    def test_storage_failure_removes_entry(self, pipeline, monkeypatch):
        def broken_write(key, data):
            raise StorageError("disk full")

        monkeypatch.setattr(pipeline.audio_store, "write", broken_write)

        with pytest.raises(StorageError):
            pipeline.ingest_audio(b"data", "audio/webm")

        assert pipeline.db.count_entries() == 0

    def test_text_entry(self, pipeline):
        entry = pipeline.create_text_entry("  Typed thoughts  ")

        assert entry.status == EntryStatus.TRANSCRIBED
        assert entry.transcript == "Typed thoughts"

    def test_empty_text_entry(self, pipeline):
        with pytest.raises(ValidationError):
            pipeline.create_text_entry("   ")


class TestChunkedUpload:
    """Chunks accumulate under a size ceiling; the last one attaches the audio."""

    def test_chunks_are_concatenated(self, pipeline, audio_store):
        entry = pipeline.db.create_entry()

        assert pipeline.append_chunk(entry.id, b"abc", "audio/webm", 0).audio_path is None
        pipeline.append_chunk(entry.id, b"def", "audio/webm", 1)
        done = pipeline.append_chunk(entry.id, b"g", "audio/webm", 2, is_last=True)

        assert audio_store.read(done.audio_path) == b"abcdefg"
        assert entry.id not in pipeline.tracker

    def test_unknown_entry(self, pipeline):
        assert pipeline.append_chunk("1700000000000-none", b"x", "audio/webm", 0) is None

    def test_malformed_id(self, pipeline):
        with pytest.raises(InvalidEntryIdError):
            pipeline.append_chunk("../x", b"x", "audio/webm", 0)

    def test_chunk_without_start(self, pipeline):
        entry = pipeline.db.create_entry()

        with pytest.raises(ValidationError):
            pipeline.append_chunk(entry.id, b"x", "audio/webm", 3)

    @pytest.mark.parametrize("index", [1, 3, -1])
    def test_out_of_order_chunk_rejected(self, pipeline, audio_store, index):
        entry = pipeline.db.create_entry()
        pipeline.append_chunk(entry.id, b"abc", "audio/webm", 0)
        pipeline.append_chunk(entry.id, b"def", "audio/webm", 1)

        with pytest.raises(ValidationError):
            pipeline.append_chunk(entry.id, b"zzz", "audio/webm", index, is_last=True)

        assert audio_store.read(audio_store.locator(f"{entry.id}.webm")) == b"abcdef"
        assert pipeline.tracker.get(entry.id).total_bytes == 6
        assert pipeline.db.get_entry(entry.id).audio_path is None

        done = pipeline.append_chunk(entry.id, b"g", "audio/webm", 2, is_last=True)
        assert audio_store.read(done.audio_path) == b"abcdefg"

    def test_total_over_ceiling_drops_partial_file(self, pipeline, audio_store, test_config):
        entry = pipeline.db.create_entry()
        half = b"x" * (test_config.max_upload_bytes // 2 + 1)
        pipeline.append_chunk(entry.id, half, "audio/webm", 0)

        with pytest.raises(PayloadTooLargeError):
            pipeline.append_chunk(entry.id, half, "audio/webm", 1)

        assert not audio_store.exists(audio_store.locator(f"{entry.id}.webm"))
        assert entry.id not in pipeline.tracker
        assert pipeline.db.get_entry(entry.id).audio_path is None

    def test_oversized_first_chunk(self, pipeline, audio_store, test_config):
        entry = pipeline.db.create_entry()

        with pytest.raises(PayloadTooLargeError):
            pipeline.append_chunk(entry.id, b"x" * (test_config.max_upload_bytes + 1), "audio/webm", 0)

        assert not audio_store.exists(audio_store.locator(f"{entry.id}.webm"))

    def test_restart_truncates(self, pipeline, audio_store):
        entry = pipeline.db.create_entry()
        pipeline.append_chunk(entry.id, b"stale", "audio/webm", 0)

        done = pipeline.append_chunk(entry.id, b"fresh", "audio/webm", 0, is_last=True)

        assert audio_store.read(done.audio_path) == b"fresh"

    def test_sweep_abandoned(self, pipeline, audio_store):
        now = [0.0]
        pipeline.tracker = ChunkUploadTracker(clock=lambda: now[0])
        entry = pipeline.db.create_entry()
        pipeline.append_chunk(entry.id, b"partial", "audio/webm", 0)
        now[0] = 10_000.0

        assert pipeline.sweep_abandoned_uploads(max_age=3600) == [entry.id]
        assert pipeline.db.get_entry(entry.id) is None
        assert not audio_store.exists(audio_store.locator(f"{entry.id}.webm"))

    def test_sweep_keeps_recent(self, pipeline):
        entry = pipeline.db.create_entry()
        pipeline.append_chunk(entry.id, b"partial", "audio/webm", 0)

        assert pipeline.sweep_abandoned_uploads(max_age=3600) == []
        assert entry.id in pipeline.tracker


class TestTranscribe:
    def test_success(self, pipeline, audio_entry, fake_stt):
        entry = pipeline.transcribe(audio_entry.id, prompt="Ana, Lisbon")

        assert entry.status == EntryStatus.TRANSCRIBED
        assert entry.transcript == fake_stt.text
        assert entry.audio_duration_seconds == fake_stt.duration
        assert fake_stt.calls[0] == {
            "audio": b"fake-audio",
            "mime_type": "audio/webm",
            "prompt": "Ana, Lisbon",
        }

    def test_unknown_entry(self, pipeline):
        assert pipeline.transcribe("1700000000000-none") is None

    def test_no_audio(self, pipeline):
        entry = pipeline.create_text_entry("typed")

        with pytest.raises(MissingAudioError):
            pipeline.transcribe(entry.id)

    def test_foreign_audio_path_not_read(self, pipeline, fake_stt, tmp_path):
        outside = tmp_path / "private.webm"
        outside.write_bytes(b"not journal audio")
        entry = pipeline.db.create_entry(audio_path=str(outside))

        with pytest.raises(StorageError):
            pipeline.transcribe(entry.id)

        assert fake_stt.calls == []
        assert pipeline.db.get_entry(entry.id).status == EntryStatus.PENDING_TRANSCRIPTION

    def test_retries_transient_errors(self, pipeline, audio_entry, fake_stt, transient_stt_error):
        fake_stt.errors = [transient_stt_error, transient_stt_error]

        entry = pipeline.transcribe(audio_entry.id)

        assert entry.status == EntryStatus.TRANSCRIBED
        assert len(fake_stt.calls) == 3

    def test_exhausted_retries_leave_entry_unchanged(
        self, pipeline, audio_entry, fake_stt, transient_stt_error
    ):
        fake_stt.errors = [transient_stt_error] * 3

        with pytest.raises(TranscriptionError) as exc_info:
            pipeline.transcribe(audio_entry.id)

        assert exc_info.value.retryable is True
        entry = pipeline.db.get_entry(audio_entry.id)
        assert entry.status == EntryStatus.PENDING_TRANSCRIPTION
        assert entry.transcript is None

    def test_client_error_not_retried(self, pipeline, audio_entry, fake_stt):
        fake_stt.errors = [TranscriptionError("HTTP 400", retryable=False, status_code=400)]

        with pytest.raises(TranscriptionError):
            pipeline.transcribe(audio_entry.id)

        assert len(fake_stt.calls) == 1

    def test_unexpected_error_is_wrapped(self, pipeline, audio_entry, fake_stt):
        fake_stt.errors = [KeyError("text")] * 3

        with pytest.raises(TranscriptionError) as exc_info:
            pipeline.transcribe(audio_entry.id)

        assert exc_info.value.retryable is False

    def test_retranscribe_clears_derived_fields(self, pipeline, audio_entry, fake_stt):
        pipeline.transcribe(audio_entry.id)
        pipeline.analyze(audio_entry.id)
        fake_stt.text = "A different transcript."

        entry = pipeline.retranscribe(audio_entry.id)

        assert entry.status == EntryStatus.TRANSCRIBED
        assert entry.transcript == "A different transcript."
        assert entry.title is None
        assert entry.analysis is None
        assert entry.tag_names == []

    def test_retranscribe_failure_leaves_pending(
        self, pipeline, audio_entry, fake_stt, transient_stt_error
    ):
        pipeline.transcribe(audio_entry.id)
        pipeline.analyze(audio_entry.id)
        fake_stt.errors = [transient_stt_error] * 3

        with pytest.raises(TranscriptionError):
            pipeline.retranscribe(audio_entry.id)

        entry = pipeline.db.get_entry(audio_entry.id)
        assert entry.status == EntryStatus.PENDING_TRANSCRIPTION
        assert entry.tag_names == []


class TestAnalyze:
    def test_success(self, pipeline, fake_analyzer):
        entry = pipeline.create_text_entry("I walked to the river.")

        result = pipeline.analyze(entry.id)

        assert result.status == EntryStatus.ANALYZED
        assert result.title == "Morning Walk"
        assert result.tag_names == ["nature", "routine"]
        assert result.agent_trajectory.model == "fake-model"
        assert fake_analyzer.calls[0]["transcript"] == "I walked to the river."

    def test_context_passed_to_analyzer(self, pipeline, fake_analyzer):
        earlier = pipeline.create_text_entry("Earlier")
        pipeline.analyze(earlier.id)
        pipeline.db.set_user_profile("Likes rivers.")
        entry = pipeline.create_text_entry("Later")

        pipeline.analyze(entry.id)

        call = fake_analyzer.calls[-1]
        assert call["existing_tags"] == ["nature", "routine"]
        assert call["user_context"] == "Likes rivers."
        assert [r["id"] for r in call["recent_entries"]] == [earlier.id]
        assert call["recent_entries"][0]["tags"] == ["nature", "routine"]

    def test_related_entries_linked(self, pipeline, fake_analyzer):
        earlier = pipeline.create_text_entry("Earlier")
        entry = pipeline.create_text_entry("Later")
        fake_analyzer.related = [RelatedEntry(earlier.id, "same river")]

        pipeline.analyze(entry.id)

        linked = pipeline.db.get_linked_entries(earlier.id)
        assert [(e.id, reason) for e, reason in linked] == [(entry.id, "same river")]

    def test_missing_transcript(self, pipeline, audio_entry):
        with pytest.raises(MissingTranscriptError):
            pipeline.analyze(audio_entry.id)

    def test_unknown_entry(self, pipeline):
        assert pipeline.analyze("1700000000000-none") is None

    def test_non_retryable_failure(self, pipeline, fake_analyzer, fatal_analysis_error):
        entry = pipeline.create_text_entry("text")
        fake_analyzer.errors = [fatal_analysis_error]

        with pytest.raises(AnalysisError):
            pipeline.analyze(entry.id)

        assert len(fake_analyzer.calls) == 1
        assert pipeline.db.get_entry(entry.id).status == EntryStatus.TRANSCRIBED

    def test_transient_failure_retried(self, pipeline, fake_analyzer):
        entry = pipeline.create_text_entry("text")
        fake_analyzer.errors = [AnalysisError("HTTP 529", retryable=True, status_code=529)]

        assert pipeline.analyze(entry.id).status == EntryStatus.ANALYZED
        assert len(fake_analyzer.calls) == 2


class TestInterviewQuestions:
    def test_defaults_without_history(self, pipeline, fake_analyzer):
        assert pipeline.interview_questions() == ["What's on your mind today?"]
        assert pipeline.db.get_cache(INTERVIEW_QUESTIONS_KEY) is None

    def test_cached_until_new_analysis(self, pipeline, fake_analyzer):
        first = pipeline.create_text_entry("one")
        pipeline.analyze(first.id)

        assert pipeline.interview_questions() == fake_analyzer.questions
        pipeline.interview_questions()
        assert len(fake_analyzer.question_calls) == 1

        second = pipeline.create_text_entry("two")
        pipeline.analyze(second.id)
        pipeline.interview_questions()

        assert len(fake_analyzer.question_calls) == 2

    def test_editing_older_entry_keeps_cache(self, pipeline, fake_analyzer):
        first = pipeline.create_text_entry("one")
        pipeline.analyze(first.id)
        fake_analyzer.questions = ["About one?"]
        assert pipeline.interview_questions() == ["About one?"]

        second = pipeline.create_text_entry("two")
        pipeline.analyze(second.id)
        fake_analyzer.questions = ["About two?"]
        assert pipeline.interview_questions() == ["About two?"]

        pipeline.db.update_entry(first.id, {"title": "Renamed"})
        fake_analyzer.questions = ["Regenerated?"]

        assert pipeline.db.head_analyzed_entry_id() == second.id
        assert pipeline.interview_questions() == ["About two?"]
        assert len(fake_analyzer.question_calls) == 2

    def test_force_refresh(self, pipeline, fake_analyzer):
        entry = pipeline.create_text_entry("one")
        pipeline.analyze(entry.id)
        pipeline.interview_questions()

        pipeline.interview_questions(force=True)

        assert len(fake_analyzer.question_calls) == 2

    def test_recent_context(self, pipeline, fake_analyzer):
        entry = pipeline.create_text_entry("one")
        pipeline.analyze(entry.id)

        pipeline.interview_questions()

        assert fake_analyzer.question_calls[0] == [
            {
                "title": "Morning Walk",
                "summary": "A walk by the river.",
                "follow_ups": ["Where will you walk tomorrow?"],
            }
        ]


class TestFromConfig:
    def test_builds_object_graph(self, test_config, fake_stt):
        from muninn.pipeline.orchestrator import JournalPipeline

        pipeline = JournalPipeline.from_config(test_config, stt=fake_stt)

        try:
            assert Path(pipeline.db.db_path) == test_config.db_path.resolve()
            assert pipeline.db.mirror is not None
            assert pipeline.interview_questions()
        finally:
            pipeline.db.engine.dispose()

    def test_missing_api_key_is_validation_error(self, test_config, fake_stt, monkeypatch):
        from muninn.pipeline.orchestrator import JournalPipeline

        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        pipeline = JournalPipeline.from_config(test_config, stt=fake_stt)
        entry = pipeline.create_text_entry("text")

        try:
            with pytest.raises(ValidationError):
                pipeline.analyze(entry.id)
        finally:
            pipeline.db.engine.dispose()
