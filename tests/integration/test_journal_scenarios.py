"""
End-to-end journal scenarios across the store, the markdown mirror and the
pipeline, all backed by one temporary data directory.
"""
import pytest

from muninn.core.exceptions import (
    DatabaseError,
    PayloadTooLargeError,
    UnknownFieldError,
    UnsupportedMediaTypeError,
)
from muninn.dataclasses.analysis import RelatedEntry
from muninn.dataclasses.md_entry import MdEntry
from muninn.database.models import EntryStatus

from conftest import make_analysis

pytestmark = pytest.mark.integration


class TestVoiceEntryLifecycle:
    """Ingest, transcribe and analyze one recording."""

    def test_ingest_transcribe_analyze(self, pipeline, mirror, fake_stt):
        entry = pipeline.ingest_audio(b"fake-audio", "audio/webm")
        assert entry.status == EntryStatus.PENDING_TRANSCRIPTION

        entry = pipeline.transcribe(entry.id, prompt="River Thames")
        assert entry.status == EntryStatus.TRANSCRIBED
        assert entry.audio_duration_seconds == 12.5
        assert fake_stt.calls[0]["mime_type"] == "audio/webm"
        assert fake_stt.calls[0]["prompt"] == "River Thames"

        entry = pipeline.analyze(entry.id)
        assert entry.status == EntryStatus.ANALYZED
        assert entry.title == "Morning Walk"

        files = mirror.files_for(entry.id)
        assert [p.name for p in files] == [f"morning-walk--{entry.id}.md"]

        parsed = MdEntry.from_file(files[0])
        assert parsed.status == "analyzed"
        assert parsed.tags == ["nature", "routine"]
        assert "I walked to the river this morning." in (parsed.transcript or "")

    def test_related_entries_are_linked(self, pipeline, fake_analyzer):
        earlier = pipeline.create_text_entry("Yesterday by the river")
        pipeline.analyze(earlier.id)

        later = pipeline.create_text_entry("Back at the river")
        fake_analyzer.related = [RelatedEntry(id=earlier.id, reason="same river")]
        pipeline.analyze(later.id)

        linked = pipeline.db.get_linked_entries(later.id)
        assert [(e.id, reason) for e, reason in linked] == [(earlier.id, "same river")]
        assert fake_analyzer.calls[1]["recent_entries"][0]["id"] == earlier.id

    def test_retranscription_clears_derived_state(self, pipeline, fake_stt):
        entry = pipeline.ingest_audio(b"fake-audio", "audio/webm")
        pipeline.transcribe(entry.id)
        pipeline.analyze(entry.id)
        assert pipeline.db.get_entry_tags(entry.id) == ["nature", "routine"]

        fake_stt.text = "A different reading."
        entry = pipeline.retranscribe(entry.id)

        assert entry.status == EntryStatus.TRANSCRIBED
        assert entry.transcript == "A different reading."
        assert pipeline.db.get_entry_tags(entry.id) == []
        assert entry.analysis is None


class TestAtomicity:
    def test_unknown_related_id_rolls_back_analysis(self, pipeline, fake_analyzer, mirror):
        entry = pipeline.create_text_entry("text")
        fake_analyzer.related = [RelatedEntry(id="1700000000000-nosuchentry", reason="?")]

        with pytest.raises(DatabaseError):
            pipeline.analyze(entry.id)

        reloaded = pipeline.db.get_entry(entry.id)
        assert reloaded.status == EntryStatus.TRANSCRIBED
        assert reloaded.title == entry.title
        assert pipeline.db.get_entry_tags(entry.id) == []
        assert pipeline.db.get_all_tags() == []
        assert [p.name for p in mirror.files_for(entry.id)] == [f"{entry.id}.md"]

    def test_failed_reanalysis_keeps_previous_result(self, pipeline, fake_analyzer, mirror):
        earlier = pipeline.create_text_entry("earlier")
        entry = pipeline.create_text_entry("text")
        fake_analyzer.related = [RelatedEntry(id=earlier.id, reason="same walk")]
        pipeline.analyze(entry.id)

        fake_analyzer.analysis = make_analysis(title="Rewritten", tags=["brand-new"])
        fake_analyzer.related = [RelatedEntry(id="1700000000000-nosuchentry", reason="?")]
        with pytest.raises(DatabaseError):
            pipeline.analyze(entry.id)

        reloaded = pipeline.db.get_entry(entry.id)
        assert reloaded.status == EntryStatus.ANALYZED
        assert reloaded.title == "Morning Walk"
        assert sorted(reloaded.tag_names) == ["nature", "routine"]
        assert [(e.id, reason) for e, reason in pipeline.db.get_linked_entries(entry.id)] == [
            (earlier.id, "same walk")
        ]
        assert "brand-new" not in pipeline.db.get_all_tags()
        assert pipeline.db.head_analyzed_entry_id() == entry.id
        assert [p.name for p in mirror.files_for(entry.id)] == [f"morning-walk--{entry.id}.md"]
        assert MdEntry.from_file(mirror.path_for(reloaded)).tags == ["nature", "routine"]

    def test_unknown_field_rejects_whole_update(self, test_db):
        entry = test_db.create_entry(transcript="text")

        with pytest.raises(UnknownFieldError):
            test_db.update_entry(entry.id, {"title": "New title", "created_at": "2020-01-01"})

        assert test_db.get_entry(entry.id).title == entry.title


class TestUploadRejection:
    def test_rejected_mime_creates_no_rows(self, pipeline, audio_store, test_config):
        with pytest.raises(UnsupportedMediaTypeError):
            pipeline.ingest_audio(b"data", "application/pdf")

        assert pipeline.db.count_entries() == 0
        assert list(test_config.audio_dir.glob("*")) == []

    def test_oversized_chunked_upload_leaves_no_file(self, pipeline, test_config):
        entry = pipeline.db.create_entry()
        half = test_config.max_upload_bytes // 2 + 1

        pipeline.append_chunk(entry.id, b"a" * half, "audio/webm", 0)
        with pytest.raises(PayloadTooLargeError):
            pipeline.append_chunk(entry.id, b"b" * half, "audio/webm", 1)

        assert list(test_config.audio_dir.glob(f"{entry.id}.*")) == []
        assert entry.id not in pipeline.tracker
        assert pipeline.db.get_entry(entry.id).audio_path is None


class TestDeletion:
    def test_delete_with_missing_audio(self, pipeline, audio_store, mirror):
        entry = pipeline.ingest_audio(b"fake-audio", "audio/webm")
        audio_store.delete(entry.audio_path)

        assert pipeline.db.delete_entry(entry.id) is True
        assert pipeline.db.get_entry(entry.id) is None
        assert mirror.files_for(entry.id) == []

    def test_delete_removes_links_to_entry(self, pipeline, fake_analyzer):
        earlier = pipeline.create_text_entry("first")
        later = pipeline.create_text_entry("second")
        fake_analyzer.related = [RelatedEntry(id=earlier.id, reason="follow-up")]
        pipeline.analyze(later.id)

        pipeline.db.delete_entry(earlier.id)

        assert pipeline.db.get_linked_entries(later.id) == []


class TestQueries:
    def test_search_treats_wildcards_literally(self, test_db):
        percent = test_db.create_entry(transcript="Spent 100% of the budget")
        test_db.create_entry(transcript="Spent 1000 on the budget")
        underscore = test_db.create_entry(transcript="file_name matters")
        test_db.create_entry(transcript="filename matters")

        assert [e.id for e in test_db.search_entries("100%")] == [percent.id]
        assert [e.id for e in test_db.search_entries("file_name")] == [underscore.id]

    def test_cache_follows_head_entry(self, pipeline, fake_analyzer):
        first = pipeline.create_text_entry("first")
        pipeline.analyze(first.id)

        assert pipeline.interview_questions() == fake_analyzer.questions
        assert pipeline.interview_questions() == fake_analyzer.questions
        assert len(fake_analyzer.question_calls) == 1

        second = pipeline.create_text_entry("second")
        pipeline.db.apply_analysis(second.id, make_analysis(title="Evening"))
        fake_analyzer.questions = ["Fresh question?"]

        assert pipeline.db.head_analyzed_entry_id() == second.id
        assert pipeline.interview_questions() == ["Fresh question?"]
        assert len(fake_analyzer.question_calls) == 2

    def test_mirror_rebuild_is_idempotent(self, test_db, mirror):
        entry = test_db.create_entry(transcript="text")
        test_db.apply_analysis(entry.id, make_analysis())
        path = mirror.files_for(entry.id)[0]
        before = path.read_bytes()

        assert test_db.rebuild_mirror() == 1
        assert test_db.rebuild_mirror() == 1

        assert mirror.files_for(entry.id) == [path]
        assert path.read_bytes() == before
