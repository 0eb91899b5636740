"""
Tests for Analysis parsing and the EntryUpdate whitelist.
"""
import pytest

from muninn.core.exceptions import UnknownFieldError, ValidationError
from muninn.dataclasses.analysis import (
    UNSET,
    AgentTrajectory,
    Analysis,
    EntryUpdate,
    RelatedEntry,
    TimeReference,
)
from muninn.database.models.enums import EntryStatus


class TestAnalysisFromDict:
    """Analysis.from_dict tolerates loosely shaped model output."""

    def test_full_document(self):
        analysis = Analysis.from_dict(
            {
                "title": "Trip planning",
                "summary": "Thinking about Lisbon.",
                "themes": ["travel"],
                "tags": ["Travel", "planning"],
                "mood": "excited",
                "people_mentioned": ["Ana"],
                "places_mentioned": ["Lisbon"],
                "time_references": [
                    {"description": "next spring", "approximate_date": "2027-04"},
                    "last summer",
                ],
                "key_insights": ["Needs a break"],
                "potential_links": [{"reason": "earlier trip", "keywords": ["porto"]}],
                "follow_up_questions": ["When will you book?"],
            }
        )

        assert analysis.title == "Trip planning"
        assert analysis.tags == ["Travel", "planning"]
        assert analysis.time_references == [
            TimeReference("next spring", "2027-04"),
            TimeReference("last summer"),
        ]
        assert analysis.potential_links[0].keywords == ["porto"]

    def test_missing_fields_get_defaults(self):
        analysis = Analysis.from_dict({"title": "   ", "themes": "not a list"})

        assert analysis.title == "Untitled Entry"
        assert analysis.summary == ""
        assert analysis.themes == []
        assert analysis.mood is None

    def test_non_mapping_rejected(self):
        with pytest.raises(ValidationError):
            Analysis.from_dict(["not", "an", "object"])

    def test_to_dict_round_trip(self):
        original = Analysis.from_dict({"title": "T", "tags": ["a"], "time_references": ["today"]})
        assert Analysis.from_dict(original.to_dict()) == original


class TestRelatedEntry:
    def test_requires_id(self):
        assert RelatedEntry.from_dict({"reason": "no id"}) is None
        assert RelatedEntry.from_dict("abc") is None

    def test_keeps_id_verbatim(self):
        related = RelatedEntry.from_dict({"id": "../bad id", "reason": "similar"})
        assert related == RelatedEntry("../bad id", "similar")


class TestAgentTrajectory:
    def test_round_trip(self):
        trajectory = AgentTrajectory(model="m", num_turns=2, input_tokens=10, output_tokens=5)
        assert AgentTrajectory.from_dict(trajectory.to_dict()) == trajectory

    def test_malformed_numbers_fall_back_to_zero(self):
        trajectory = AgentTrajectory.from_dict(
            {
                "model": "m",
                "num_turns": "many",
                "duration_seconds": "slow",
                "input_tokens": -4,
                "output_tokens": [1],
            }
        )

        assert trajectory == AgentTrajectory(model="m")

    def test_numeric_strings_still_load(self):
        trajectory = AgentTrajectory.from_dict({"num_turns": "3", "duration_seconds": "1.5"})

        assert trajectory.num_turns == 3
        assert trajectory.duration_seconds == 1.5


class TestEntryUpdate:
    """Only whitelisted fields can be updated."""

    def test_unset_fields_are_skipped(self):
        update = EntryUpdate(title="New", transcript=None)

        assert list(update.changes()) == [("title", "New"), ("transcript", None)]
        assert not update.is_empty()
        assert EntryUpdate().is_empty()
        assert not UNSET

    def test_from_mapping_parses_types(self):
        update = EntryUpdate.from_mapping(
            {
                "title": "Walk",
                "status": "transcribed",
                "audio_duration_seconds": 3,
                "analysis_json": {"title": "Walk"},
                "follow_up_questions": ["Why?"],
            }
        )

        assert update.status is EntryStatus.TRANSCRIBED
        assert update.audio_duration_seconds == 3.0
        assert isinstance(update.analysis, Analysis)
        assert update.follow_up_questions == ["Why?"]
        assert update.transcript is UNSET

    def test_unknown_field_rejects_everything(self):
        with pytest.raises(UnknownFieldError) as exc_info:
            EntryUpdate.from_mapping({"title": "ok", "id": "other", "created_at": "now"})

        assert exc_info.value.fields == ["created_at", "id"]

    @pytest.mark.parametrize(
        "data",
        [
            {"title": 42},
            {"status": "finished"},
            {"audio_duration_seconds": -1},
            {"audio_duration_seconds": True},
            {"follow_up_questions": "one question"},
            {"analysis": "text"},
            {"agent_trajectory": {"num_turns": "many"}},
            {"agent_trajectory": {"input_tokens": True}},
            {"agent_trajectory": {"output_tokens": 2.5}},
            {"agent_trajectory": {"duration_seconds": "slow"}},
        ],
    )
    def test_wrong_types_rejected(self, data):
        with pytest.raises(ValidationError):
            EntryUpdate.from_mapping(data)

    def test_alias_given_twice(self):
        with pytest.raises(ValidationError):
            EntryUpdate.from_mapping({"analysis": None, "analysis_json": None})
