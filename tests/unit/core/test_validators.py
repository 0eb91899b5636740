"""
Tests for DataValidator.
"""
import re

import pytest

from muninn.core.config import DEFAULT_MIME_PREFIXES
from muninn.core.exceptions import (
    InvalidEntryIdError,
    PayloadTooLargeError,
    UnsupportedMediaTypeError,
    ValidationError,
)
from muninn.core.validators import DataValidator


class TestEntryIds:
    """Entry id validation and generation."""

    @pytest.mark.parametrize(
        "entry_id",
        ["1700000000000-abc123xyz", "a", "A-b-C", "x" * 100],
    )
    def test_valid_ids(self, entry_id):
        assert DataValidator.validate_entry_id(entry_id) == entry_id

    @pytest.mark.parametrize(
        "entry_id",
        ["", "../etc/passwd", "abc def", "abc_def", "x" * 101, None, 123, "ñ"],
    )
    def test_invalid_ids(self, entry_id):
        with pytest.raises(InvalidEntryIdError):
            DataValidator.validate_entry_id(entry_id)

    def test_generated_id_format(self):
        entry_id = DataValidator.generate_entry_id(1700000000000)

        assert re.fullmatch(r"1700000000000-[0-9a-z]{9}", entry_id)
        assert DataValidator.validate_entry_id(entry_id)

    def test_generated_ids_are_unique(self):
        ids = {DataValidator.generate_entry_id(1700000000000) for _ in range(200)}
        assert len(ids) == 200


class TestTags:
    def test_normalize_tag(self):
        assert DataValidator.normalize_tag("  Work ") == "work"
        assert DataValidator.normalize_tag("   ") is None
        assert DataValidator.normalize_tag(None) is None

    def test_normalize_tags_dedupes_in_order(self):
        assert DataValidator.normalize_tags(["B", "a", " b ", "", "A"]) == ["b", "a"]


class TestAudioChecks:
    @pytest.mark.parametrize(
        "mime_type",
        ["audio/webm", "audio/webm;codecs=opus", "video/webm", "audio/mpeg", "audio/x-m4a"],
    )
    def test_allowed_mime_types(self, mime_type):
        assert DataValidator.validate_mime_type(mime_type, DEFAULT_MIME_PREFIXES)

    @pytest.mark.parametrize("mime_type", ["text/plain", "image/png", "", None, "audio/wav"])
    def test_rejected_mime_types(self, mime_type):
        with pytest.raises(UnsupportedMediaTypeError):
            DataValidator.validate_mime_type(mime_type, DEFAULT_MIME_PREFIXES)

    def test_size_at_ceiling_is_allowed(self):
        DataValidator.validate_size(1024, 1024)

    def test_size_over_ceiling(self):
        with pytest.raises(PayloadTooLargeError):
            DataValidator.validate_size(1025, 1024)

    @pytest.mark.parametrize(
        "mime_type, extension",
        [
            ("audio/webm;codecs=opus", "webm"),
            ("audio/ogg", "ogg"),
            ("audio/mpeg", "mp3"),
            ("audio/mp3", "mp3"),
            ("audio/mp4", "m4a"),
            ("audio/x-m4a", "m4a"),
            (None, "webm"),
        ],
    )
    def test_extension_for(self, mime_type, extension):
        assert DataValidator.extension_for(mime_type) == extension


class TestSearchHelpers:
    def test_escape_like_metacharacters(self):
        assert DataValidator.escape_like("100%") == "100\\%"
        assert DataValidator.escape_like("snake_case") == "snake\\_case"
        assert DataValidator.escape_like("back\\slash") == "back\\\\slash"

    def test_empty_query_rejected(self):
        with pytest.raises(ValidationError):
            DataValidator.validate_search_query("")

    def test_pagination_is_clamped(self):
        assert DataValidator.validate_pagination(0, -5) == (1, 0)
        assert DataValidator.validate_pagination(10_000, 3) == (500, 3)

    def test_pagination_rejects_non_integers(self):
        with pytest.raises(ValidationError):
            DataValidator.validate_pagination("ten")
