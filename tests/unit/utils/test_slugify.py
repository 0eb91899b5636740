"""
Tests for slug and mirror filename helpers.
"""
import pytest

from muninn.utils.slugify import entry_filename, slugify


class TestSlugify:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Morning Walk", "morning-walk"),
            ("María José", "maria-jose"),
            ("Rain & coffee / Tuesday", "rain-and-coffee-tuesday"),
            ("  spaced   out  ", "spaced-out"),
            ("!!!", ""),
            ("", ""),
        ],
    )
    def test_slugify(self, text, expected):
        assert slugify(text) == expected

    def test_max_length(self):
        slug = slugify("word " * 50, max_length=20)

        assert len(slug) <= 20
        assert not slug.endswith("-")


class TestEntryFilename:
    def test_analyzed_with_title(self):
        assert entry_filename("1700000000000-abc", "Morning Walk") == "morning-walk--1700000000000-abc.md"

    def test_not_analyzed_uses_id_only(self):
        assert entry_filename("1700000000000-abc", "Morning Walk", analyzed=False) == "1700000000000-abc.md"

    def test_title_without_slug_characters(self):
        assert entry_filename("1700000000000-abc", "???") == "1700000000000-abc.md"

    def test_missing_title(self):
        assert entry_filename("1700000000000-abc", None) == "1700000000000-abc.md"
