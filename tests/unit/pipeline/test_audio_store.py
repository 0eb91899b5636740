"""
Tests for LocalAudioStore.
"""
import pytest

from muninn.core.exceptions import StorageError


class TestLocalAudioStore:
    def test_write_read_delete(self, audio_store):
        locator = audio_store.write("a.webm", b"abc")

        assert locator == audio_store.locator("a.webm")
        assert audio_store.read(locator) == b"abc"
        assert audio_store.delete(locator) is True
        assert audio_store.delete(locator) is False
        assert not audio_store.exists(locator)

    def test_append_returns_size(self, audio_store):
        audio_store.write("a.webm", b"12")

        assert audio_store.append("a.webm", b"345") == 5
        assert audio_store.read(audio_store.locator("a.webm")) == b"12345"

    def test_relative_locator(self, audio_store):
        audio_store.write("a.webm", b"x")
        assert audio_store.read("a.webm") == b"x"

    @pytest.mark.parametrize("key", ["../escape.webm", "sub/dir.webm", ""])
    def test_invalid_keys(self, audio_store, key):
        with pytest.raises(StorageError):
            audio_store.write(key, b"x")

    def test_read_missing(self, audio_store):
        with pytest.raises(StorageError):
            audio_store.read(audio_store.locator("missing.webm"))


class TestLocatorConfinement:
    """Locators only reach files directly inside the audio directory."""

    @pytest.fixture
    def outside(self, tmp_path):
        path = tmp_path / "outside.webm"
        path.write_bytes(b"not journal audio")
        return path

    def test_absolute_path_outside_is_refused(self, audio_store, outside):
        with pytest.raises(StorageError):
            audio_store.read(str(outside))
        with pytest.raises(StorageError):
            audio_store.delete(str(outside))

        assert outside.read_bytes() == b"not journal audio"
        assert not audio_store.exists(str(outside))
        assert not audio_store.owns(str(outside))

    @pytest.mark.parametrize("locator", ["../outside.webm", "../../outside.webm", "sub/../../x.webm"])
    def test_relative_escape_is_refused(self, audio_store, outside, locator):
        assert not audio_store.owns(locator)
        with pytest.raises(StorageError):
            audio_store.delete(locator)

        assert outside.exists()

    def test_own_locators_accepted(self, audio_store):
        locator = audio_store.write("a.webm", b"x")

        assert audio_store.owns(locator)
        assert audio_store.owns("a.webm")
        assert audio_store.owns(audio_store.locator("not-yet-written.webm"))
