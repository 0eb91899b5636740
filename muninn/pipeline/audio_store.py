#!/usr/bin/env python3
"""
audio_store.py
-------------------
Storage for entries' audio files.

Audio is addressed by key (`{entry_id}.{ext}`). `write`/`append` return a
locator that is stored on the entry as `audio_path`; every other method
accepts that locator back. The pipeline only talks to the AudioStore
protocol, so a non-filesystem store can replace LocalAudioStore.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from pathlib import Path
from typing import Optional, Protocol, Union, runtime_checkable

# --- Local imports ---
from muninn.core.exceptions import StorageError
from muninn.core.logging_manager import JournalLogger, safe_logger


@runtime_checkable
class AudioStore(Protocol):
    """Bytes-by-key storage for audio."""

    def write(self, key: str, data: bytes) -> str:
        """Store `data` under `key`, replacing prior content; return the locator."""
        ...

    def append(self, key: str, data: bytes) -> int:
        """Append `data` to `key`; return the stored size afterwards."""
        ...

    def read(self, locator: str) -> bytes: ...

    def owns(self, locator: str) -> bool:
        """Whether `locator` addresses audio inside this store."""
        ...

    def delete(self, locator: str) -> bool:
        """Remove stored audio; False if nothing was there."""
        ...

    def locator(self, key: str) -> str: ...


class LocalAudioStore:
    """
    AudioStore backed by one directory on the local filesystem.

    Locators are absolute file paths. Keys must be plain file names, and a
    locator is only honored when it names a file directly inside audio_dir.
    """

    def __init__(
        self, audio_dir: Union[str, Path], logger: Optional[JournalLogger] = None
    ) -> None:
        self.audio_dir = Path(audio_dir).expanduser().resolve()
        self.logger = logger

    def _path_for_key(self, key: str) -> Path:
        name = Path(key).name
        if not name or name != key:
            raise StorageError(f"Invalid audio key: {key!r}")
        return self.audio_dir / name

    def _path_for_locator(self, locator: str) -> Path:
        path = Path(locator).expanduser()
        if not path.is_absolute():
            path = self.audio_dir / path
        path = path.resolve()
        if path.parent != self.audio_dir or not path.name:
            raise StorageError(f"Audio locator outside the audio directory: {locator!r}")
        return path

    def owns(self, locator: str) -> bool:
        try:
            self._path_for_locator(locator)
        except StorageError:
            return False
        return True

    def locator(self, key: str) -> str:
        return str(self._path_for_key(key))

    def write(self, key: str, data: bytes) -> str:
        path = self._path_for_key(key)
        try:
            self.audio_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Could not write audio {key}: {e}") from e

        safe_logger(self.logger).log_debug(
            "Stored audio", {"key": key, "bytes": len(data)}
        )
        return str(path)

    def append(self, key: str, data: bytes) -> int:
        path = self._path_for_key(key)
        try:
            self.audio_dir.mkdir(parents=True, exist_ok=True)
            with path.open("ab") as fh:
                fh.write(data)
            return path.stat().st_size
        except OSError as e:
            raise StorageError(f"Could not append audio {key}: {e}") from e

    def read(self, locator: str) -> bytes:
        path = self._path_for_locator(locator)
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Could not read audio {path.name}: {e}") from e

    def delete(self, locator: str) -> bool:
        path = self._path_for_locator(locator)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Could not delete audio {path.name}: {e}") from e

        safe_logger(self.logger).log_debug("Deleted audio", {"path": str(path)})
        return True

    def exists(self, locator: str) -> bool:
        return self.owns(locator) and self._path_for_locator(locator).is_file()
