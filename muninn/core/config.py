#!/usr/bin/env python3
"""
config.py
--------------------
Runtime configuration for the journal core.

Collects the limits, timeouts and collaborator settings that the pipeline
and clients need into one dataclass. Defaults are the production values;
`JournalConfig.from_env()` overlays environment variables.

Environment:
    MUNINN_DATA_DIR             Base data directory
    MUNINN_MAX_UPLOAD_BYTES     Upload size ceiling
    MUNINN_STT_TIMEOUT          Speech-to-text timeout (seconds)
    MUNINN_ANALYSIS_TIMEOUT     Analysis timeout (seconds)
    MUNINN_RETRY_ATTEMPTS       Attempts per external call
    MUNINN_ABANDONED_UPLOAD_AGE Seconds before a chunked upload is swept
    MUNINN_MODEL                Anthropic model name
    WHISPER_URL                 Base URL of the Whisper ASR service
    ANTHROPIC_API_KEY           Anthropic API key
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

# --- Local imports ---
from muninn.core import paths
from muninn.core.exceptions import ValidationError


DEFAULT_MIME_PREFIXES: Tuple[str, ...] = (
    "audio/webm",
    "video/webm",
    "audio/ogg",
    "audio/mp3",
    "audio/mpeg",
    "audio/mp4",
    "audio/x-m4a",
)


@dataclass
class JournalConfig:
    """
    Configuration for a journal instance.

    Attributes:
        data_dir: Base directory holding db, audio, entries and logs
        max_upload_bytes: Hard ceiling for one upload or a chunked total
        allowed_mime_prefixes: Accepted audio MIME type prefixes
        stt_timeout: Seconds before a transcription call is aborted
        analysis_timeout: Seconds before an analysis call is aborted
        retry_attempts: Maximum attempts per external call
        retry_initial_delay: First backoff delay in seconds
        retry_max_delay: Backoff ceiling in seconds
        retry_multiplier: Backoff growth factor
        abandoned_upload_age: Seconds of inactivity before a chunked upload is swept
        related_entry_limit: Maximum related entries linked per analysis
        whisper_url: Base URL of the Whisper ASR webservice
        anthropic_api_key: API key for the analysis collaborator
        model: Anthropic model used for analysis
    """

    data_dir: Path = field(default_factory=lambda: paths.DATA_DIR)
    max_upload_bytes: int = 50 * 1024 * 1024
    allowed_mime_prefixes: Tuple[str, ...] = DEFAULT_MIME_PREFIXES
    stt_timeout: float = 180.0
    analysis_timeout: float = 120.0
    retry_attempts: int = 3
    retry_initial_delay: float = 1.0
    retry_max_delay: float = 10.0
    retry_multiplier: float = 2.0
    abandoned_upload_age: float = 3600.0
    related_entry_limit: int = 5
    whisper_url: str = "http://localhost:9000"
    anthropic_api_key: Optional[str] = None
    model: str = "claude-sonnet-4-5"

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)
        if self.max_upload_bytes <= 0:
            raise ValidationError("max_upload_bytes must be positive")
        if self.retry_attempts < 1:
            raise ValidationError("retry_attempts must be at least 1")

    @property
    def db_path(self) -> Path:
        return self.data_dir / "journal.db"

    @property
    def audio_dir(self) -> Path:
        return self.data_dir / "audio"

    @property
    def entries_dir(self) -> Path:
        return self.data_dir / "entries"

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"

    @classmethod
    def from_env(cls, **overrides) -> "JournalConfig":
        """
        Build a configuration from environment variables.

        Explicit keyword overrides win over the environment.

        Raises:
            ValidationError: If a numeric variable cannot be parsed
        """
        env = os.environ
        values = {}

        if env.get("MUNINN_DATA_DIR"):
            values["data_dir"] = Path(env["MUNINN_DATA_DIR"]).expanduser()

        numeric = {
            "MUNINN_MAX_UPLOAD_BYTES": ("max_upload_bytes", int),
            "MUNINN_STT_TIMEOUT": ("stt_timeout", float),
            "MUNINN_ANALYSIS_TIMEOUT": ("analysis_timeout", float),
            "MUNINN_RETRY_ATTEMPTS": ("retry_attempts", int),
            "MUNINN_ABANDONED_UPLOAD_AGE": ("abandoned_upload_age", float),
        }
        for var, (name, cast) in numeric.items():
            raw = env.get(var)
            if raw:
                try:
                    values[name] = cast(raw)
                except ValueError as e:
                    raise ValidationError(f"Invalid value for {var}: {raw}") from e

        if env.get("WHISPER_URL"):
            values["whisper_url"] = env["WHISPER_URL"]
        if env.get("ANTHROPIC_API_KEY"):
            values["anthropic_api_key"] = env["ANTHROPIC_API_KEY"]
        if env.get("MUNINN_MODEL"):
            values["model"] = env["MUNINN_MODEL"]

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
