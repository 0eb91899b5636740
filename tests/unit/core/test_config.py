"""
Tests for JournalConfig and JournalLogger.
"""
from pathlib import Path

import pytest

from muninn.core.config import JournalConfig
from muninn.core.exceptions import ValidationError
from muninn.core.logging_manager import JournalLogger, NullLogger, safe_logger


class TestJournalConfig:
    def test_defaults(self, tmp_path):
        config = JournalConfig(data_dir=tmp_path)

        assert config.max_upload_bytes == 50 * 1024 * 1024
        assert config.stt_timeout == 180.0
        assert config.analysis_timeout == 120.0
        assert config.retry_attempts == 3
        assert config.related_entry_limit == 5
        assert "audio/webm" in config.allowed_mime_prefixes

    def test_derived_paths(self, tmp_path):
        config = JournalConfig(data_dir=tmp_path)

        assert config.db_path == tmp_path / "journal.db"
        assert config.audio_dir == tmp_path / "audio"
        assert config.entries_dir == tmp_path / "entries"
        assert config.log_dir == tmp_path / "logs"

    def test_invalid_values(self, tmp_path):
        with pytest.raises(ValidationError):
            JournalConfig(data_dir=tmp_path, max_upload_bytes=0)
        with pytest.raises(ValidationError):
            JournalConfig(data_dir=tmp_path, retry_attempts=0)

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MUNINN_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("MUNINN_MAX_UPLOAD_BYTES", "2048")
        monkeypatch.setenv("MUNINN_STT_TIMEOUT", "30")
        monkeypatch.setenv("WHISPER_URL", "http://whisper:9000")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")

        config = JournalConfig.from_env()

        assert config.data_dir == tmp_path
        assert config.max_upload_bytes == 2048
        assert config.stt_timeout == 30.0
        assert config.whisper_url == "http://whisper:9000"
        assert config.anthropic_api_key == "test-key"

    def test_overrides_win_over_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MUNINN_DATA_DIR", str(tmp_path / "env"))

        config = JournalConfig.from_env(data_dir=tmp_path / "cli")

        assert config.data_dir == Path(tmp_path / "cli")

    def test_bad_numeric_env(self, monkeypatch):
        monkeypatch.setenv("MUNINN_RETRY_ATTEMPTS", "three")

        with pytest.raises(ValidationError):
            JournalConfig.from_env()


class TestJournalLogger:
    def test_writes_component_and_error_logs(self, tmp_path):
        logger = JournalLogger(tmp_path, component_name="unit")

        logger.log_operation("entry_created", {"entry_id": "abc"})
        try:
            raise RuntimeError("broken")
        except RuntimeError as e:
            logger.log_error(e, {"entry_id": "abc", "path": "/tmp/x.md"})

        for handler in logger.main_logger.handlers + logger.error_logger.handlers:
            handler.flush()

        main_log = (tmp_path / "unit.log").read_text()
        error_log = (tmp_path / "errors.log").read_text()

        assert "entry_created" in main_log
        assert "RuntimeError: broken" in error_log
        assert "entry_id=abc" in error_log

    def test_cli_error_message_is_clean(self, tmp_path):
        logger = JournalLogger(tmp_path, component_name="cli")

        message = logger.log_cli_error(RuntimeError("/secret/path"))

        assert message == "❌ Internal error"

    def test_safe_logger(self):
        assert isinstance(safe_logger(None), NullLogger)
        safe_logger(None).log_error(RuntimeError("ignored"))
