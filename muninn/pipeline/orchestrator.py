#!/usr/bin/env python3
"""
orchestrator.py
-------------------
Pipeline orchestration: audio in, transcript and analysis out.

JournalPipeline ties the durable store to the collaborators:

    ingest_audio / append_chunk / create_text_entry
        -> pending_transcription (or transcribed, for text)
    transcribe / retranscribe
        -> transcribed          (speech-to-text, with retry)
    analyze
        -> analyzed             (analysis, with retry; one DB transaction)

Rules:
    - Validation (MIME type, size, entry id) happens before any side effect
    - External calls never run inside a database transaction
    - A failed transcription or analysis leaves the entry as it was
    - Unknown entry ids return None

Usage:
    pipeline = JournalPipeline.from_config(JournalConfig.from_env())
    entry = pipeline.ingest_audio(data, "audio/webm")
    pipeline.transcribe(entry.id)
    pipeline.analyze(entry.id)
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import time
from typing import Any, Callable, Dict, List, Optional, TypeVar

# --- Local imports ---
from muninn.core.config import JournalConfig
from muninn.core.exceptions import (
    AnalysisError,
    ExternalServiceError,
    MissingAudioError,
    MissingTranscriptError,
    PayloadTooLargeError,
    StorageError,
    TranscriptionError,
    ValidationError,
)
from muninn.core.logging_manager import JournalLogger, safe_logger
from muninn.core.retry import with_retry
from muninn.core.validators import DataValidator
from muninn.dataclasses.analysis import EntryUpdate
from muninn.database.manager import JournalDB
from muninn.database.models import Entry, EntryStatus
from muninn.nlp.protocols import EntryAnalyzer, SpeechToText
from .audio_store import AudioStore, LocalAudioStore
from .sql2md import MarkdownMirror
from .uploads import ChunkUploadTracker

T = TypeVar("T")

INTERVIEW_QUESTIONS_KEY = "interview_questions"
RECENT_CONTEXT_LIMIT = 20

_MIME_BY_EXTENSION = {
    "webm": "audio/webm",
    "ogg": "audio/ogg",
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
}


def mime_for_locator(locator: str) -> str:
    """
    MIME type for a stored audio file, from its extension.

    Examples:
        >>> mime_for_locator("/data/audio/1700000000000-abc.ogg")
        'audio/ogg'
        >>> mime_for_locator("/data/audio/unknown")
        'audio/webm'
    """
    extension = locator.rsplit(".", 1)[-1].lower() if "." in locator else ""
    return _MIME_BY_EXTENSION.get(extension, "audio/webm")


class JournalPipeline:
    """
    Drives entries through upload, transcription and analysis.

    Attributes:
        db: Durable store
        stt: Speech-to-text collaborator
        analyzer: Analysis collaborator
        audio_store: Audio file store
        config: Limits, timeouts and retry policy
        tracker: Running totals of in-progress chunked uploads
    """

    def __init__(
        self,
        db: JournalDB,
        stt: SpeechToText,
        analyzer: EntryAnalyzer,
        audio_store: AudioStore,
        config: Optional[JournalConfig] = None,
        tracker: Optional[ChunkUploadTracker] = None,
        logger: Optional[JournalLogger] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.db = db
        self.stt = stt
        self.analyzer = analyzer
        self.audio_store = audio_store
        self.config = config or JournalConfig()
        self.tracker = tracker or ChunkUploadTracker()
        self.logger = logger
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        config: Optional[JournalConfig] = None,
        stt: Optional[SpeechToText] = None,
        analyzer: Optional[EntryAnalyzer] = None,
        logger: Optional[JournalLogger] = None,
    ) -> "JournalPipeline":
        """
        Build the full object graph for a data directory.

        Collaborators default to WhisperClient and ClaudeAssistant configured
        from `config`. The analyzer is built lazily only if none is given, so
        an Anthropic API key is required only when analysis is used.
        """
        config = config or JournalConfig.from_env()
        logger = logger or JournalLogger(config.log_dir, component_name="pipeline")

        audio_store = LocalAudioStore(config.audio_dir, logger=logger)
        mirror = MarkdownMirror(config.entries_dir, logger=logger)
        db = JournalDB(
            config.db_path, mirror=mirror, audio_store=audio_store, logger=logger
        )

        if stt is None:
            from muninn.nlp.whisper_client import WhisperClient

            stt = WhisperClient(
                config.whisper_url, timeout=config.stt_timeout, logger=logger
            )

        if analyzer is None:
            analyzer = _LazyClaudeAssistant(config, logger)

        return cls(db, stt, analyzer, audio_store, config=config, logger=logger)

    # -------------------------------------------------------------------------
    # Entry creation
    # -------------------------------------------------------------------------

    def ingest_audio(self, data: bytes, mime_type: str) -> Entry:
        """
        Create an entry from a complete audio upload.

        Args:
            data: Audio bytes
            mime_type: Declared MIME type

        Returns:
            The new entry, pending transcription, with its audio attached

        Raises:
            UnsupportedMediaTypeError: If the MIME type is not allowed
            PayloadTooLargeError: If the upload exceeds the ceiling
            StorageError: If the audio cannot be written (no entry remains)
        """
        mime_type = DataValidator.validate_mime_type(
            mime_type, self.config.allowed_mime_prefixes
        )
        DataValidator.validate_size(len(data), self.config.max_upload_bytes)

        entry = self.db.create_entry()
        key = f"{entry.id}.{DataValidator.extension_for(mime_type)}"

        try:
            locator = self.audio_store.write(key, data)
        except StorageError:
            self.db.delete_entry(entry.id)
            raise

        updated = self.db.update_entry(entry.id, EntryUpdate(audio_path=locator))
        safe_logger(self.logger).log_operation(
            "audio_ingested",
            {"entry_id": entry.id, "bytes": len(data), "mime_type": mime_type},
        )
        return updated or entry

    def create_text_entry(self, transcript: str) -> Entry:
        """
        Create an entry from typed text; it starts out transcribed.

        Raises:
            ValidationError: If the text is empty
        """
        text = DataValidator.normalize_string(transcript)
        if not text:
            raise ValidationError("Transcript cannot be empty")
        entry = self.db.create_entry(transcript=text)
        safe_logger(self.logger).log_operation("text_entry_created", {"entry_id": entry.id})
        return entry

    def append_chunk(
        self,
        entry_id: str,
        chunk: bytes,
        mime_type: str,
        index: int,
        is_last: bool = False,
    ) -> Optional[Entry]:
        """
        Add one chunk of a chunked upload to an existing entry.

        Chunk 0 starts (or restarts) the upload and truncates the file;
        later chunks append. The audio path is attached on the last chunk.

        Args:
            entry_id: Target entry
            chunk: Chunk bytes
            mime_type: Declared MIME type of the recording
            index: Position of the chunk, starting at 0
            is_last: Whether this chunk completes the upload

        Returns:
            The entry, or None if it does not exist

        Raises:
            InvalidEntryIdError: If the id is malformed
            UnsupportedMediaTypeError: If the MIME type is not allowed
            PayloadTooLargeError: If the running total exceeds the ceiling
                (tracking and the partial file are dropped)
            ValidationError: If a later chunk arrives for an upload that
                was never started, or out of order (nothing is written)
        """
        DataValidator.validate_entry_id(entry_id)
        mime_type = DataValidator.validate_mime_type(
            mime_type, self.config.allowed_mime_prefixes
        )

        entry = self.db.get_entry(entry_id)
        if entry is None:
            return None

        ceiling = self.config.max_upload_bytes

        if index == 0:
            key = f"{entry_id}.{DataValidator.extension_for(mime_type)}"
            if len(chunk) > ceiling:
                self._abort_upload(entry_id, key)
                DataValidator.validate_size(len(chunk), ceiling)
            self.tracker.start(entry_id, key)
            try:
                self.audio_store.write(key, chunk)
            except StorageError:
                self.tracker.discard(entry_id)
                raise
        else:
            state = self.tracker.get(entry_id)
            if state is None:
                raise ValidationError("Upload not started")
            if index != state.next_index:
                raise ValidationError(
                    f"Expected chunk {state.next_index}, got chunk {index}"
                )
            key = state.key
            if state.total_bytes + len(chunk) > ceiling:
                self._abort_upload(entry_id, key)
                raise PayloadTooLargeError(
                    f"Total file size exceeds {ceiling // (1024 * 1024)}MB limit"
                )
            try:
                self.audio_store.append(key, chunk)
            except StorageError:
                self.tracker.discard(entry_id)
                raise

        total = self.tracker.add(entry_id, len(chunk))
        safe_logger(self.logger).log_debug(
            "Chunk stored",
            {"entry_id": entry_id, "index": index, "total_bytes": total},
        )

        if not is_last:
            return entry

        self.tracker.discard(entry_id)
        updated = self.db.update_entry(
            entry_id, EntryUpdate(audio_path=self.audio_store.locator(key))
        )
        safe_logger(self.logger).log_operation(
            "chunked_upload_completed", {"entry_id": entry_id, "total_bytes": total}
        )
        return updated

    def _abort_upload(self, entry_id: str, key: str) -> None:
        """Stop tracking an upload and remove its partial file."""
        self.tracker.discard(entry_id)
        try:
            self.audio_store.delete(self.audio_store.locator(key))
        except StorageError as e:
            safe_logger(self.logger).log_error(
                e, {"operation": "abort_upload", "entry_id": entry_id, "key": key}
            )

    def sweep_abandoned_uploads(self, max_age: Optional[float] = None) -> List[str]:
        """
        Drop chunked uploads idle for longer than `max_age` seconds.

        The partial file is removed, and the entry itself is deleted if it
        never received audio or text.

        Returns:
            Ids of the uploads that were swept
        """
        if max_age is None:
            max_age = self.config.abandoned_upload_age

        swept: List[str] = []
        for entry_id, state in self.tracker.stale(max_age):
            swept.append(entry_id)
            try:
                self.audio_store.delete(self.audio_store.locator(state.key))
            except StorageError as e:
                safe_logger(self.logger).log_error(
                    e, {"operation": "sweep_upload", "entry_id": entry_id}
                )

            entry = self.db.get_entry(entry_id)
            if (
                entry is not None
                and entry.status == EntryStatus.PENDING_TRANSCRIPTION
                and not entry.audio_path
                and not entry.transcript
            ):
                self.db.delete_entry(entry_id)

        if swept:
            safe_logger(self.logger).log_operation(
                "abandoned_uploads_swept", {"count": len(swept), "entry_ids": swept}
            )
        return swept

    # -------------------------------------------------------------------------
    # Transcription
    # -------------------------------------------------------------------------

    def transcribe(self, entry_id: str, prompt: Optional[str] = None) -> Optional[Entry]:
        """
        Transcribe an entry's audio.

        Args:
            entry_id: Entry to transcribe
            prompt: Optional initial prompt (names, vocabulary) for the model

        Returns:
            The transcribed entry, or None if it does not exist

        Raises:
            MissingAudioError: If the entry has no audio
            StorageError: If the audio cannot be read or lies outside the
                audio directory
            TranscriptionError: If speech-to-text fails after retries;
                the entry is left unchanged
        """
        DataValidator.validate_entry_id(entry_id)
        entry = self.db.get_entry(entry_id)
        if entry is None:
            return None
        if not entry.audio_path:
            raise MissingAudioError("No audio file for this entry")

        return self._transcribe(entry, prompt)

    def retranscribe(self, entry_id: str, prompt: Optional[str] = None) -> Optional[Entry]:
        """
        Clear everything derived from the transcript, then transcribe again.

        The reset is committed before speech-to-text runs, so a failed
        transcription leaves the entry pending with no tags.
        """
        DataValidator.validate_entry_id(entry_id)
        entry = self.db.get_entry(entry_id)
        if entry is None:
            return None
        if not entry.audio_path:
            raise MissingAudioError("No audio file for this entry")

        entry = self.db.reset_for_retranscription(entry_id)
        if entry is None:
            return None
        return self._transcribe(entry, prompt)

    def _transcribe(self, entry: Entry, prompt: Optional[str]) -> Optional[Entry]:
        audio = self.audio_store.read(entry.audio_path)
        mime_type = mime_for_locator(entry.audio_path)

        started = time.monotonic()
        try:
            result = self._call_with_retry(
                lambda: self.stt.transcribe(audio, mime_type, prompt),
                "transcription",
                entry.id,
            )
        except TranscriptionError:
            raise
        except ValidationError:
            raise
        except ExternalServiceError as e:
            raise TranscriptionError(
                str(e), retryable=e.retryable, status_code=e.status_code
            ) from e
        except Exception as e:
            safe_logger(self.logger).log_error(
                e, {"operation": "transcribe", "entry_id": entry.id}
            )
            raise TranscriptionError("Transcription failed", retryable=False) from e
        elapsed = time.monotonic() - started

        audio_seconds = result.duration_seconds or 0.0
        safe_logger(self.logger).log_operation(
            "transcription_completed",
            {
                "entry_id": entry.id,
                "audio_seconds": round(audio_seconds, 1),
                "transcribe_seconds": round(elapsed, 1),
                "speed_ratio": round(audio_seconds / elapsed, 2) if elapsed > 0 else None,
            },
        )

        return self.db.apply_transcription(
            entry.id, result.text, result.duration_seconds
        )

    # -------------------------------------------------------------------------
    # Analysis
    # -------------------------------------------------------------------------

    def analyze(self, entry_id: str) -> Optional[Entry]:
        """
        Analyze an entry's transcript and apply the result atomically.

        Tags, related-entry links, title, analysis, follow-up questions,
        trajectory and status are written in one transaction.

        Returns:
            The analyzed entry, or None if it does not exist

        Raises:
            MissingTranscriptError: If the transcript is empty
            AnalysisError: If the analyzer fails after retries; the entry is
                left unchanged
            DatabaseError: If applying the result fails (nothing is written)
        """
        DataValidator.validate_entry_id(entry_id)
        entry = self.db.get_entry(entry_id)
        if entry is None:
            return None
        if not (entry.transcript or "").strip():
            raise MissingTranscriptError("No transcript to analyze")

        existing_tags = self.db.get_all_tags()
        recent = [
            _entry_context(e)
            for e in self.db.recent_analyzed_entries(RECENT_CONTEXT_LIMIT)
            if e.id != entry_id
        ]
        user_context = self._user_context()
        transcript = entry.transcript

        try:
            outcome = self._call_with_retry(
                lambda: self.analyzer.analyze(
                    entry_id,
                    transcript,
                    existing_tags,
                    user_context=user_context,
                    recent_entries=recent,
                ),
                "analysis",
                entry_id,
            )
        except AnalysisError:
            raise
        except ValidationError:
            raise
        except ExternalServiceError as e:
            raise AnalysisError(
                str(e), retryable=e.retryable, status_code=e.status_code
            ) from e
        except Exception as e:
            safe_logger(self.logger).log_error(
                e, {"operation": "analyze", "entry_id": entry_id}
            )
            raise AnalysisError("Analysis failed", retryable=False) from e

        return self.db.apply_analysis(
            entry_id,
            outcome.analysis,
            related=outcome.related,
            trajectory=outcome.trajectory,
            related_limit=self.config.related_entry_limit,
        )

    def _user_context(self) -> Optional[str]:
        parts = [self.db.get_user_profile(), self.db.get_agent_overview()]
        joined = "\n\n".join(part.strip() for part in parts if part and part.strip())
        return joined or None

    def interview_questions(self, force: bool = False) -> List[str]:
        """
        Questions for the next journaling session.

        Cached under the id of the most recently analyzed entry; a new
        analysis changes that id and so invalidates the cache.

        Args:
            force: Regenerate even when a valid cached value exists
        """
        head = self.db.head_analyzed_entry_id()
        if head is None:
            return self.analyzer.generate_interview_questions([])

        if not force:
            cached = self.db.get_cache(INTERVIEW_QUESTIONS_KEY, depends_on=head)
            if isinstance(cached, list) and cached:
                return cached

        recent = [
            {
                "title": e.title,
                "summary": e.analysis.summary if e.analysis else "",
                "follow_ups": list(e.follow_up_questions or []),
            }
            for e in self.db.recent_analyzed_entries(5)
        ]

        try:
            questions = self._call_with_retry(
                lambda: self.analyzer.generate_interview_questions(recent),
                "interview_questions",
                head,
            )
        except ExternalServiceError:
            raise
        except ValidationError:
            raise
        except Exception as e:
            raise AnalysisError("Could not generate questions", retryable=False) from e

        self.db.set_cache(INTERVIEW_QUESTIONS_KEY, questions, depends_on=head)
        return questions

    # -------------------------------------------------------------------------
    # Retry plumbing
    # -------------------------------------------------------------------------

    def _call_with_retry(self, fn: Callable[[], T], operation: str, entry_id: str) -> T:
        def _on_retry(error: BaseException, attempt: int, delay: float) -> None:
            safe_logger(self.logger).log_warning(
                f"{operation} attempt {attempt} failed, retrying in {delay:.1f}s",
                {
                    "entry_id": entry_id,
                    "error_type": type(error).__name__,
                    "status_code": getattr(error, "status_code", None),
                },
            )

        return with_retry(
            fn,
            max_attempts=self.config.retry_attempts,
            initial_delay=self.config.retry_initial_delay,
            max_delay=self.config.retry_max_delay,
            multiplier=self.config.retry_multiplier,
            on_retry=_on_retry,
            sleep=self._sleep,
        )


def _entry_context(entry: Entry) -> Dict[str, Any]:
    """What the analyzer sees of an earlier entry."""
    return {
        "id": entry.id,
        "title": entry.title,
        "summary": entry.analysis.summary if entry.analysis else "",
        "tags": entry.tag_names,
    }


class _LazyClaudeAssistant:
    """EntryAnalyzer that builds its ClaudeAssistant on first use."""

    def __init__(self, config: JournalConfig, logger: Optional[JournalLogger]) -> None:
        self._config = config
        self._logger = logger
        self._assistant = None

    def _get(self):
        if self._assistant is None:
            from muninn.nlp.claude_assistant import ClaudeAssistant

            try:
                self._assistant = ClaudeAssistant(
                    api_key=self._config.anthropic_api_key,
                    model=self._config.model,
                    timeout=self._config.analysis_timeout,
                    logger=self._logger,
                )
            except ValueError as e:
                raise ValidationError("Analysis is not configured (ANTHROPIC_API_KEY)") from e
        return self._assistant

    def analyze(self, *args, **kwargs):
        return self._get().analyze(*args, **kwargs)

    def generate_interview_questions(self, recent_entries):
        if not recent_entries:
            from muninn.nlp.claude_assistant import DEFAULT_QUESTIONS

            return list(DEFAULT_QUESTIONS)
        return self._get().generate_interview_questions(recent_entries)
