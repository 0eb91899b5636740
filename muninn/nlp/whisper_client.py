#!/usr/bin/env python3
"""
whisper_client.py
-------------------
Speech-to-text through a Whisper ASR webservice.

Talks to the `/asr` endpoint of whisper-asr-webservice (faster-whisper
backend) over HTTP with requests. The call carries an explicit timeout;
retries are left to the caller (see muninn.core.retry).

Setup:
    export WHISPER_URL="http://localhost:9000"

Usage:
    stt = WhisperClient("http://localhost:9000", timeout=180)
    result = stt.transcribe(audio_bytes, "audio/webm")
    print(result.text, result.duration_seconds)
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from typing import Any, Dict, Optional

# --- Third party imports ---
import requests

# --- Local imports ---
from muninn.core.exceptions import TranscriptionError
from muninn.core.logging_manager import JournalLogger, safe_logger
from muninn.core.validators import DataValidator
from .protocols import TranscriptionResult


class WhisperClient:
    """
    SpeechToText implementation for whisper-asr-webservice.

    Attributes:
        base_url: Service root, without trailing slash
        timeout: Read timeout in seconds for one transcription
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 180.0,
        connect_timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        logger: Optional[JournalLogger] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.session = session or requests.Session()
        self.logger = logger

    def transcribe(
        self, audio: bytes, mime_type: str, prompt: Optional[str] = None
    ) -> TranscriptionResult:
        """
        Transcribe one recording.

        Args:
            audio: Raw audio bytes
            mime_type: Declared MIME type (used for the upload file name)
            prompt: Optional initial prompt (names, vocabulary) for the model

        Returns:
            TranscriptionResult with text, language and duration

        Raises:
            TranscriptionError: On timeout, connection failure, HTTP error
                status or an unreadable response
        """
        extension = DataValidator.extension_for(mime_type)
        params: Dict[str, Any] = {"output": "json", "word_timestamps": "true"}
        if prompt:
            params["initial_prompt"] = prompt

        try:
            response = self.session.post(
                f"{self.base_url}/asr",
                params=params,
                files={"audio_file": (f"audio.{extension}", audio, mime_type)},
                timeout=(self.connect_timeout, self.timeout),
            )
        except requests.Timeout as e:
            raise TranscriptionError("Transcription timed out", retryable=True) from e
        except requests.ConnectionError as e:
            raise TranscriptionError(
                "Transcription service unreachable", retryable=True
            ) from e

        if not response.ok:
            status = response.status_code
            detail = response.text[:200] if response.text else ""
            safe_logger(self.logger).log_warning(
                "Whisper returned an error status",
                {"status_code": status, "detail": detail},
            )
            raise TranscriptionError(
                f"Whisper transcription failed: HTTP {status}",
                retryable=status >= 500 or status == 429,
                status_code=status,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TranscriptionError(
                "Whisper returned invalid JSON", retryable=False
            ) from e

        return parse_asr_response(payload)


def parse_asr_response(payload: Any) -> TranscriptionResult:
    """
    Convert the `/asr?output=json` body into a TranscriptionResult.

    Duration is the end time of the last segment, when segments are present.

    Raises:
        TranscriptionError: If the body has no text field
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("text"), str):
        raise TranscriptionError("Whisper response has no text", retryable=False)

    duration: Optional[float] = None
    segments = payload.get("segments")
    if isinstance(segments, list) and segments:
        end = segments[-1].get("end") if isinstance(segments[-1], dict) else None
        if isinstance(end, (int, float)) and not isinstance(end, bool):
            duration = float(end)

    language = payload.get("language")
    return TranscriptionResult(
        text=payload["text"].strip(),
        language=language if isinstance(language, str) else None,
        duration_seconds=duration,
    )
