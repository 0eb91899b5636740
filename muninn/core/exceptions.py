#!/usr/bin/env python3
"""
exceptions.py
--------------------
Custom exception classes for the Muninn journal.

This module defines the hierarchy of exceptions used throughout the project.
Each branch corresponds to one error category, and each category has a single
client-facing message so that callers never echo raw exception text, file
paths or tracebacks back to users.

Exception Hierarchy:
    Exception (built-in)
    ├── ValidationError - Bad input rejected before any side effect
    │   ├── InvalidEntryIdError - Entry id does not match the id pattern
    │   ├── UnknownFieldError - Update body names a non-mutable field
    │   ├── UnsupportedMediaTypeError - Audio MIME type not allowed
    │   ├── PayloadTooLargeError - Upload exceeds the size ceiling
    │   ├── MissingAudioError - Transcription requested without audio
    │   └── MissingTranscriptError - Analysis requested without transcript
    ├── DatabaseError - Base for all database-related errors
    │   └── ExportError - Markdown mirror write failures
    ├── StorageError - Audio file store failures
    └── ExternalServiceError - Speech-to-text / analysis service failures
        ├── TranscriptionError
        └── AnalysisError

Usage:
    from muninn.core.exceptions import ValidationError, client_error

    try:
        pipeline.ingest_audio(data, mime_type)
    except ValidationError as e:
        return client_error(e), 400
"""
from typing import Any, Dict, Optional


class ValidationError(Exception):
    """
    Exception for data validation failures.

    Raised when input fails validation checks before anything is written:
    - Malformed entry ids
    - Unknown or mistyped update fields
    - Disallowed audio MIME types
    - Oversized uploads

    The message of a ValidationError is written for the client and is passed
    through by `client_error()`; it must never contain paths or internals.

    Examples:
        >>> raise ValidationError("Tag cannot be empty")
        >>> raise ValidationError("Query required")
    """

    category = "validation"
    status_code = 400


class InvalidEntryIdError(ValidationError):
    """Entry id does not match the allowed pattern."""

    pass


class UnknownFieldError(ValidationError):
    """
    An update named a field outside the mutable whitelist.

    The whole update is rejected; nothing is applied.

    Attributes:
        fields: The offending field names, sorted
    """

    def __init__(self, fields):
        self.fields = sorted(fields)
        super().__init__(f"Unknown field(s): {', '.join(self.fields)}")


class UnsupportedMediaTypeError(ValidationError):
    """Audio MIME type is not in the allow-list."""

    status_code = 415


class PayloadTooLargeError(ValidationError):
    """Upload (or running total of chunks) exceeds the size ceiling."""

    status_code = 413


class MissingAudioError(ValidationError):
    """Transcription requested for an entry with no audio attached."""

    pass


class MissingTranscriptError(ValidationError):
    """Analysis requested for an entry with an empty transcript."""

    pass


class DatabaseError(Exception):
    """
    Base exception for database-related errors.

    Raised when database operations fail due to connection issues,
    query errors, integrity violations, or other database problems.

    Examples:
        >>> raise DatabaseError("Data integrity violation: FOREIGN KEY constraint failed")
        >>> raise DatabaseError("Related entry not found: 1700000000000-abc")
    """

    category = "database"
    status_code = 500


class ExportError(DatabaseError):
    """
    Exception for Markdown mirror failures.

    Raised internally by the mirror when a projection cannot be written.
    The mirror catches and logs it; it never reaches a caller.
    """

    pass


class StorageError(Exception):
    """
    Exception for audio store failures.

    Raised when audio bytes cannot be written, appended or read.
    """

    category = "storage"
    status_code = 500


class ExternalServiceError(Exception):
    """
    Exception for failures of remote collaborators.

    Attributes:
        retryable: Whether the failure is transient (timeout, 5xx, 429)
        status_code: HTTP status reported by the service, if any
    """

    category = "external"

    def __init__(
        self,
        message: str,
        retryable: bool = True,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


class TranscriptionError(ExternalServiceError):
    """Speech-to-text failed; the entry keeps its previous status."""

    category = "transcription"


class AnalysisError(ExternalServiceError):
    """Analysis failed; the entry keeps its previous status."""

    category = "analysis"


# ----- Client-facing translation -----
_CLIENT_MESSAGES: Dict[str, str] = {
    "database": "Internal error",
    "storage": "Could not store audio",
    "external": "External service unavailable",
    "transcription": "Transcription failed",
    "analysis": "Analysis failed",
}


def client_error(error: Exception) -> Dict[str, Any]:
    """
    Convert any exception into a client-safe error payload.

    Validation messages are passed through as written; every other category
    is reduced to a fixed generic message. Unknown exceptions are reported
    as internal errors.

    Args:
        error: Exception raised by the core

    Returns:
        Dictionary with keys "error", "category", "retryable"

    Examples:
        >>> client_error(MissingAudioError("No audio file for this entry"))
        {'error': 'No audio file for this entry', 'category': 'validation', 'retryable': False}
        >>> client_error(RuntimeError("/secret/path exploded"))
        {'error': 'Internal error', 'category': 'internal', 'retryable': False}
    """
    if isinstance(error, ValidationError):
        return {"error": str(error), "category": "validation", "retryable": False}

    category = getattr(error, "category", None)
    if category in _CLIENT_MESSAGES:
        return {
            "error": _CLIENT_MESSAGES[category],
            "category": category,
            "retryable": bool(getattr(error, "retryable", False)),
        }

    return {"error": "Internal error", "category": "internal", "retryable": False}
