#!/usr/bin/env python3
"""
protocols.py
-------------------
Interfaces of the external collaborators the pipeline depends on.

The pipeline only sees these protocols, so tests pass in fakes and a
different STT or analysis backend can be swapped in without touching it.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

# --- Local imports ---
from muninn.dataclasses.analysis import AgentTrajectory, Analysis, RelatedEntry


@dataclass
class TranscriptionResult:
    """Text recognized from one recording."""

    text: str
    language: Optional[str] = None
    duration_seconds: Optional[float] = None


@dataclass
class AnalysisOutcome:
    """
    Everything one analysis run produced.

    Attributes:
        analysis: Structured analysis of the transcript
        related: Earlier entries the analyzer considers related
        trajectory: Debug trace of the run
    """

    analysis: Analysis
    related: List[RelatedEntry] = field(default_factory=list)
    trajectory: Optional[AgentTrajectory] = None


@runtime_checkable
class SpeechToText(Protocol):
    def transcribe(
        self, audio: bytes, mime_type: str, prompt: Optional[str] = None
    ) -> TranscriptionResult:
        """
        Recognize speech in `audio`.

        Raises:
            TranscriptionError: On failure (retryable or not)
        """
        ...


@runtime_checkable
class EntryAnalyzer(Protocol):
    def analyze(
        self,
        entry_id: str,
        transcript: str,
        existing_tags: Sequence[str],
        user_context: Optional[str] = None,
        recent_entries: Sequence[Dict[str, Any]] = (),
    ) -> AnalysisOutcome:
        """
        Analyze one transcript.

        Args:
            entry_id: Entry being analyzed
            transcript: Its transcript
            existing_tags: Tags already in the journal (for reuse)
            user_context: User-authored agent overview
            recent_entries: Summaries of earlier entries ({id, title,
                summary, tags}) that may be returned as related

        Raises:
            AnalysisError: On failure (retryable or not)
        """
        ...

    def generate_interview_questions(
        self, recent_entries: Sequence[Dict[str, Any]]
    ) -> List[str]:
        """3-5 prompts for the next journaling session."""
        ...
