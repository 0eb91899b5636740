"""
Enumeration Types
------------------

Enum classes for the journal database models.

Enums:
    - EntryStatus: Pipeline stage an entry has reached
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from enum import Enum
from typing import List


class EntryStatus(str, Enum):
    """
    Pipeline stage of an entry.

    - PENDING_TRANSCRIPTION: Created, waiting for (or re-entering) transcription
    - TRANSCRIBED: Transcript written, not yet analyzed
    - ANALYZED: Analysis, tags and links applied

    Transitions only move forward, except retranscription which resets
    any state back to PENDING_TRANSCRIPTION.
    """

    PENDING_TRANSCRIPTION = "pending_transcription"
    TRANSCRIBED = "transcribed"
    ANALYZED = "analyzed"

    @classmethod
    def choices(cls) -> List[str]:
        """Get all available status values."""
        return [status.value for status in cls]

    @property
    def display_name(self) -> str:
        display_map = {
            self.PENDING_TRANSCRIPTION: "Pending transcription",
            self.TRANSCRIBED: "Transcribed",
            self.ANALYZED: "Analyzed",
        }
        return display_map.get(self, self.value.title())
