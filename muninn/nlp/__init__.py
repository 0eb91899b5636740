"""
NLP package
-----------
External collaborators of the journal core.

- protocols: SpeechToText and EntryAnalyzer interfaces and result types
- whisper_client: speech-to-text over a Whisper ASR webservice
- claude_assistant: transcript analysis through the Anthropic API
"""
from .protocols import (
    AnalysisOutcome,
    EntryAnalyzer,
    SpeechToText,
    TranscriptionResult,
)

__all__ = [
    "AnalysisOutcome",
    "EntryAnalyzer",
    "SpeechToText",
    "TranscriptionResult",
]
