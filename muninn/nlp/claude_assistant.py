#!/usr/bin/env python3
"""
claude_assistant.py
-------------------
Claude API integration for journal entry analysis.

Features:
- Structured analysis of a transcript (title, summary, themes, tags, mood,
  people, places, time references, insights, follow-up questions)
- Related-entry suggestions chosen from summaries of earlier entries
- Interview questions for the next journaling session
- A debug trajectory (turns, duration, token usage) for every analysis

Setup:
    export ANTHROPIC_API_KEY="your-api-key"

Usage:
    assistant = ClaudeAssistant(timeout=120)

    outcome = assistant.analyze(entry_id, transcript, existing_tags=["work"])
    print(outcome.analysis.title, [r.id for r in outcome.related])

    questions = assistant.generate_interview_questions(recent)
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import json
import os
import time
from typing import Any, Dict, List, Optional, Sequence

# --- Third party imports ---
import anthropic

# --- Local imports ---
from muninn.core.exceptions import AnalysisError
from muninn.core.logging_manager import JournalLogger, safe_logger
from muninn.dataclasses.analysis import AgentTrajectory, Analysis, RelatedEntry
from .protocols import AnalysisOutcome

DEFAULT_QUESTIONS = [
    "What's on your mind today?",
    "Is there anything you've been thinking about that you'd like to explore?",
    "What happened recently that felt significant to you?",
]

ANALYSIS_SYSTEM_PROMPT = """You are a journal analysis assistant. Analyze the new \
journal entry, relate it to the earlier entries you are shown, and respond with \
ONLY a JSON object in exactly this format:
{
  "title": "A brief, descriptive title for this entry",
  "summary": "2-3 sentence summary of the main content",
  "themes": ["major themes discussed"],
  "tags": ["suggested tags - reuse existing ones when appropriate"],
  "mood": "overall emotional tone if discernible",
  "people_mentioned": ["names of people mentioned"],
  "places_mentioned": ["locations mentioned"],
  "time_references": [{"description": "what was referenced", "approximate_date": "if determinable"}],
  "key_insights": ["notable thoughts, realizations, or ideas expressed"],
  "potential_links": [{"reason": "why this might connect to other entries", "keywords": ["search terms"]}],
  "follow_up_questions": ["thoughtful questions for deeper reflection"],
  "related_entries": [{"id": "entry-id from the earlier entries", "reason": "why it's related"}]
}"""


def extract_json(content: str, opening: str = "{", closing: str = "}") -> Any:
    """
    Pull the JSON value out of a model reply.

    Handles fenced code blocks and stray prose around the value.

    Raises:
        ValueError: If no parsable JSON value is found
    """
    if "```json" in content:
        content = content.split("```json")[1].split("```")[0].strip()
    elif "```" in content:
        content = content.split("```")[1].split("```")[0].strip()

    if opening in content and closing in content:
        start = content.index(opening)
        end = content.rindex(closing) + 1
        content = content[start:end]

    return json.loads(content)


class ClaudeAssistant:
    """
    EntryAnalyzer backed by the Anthropic Messages API.

    Attributes:
        client: anthropic.Anthropic instance (SDK retries disabled; the
            pipeline owns retry policy)
        model: Model used for every request
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "claude-sonnet-4-5",
        timeout: float = 120.0,
        max_tokens: int = 4096,
        client: Optional[anthropic.Anthropic] = None,
        logger: Optional[JournalLogger] = None,
    ) -> None:
        """
        Initialize Claude assistant.

        Args:
            api_key: Anthropic API key (or set ANTHROPIC_API_KEY env var)
            model: Claude model to use
            timeout: Per-request timeout in seconds
            max_tokens: Completion budget for an analysis
            client: Pre-built client (tests)
            logger: Optional logger

        Raises:
            ValueError: If no API key is available and no client was given
        """
        if client is None:
            api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
            if not api_key:
                raise ValueError(
                    "API key required. Set ANTHROPIC_API_KEY environment variable "
                    "or pass api_key parameter."
                )
            client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.logger = logger

    # ---- Requests ----
    def _create(self, **kwargs: Any) -> Any:
        """Send one Messages request, mapping SDK errors to AnalysisError."""
        try:
            return self.client.messages.create(model=self.model, **kwargs)
        except anthropic.APITimeoutError as e:
            raise AnalysisError("Analysis timed out", retryable=True) from e
        except anthropic.APIConnectionError as e:
            raise AnalysisError("Analysis service unreachable", retryable=True) from e
        except anthropic.APIStatusError as e:
            status = e.status_code
            raise AnalysisError(
                f"Analysis request failed: HTTP {status}",
                retryable=status >= 500 or status == 429,
                status_code=status,
            ) from e

    @staticmethod
    def _reply_text(response: Any) -> str:
        return "".join(
            getattr(block, "text", "")
            for block in response.content
            if getattr(block, "type", None) == "text"
        )

    # ---- Analysis ----
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
            existing_tags: Tags already used in the journal
            user_context: User-authored overview for the analyst
            recent_entries: Earlier entries ({id, title, summary, tags}) the
                model may cite as related

        Returns:
            AnalysisOutcome with analysis, related entries and trajectory

        Raises:
            AnalysisError: On API failure or an unparsable reply
        """
        prompt = self._analysis_prompt(transcript, existing_tags, recent_entries)
        system = ANALYSIS_SYSTEM_PROMPT
        if user_context:
            system = f"{system}\n\nAbout the journal's author:\n{user_context}"

        started = time.monotonic()
        response = self._create(
            max_tokens=self.max_tokens,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        duration = time.monotonic() - started
        content = self._reply_text(response)

        try:
            data = extract_json(content)
        except ValueError as e:
            safe_logger(self.logger).log_warning(
                "Analysis reply was not valid JSON",
                {"entry_id": entry_id, "reply_length": len(content)},
            )
            raise AnalysisError("Analysis reply was not valid JSON", retryable=True) from e

        if not isinstance(data, dict):
            raise AnalysisError("Analysis reply was not a JSON object", retryable=True)

        related = [
            ref
            for ref in (RelatedEntry.from_dict(r) for r in data.get("related_entries") or [])
            if ref is not None
        ]

        usage = getattr(response, "usage", None)
        trajectory = AgentTrajectory(
            model=str(getattr(response, "model", None) or self.model),
            turns=[
                {"role": "user", "type": "text", "content": prompt},
                {"role": "assistant", "type": "text", "content": content},
            ],
            num_turns=1,
            duration_seconds=round(duration, 3),
            input_tokens=int(getattr(usage, "input_tokens", 0) or 0),
            output_tokens=int(getattr(usage, "output_tokens", 0) or 0),
            stop_reason=getattr(response, "stop_reason", None),
        )

        safe_logger(self.logger).log_operation(
            "analysis_completed",
            {
                "entry_id": entry_id,
                "duration_seconds": trajectory.duration_seconds,
                "related_count": len(related),
            },
        )

        return AnalysisOutcome(
            analysis=Analysis.from_dict(data), related=related, trajectory=trajectory
        )

    @staticmethod
    def _analysis_prompt(
        transcript: str,
        existing_tags: Sequence[str],
        recent_entries: Sequence[Dict[str, Any]],
    ) -> str:
        tag_list = ", ".join(existing_tags)
        tags_line = (
            f"Existing tags in the journal: {tag_list}"
            if tag_list
            else "This is a new journal with no existing tags yet."
        )
        earlier = (
            json.dumps(list(recent_entries), indent=2, ensure_ascii=False)
            if recent_entries
            else "[]"
        )
        return f"""Please analyze this new journal entry.

{tags_line}

Earlier entries (cite only these ids in related_entries):
{earlier}

New entry transcript:
---
{transcript}
---

Respond with ONLY the JSON analysis object."""

    # ---- Interview questions ----
    def generate_interview_questions(
        self, recent_entries: Sequence[Dict[str, Any]]
    ) -> List[str]:
        """
        Suggest 3-5 questions for the next journaling session.

        Args:
            recent_entries: Recent entries ({title, summary, follow_ups})

        Returns:
            List of questions; fixed defaults when there are no entries

        Raises:
            AnalysisError: On API failure or an unparsable reply
        """
        if not recent_entries:
            return list(DEFAULT_QUESTIONS)

        context = json.dumps(list(recent_entries)[:5], indent=2, ensure_ascii=False)
        prompt = f"""Based on these recent journal entries, suggest 3-5 thoughtful \
questions to prompt the next journaling session. The questions should help explore \
unfinished threads, invite deeper reflection, or connect ideas across entries.

Recent entries:
{context}

Provide questions as a JSON array of strings. Be specific and personal based on the content."""

        response = self._create(
            max_tokens=500, messages=[{"role": "user", "content": prompt}]
        )
        content = self._reply_text(response)

        try:
            questions = extract_json(content, "[", "]")
        except ValueError as e:
            raise AnalysisError("Question reply was not valid JSON", retryable=True) from e

        if not isinstance(questions, list):
            raise AnalysisError("Question reply was not a JSON array", retryable=True)

        cleaned = [str(q).strip() for q in questions if str(q).strip()]
        return cleaned[:5] or list(DEFAULT_QUESTIONS)
