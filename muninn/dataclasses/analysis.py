#!/usr/bin/env python3
"""
analysis.py
-------------------
Typed structures stored in an entry's JSON columns, plus the closed
update set for entries.

- Analysis: structured result of analyzing one transcript
- RelatedEntry: pointer to an earlier entry with the reason it relates
- AgentTrajectory: debug trace of one analysis run
- EntryUpdate: the only fields a caller may change on an entry

These are serialized to JSON only at the storage boundary (see
muninn.database.models.base.DataclassJSON); business logic always works
with the typed objects.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

# --- Local imports ---
from muninn.core.exceptions import UnknownFieldError, ValidationError


DEFAULT_TITLE = "Untitled Entry"


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None and str(item).strip()]


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _count_or(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return count if count >= 0 else default


def _seconds_or(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return default
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return default
    return seconds if math.isfinite(seconds) and seconds >= 0 else default


@dataclass
class TimeReference:
    description: str
    approximate_date: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"description": self.description, "approximate_date": self.approximate_date}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["TimeReference"]:
        if isinstance(data, str):
            return cls(description=data) if data.strip() else None
        if not isinstance(data, dict) or not _opt_str(data.get("description")):
            return None
        return cls(
            description=str(data["description"]).strip(),
            approximate_date=_opt_str(data.get("approximate_date")),
        )


@dataclass
class PotentialLink:
    reason: str
    keywords: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"reason": self.reason, "keywords": list(self.keywords)}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["PotentialLink"]:
        if not isinstance(data, dict) or not _opt_str(data.get("reason")):
            return None
        return cls(reason=str(data["reason"]).strip(), keywords=_str_list(data.get("keywords")))


@dataclass
class RelatedEntry:
    """An earlier entry the analysis considers related, and why."""

    id: str
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "reason": self.reason}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["RelatedEntry"]:
        # The id is kept verbatim; the linking transaction decides if it is valid
        if not isinstance(data, dict) or data.get("id") is None:
            return None
        return cls(id=str(data["id"]), reason=str(data.get("reason") or ""))


@dataclass
class Analysis:
    """
    Structured analysis of one transcript.

    Attributes:
        title: Short descriptive title (defaults to "Untitled Entry")
        summary: Two or three sentence summary
        themes: Major themes discussed
        tags: Suggested tag names (normalized when applied)
        mood: Overall emotional tone, if discernible
        people_mentioned: Names of people mentioned
        places_mentioned: Locations mentioned
        time_references: Times or dates the speaker referred to
        key_insights: Notable thoughts or realizations
        potential_links: Hints for connecting to other entries
        follow_up_questions: Questions for deeper reflection
    """

    title: str = DEFAULT_TITLE
    summary: str = ""
    themes: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    mood: Optional[str] = None
    people_mentioned: List[str] = field(default_factory=list)
    places_mentioned: List[str] = field(default_factory=list)
    time_references: List[TimeReference] = field(default_factory=list)
    key_insights: List[str] = field(default_factory=list)
    potential_links: List[PotentialLink] = field(default_factory=list)
    follow_up_questions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "summary": self.summary,
            "themes": list(self.themes),
            "tags": list(self.tags),
            "mood": self.mood,
            "people_mentioned": list(self.people_mentioned),
            "places_mentioned": list(self.places_mentioned),
            "time_references": [t.to_dict() for t in self.time_references],
            "key_insights": list(self.key_insights),
            "potential_links": [p.to_dict() for p in self.potential_links],
            "follow_up_questions": list(self.follow_up_questions),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Analysis":
        """
        Build an Analysis from loosely-shaped JSON, filling defaults.

        Missing or wrongly-typed fields fall back to empty values; an
        empty title becomes "Untitled Entry".
        """
        if not isinstance(data, Mapping):
            raise ValidationError("Analysis must be an object")

        time_refs = [TimeReference.from_dict(t) for t in data.get("time_references") or []]
        links = [PotentialLink.from_dict(p) for p in data.get("potential_links") or []]

        return cls(
            title=_opt_str(data.get("title")) or DEFAULT_TITLE,
            summary=_opt_str(data.get("summary")) or "",
            themes=_str_list(data.get("themes")),
            tags=_str_list(data.get("tags")),
            mood=_opt_str(data.get("mood")),
            people_mentioned=_str_list(data.get("people_mentioned")),
            places_mentioned=_str_list(data.get("places_mentioned")),
            time_references=[t for t in time_refs if t is not None],
            key_insights=_str_list(data.get("key_insights")),
            potential_links=[p for p in links if p is not None],
            follow_up_questions=_str_list(data.get("follow_up_questions")),
        )


@dataclass
class AgentTrajectory:
    """
    Debug trace of one analysis run.

    Attributes:
        model: Model that produced the analysis
        turns: Ordered message summaries ({"role", "type", "content"})
        num_turns: Number of model round trips
        duration_seconds: Wall-clock time of the run
        input_tokens: Prompt tokens consumed
        output_tokens: Completion tokens produced
        stop_reason: Why the final turn stopped
    """

    model: str = ""
    turns: List[Dict[str, Any]] = field(default_factory=list)
    num_turns: int = 0
    duration_seconds: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "turns": list(self.turns),
            "num_turns": self.num_turns,
            "duration_seconds": self.duration_seconds,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "stop_reason": self.stop_reason,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AgentTrajectory":
        """Rebuild a stored trace; malformed or negative numbers fall back to zero."""
        if not isinstance(data, Mapping):
            raise ValidationError("Agent trajectory must be an object")
        turns = data.get("turns")
        return cls(
            model=str(data.get("model") or ""),
            turns=[t for t in turns if isinstance(t, dict)] if isinstance(turns, list) else [],
            num_turns=_count_or(data.get("num_turns")),
            duration_seconds=_seconds_or(data.get("duration_seconds")),
            input_tokens=_count_or(data.get("input_tokens")),
            output_tokens=_count_or(data.get("output_tokens")),
            stop_reason=_opt_str(data.get("stop_reason")),
        )


# ----- Entry updates -----
class _Unset:
    """Marker for fields an update leaves untouched."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass
class EntryUpdate:
    """
    Closed set of mutable entry fields.

    Only these eight fields can ever be changed through an update. A field
    left as UNSET is not touched; a field set to None is cleared.

    Example:
        >>> update = EntryUpdate(title="Morning walk")
        >>> [name for name, _ in update.changes()]
        ['title']
    """

    title: Any = UNSET
    transcript: Any = UNSET
    audio_path: Any = UNSET
    audio_duration_seconds: Any = UNSET
    status: Any = UNSET
    analysis: Any = UNSET
    follow_up_questions: Any = UNSET
    agent_trajectory: Any = UNSET

    def changes(self) -> Iterator[Tuple[str, Any]]:
        """Yield (column attribute, value) for every field that was set."""
        if self.title is not UNSET:
            yield "title", self.title
        if self.transcript is not UNSET:
            yield "transcript", self.transcript
        if self.audio_path is not UNSET:
            yield "audio_path", self.audio_path
        if self.audio_duration_seconds is not UNSET:
            yield "audio_duration_seconds", self.audio_duration_seconds
        if self.status is not UNSET:
            yield "status", self.status
        if self.analysis is not UNSET:
            yield "analysis", self.analysis
        if self.follow_up_questions is not UNSET:
            yield "follow_up_questions", self.follow_up_questions
        if self.agent_trajectory is not UNSET:
            yield "agent_trajectory", self.agent_trajectory

    def is_empty(self) -> bool:
        return next(self.changes(), None) is None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EntryUpdate":
        """
        Build an update from untrusted input (e.g. a request body).

        Accepts `analysis_json` as an alias of `analysis`. Any unknown key or
        wrongly-typed value rejects the whole mapping.

        Raises:
            UnknownFieldError: If any key is not a mutable field
            ValidationError: If any value has the wrong type
        """
        if not isinstance(data, Mapping):
            raise ValidationError("Update body must be an object")

        unknown = [key for key in data if key not in _FIELD_PARSERS]
        if unknown:
            raise UnknownFieldError([str(key) for key in unknown])

        values: Dict[str, Any] = {}
        for key, raw in data.items():
            attr, parser = _FIELD_PARSERS[key]
            if attr in values:
                raise ValidationError(f"Field given twice: {attr}")
            values[attr] = parser(key, raw)

        return cls(**values)


def _parse_text(key: str, value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    raise ValidationError(f"Field '{key}' must be a string or null")


def _parse_duration(key: str, value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValidationError(f"Field '{key}' must be a non-negative number or null")
    return float(value)


def _parse_status(key: str, value: Any):
    from muninn.database.models.enums import EntryStatus

    if isinstance(value, EntryStatus):
        return value
    if isinstance(value, str) and value in EntryStatus.choices():
        return EntryStatus(value)
    raise ValidationError(
        f"Field '{key}' must be one of: {', '.join(EntryStatus.choices())}"
    )


def _parse_analysis(key: str, value: Any) -> Optional[Analysis]:
    if value is None or isinstance(value, Analysis):
        return value
    if isinstance(value, Mapping):
        return Analysis.from_dict(value)
    raise ValidationError(f"Field '{key}' must be an object or null")


def _parse_questions(key: str, value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, list) and all(isinstance(q, str) for q in value):
        return list(value)
    raise ValidationError(f"Field '{key}' must be a list of strings or null")


_TRAJECTORY_COUNTS = ("num_turns", "input_tokens", "output_tokens")


def _parse_trajectory(key: str, value: Any) -> Optional[AgentTrajectory]:
    if value is None or isinstance(value, AgentTrajectory):
        return value
    if isinstance(value, Mapping):
        for name in _TRAJECTORY_COUNTS:
            count = value.get(name)
            if count is not None and (
                isinstance(count, bool) or not isinstance(count, int) or count < 0
            ):
                raise ValidationError(
                    f"Field '{key}.{name}' must be a non-negative integer or null"
                )
        _parse_duration(f"{key}.duration_seconds", value.get("duration_seconds"))
        return AgentTrajectory.from_dict(value)
    raise ValidationError(f"Field '{key}' must be an object or null")


_FIELD_PARSERS = {
    "title": ("title", _parse_text),
    "transcript": ("transcript", _parse_text),
    "audio_path": ("audio_path", _parse_text),
    "audio_duration_seconds": ("audio_duration_seconds", _parse_duration),
    "status": ("status", _parse_status),
    "analysis": ("analysis", _parse_analysis),
    "analysis_json": ("analysis", _parse_analysis),
    "follow_up_questions": ("follow_up_questions", _parse_questions),
    "agent_trajectory": ("agent_trajectory", _parse_trajectory),
}
