#!/usr/bin/env python3
"""
md_entry.py
-------------------
Dataclass representing a journal entry as Markdown with YAML frontmatter.

This is the intermediary structure between:
- Entry rows in the database (the source of truth)
- The grep-able markdown mirror (a one-way projection)

The MdEntry class provides:
- Conversion from the database Entry (plus its tags)
- Deterministic Markdown generation: the same entry state always renders
  byte-identical text
- Parsing a mirror file back, for verification and tests

Layout:
    ---
    id: "1700000000000-abc123xyz"
    created: "2026-01-05T08:30:00Z"
    updated: "2026-01-05T08:41:12Z"
    status: "analyzed"
    title: "Morning walk"
    tags: ["nature", "routine"]
    audio: "/data/audio/1700000000000-abc123xyz.webm"
    duration: 83.2
    ---

    # Morning walk

    <transcript, or *No transcript yet*>

    ## Analysis
    ...

    ## Follow-up Questions

    1. ...
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

# --- Third party imports ---
import yaml

# --- Local imports ---
from muninn.core.exceptions import ExportError
from muninn.dataclasses.analysis import Analysis
from muninn.utils import md
from muninn.utils.slugify import entry_filename

if TYPE_CHECKING:
    from muninn.database.models import Entry

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
NO_TRANSCRIPT = "*No transcript yet*"


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """UTC timestamp with second precision; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


@dataclass
class MdEntry:
    """
    Markdown projection of one Entry.

    Attributes:
        id: Entry id
        status: Pipeline stage value
        created: Creation timestamp (formatted)
        updated: Last mutation timestamp (formatted)
        title: Entry title, if any
        tags: Tag names, alphabetical
        audio: Audio locator, if any
        duration: Audio duration in seconds, if known
        transcript: Transcript text, if any
        analysis: Structured analysis, if analyzed
        follow_up_questions: Questions from analysis
        file_path: Source file when parsed from disk

    Examples:
        >>> md_entry = MdEntry.from_database(entry)
        >>> text = md_entry.to_markdown()
        >>> md_entry.filename
        'morning-walk--1700000000000-abc123xyz.md'
    """

    id: str
    status: str
    created: Optional[str] = None
    updated: Optional[str] = None
    title: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    audio: Optional[str] = None
    duration: Optional[float] = None
    transcript: Optional[str] = None
    analysis: Optional[Analysis] = None
    follow_up_questions: List[str] = field(default_factory=list)
    file_path: Optional[Path] = None

    # ---- Construction Methods ----
    @classmethod
    def from_database(cls, entry: "Entry", tags: Optional[List[str]] = None) -> MdEntry:
        """
        Build the projection of a database Entry.

        Args:
            entry: Entry ORM instance
            tags: Tag names; read from `entry.tags` when omitted

        Returns:
            MdEntry ready for to_markdown()
        """
        tag_names = sorted(tags) if tags is not None else entry.tag_names

        return cls(
            id=entry.id,
            status=entry.status.value if entry.status else "",
            created=format_timestamp(entry.created_at),
            updated=format_timestamp(entry.updated_at),
            title=entry.title or None,
            tags=tag_names,
            audio=entry.audio_path or None,
            duration=entry.audio_duration_seconds,
            transcript=entry.transcript,
            analysis=entry.analysis,
            follow_up_questions=list(entry.follow_up_questions or []),
        )

    @classmethod
    def from_file(cls, file_path: Path) -> MdEntry:
        """
        Parse a mirror file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ExportError: If the file is not a valid mirror document
        """
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        content = file_path.read_text(encoding="utf-8")
        return cls.from_markdown_text(content, file_path)

    @classmethod
    def from_markdown_text(
        cls, content: str, file_path: Optional[Path] = None
    ) -> MdEntry:
        """
        Parse mirror text back into an MdEntry.

        Frontmatter is read with yaml.safe_load. The body is split back into
        transcript and follow-up questions; the analysis section is not
        reconstructed (the database holds it).

        Raises:
            ExportError: If frontmatter is missing, malformed or lacks an id
        """
        frontmatter_text, body_lines = md.split_frontmatter(content)
        if not frontmatter_text:
            raise ExportError("No YAML frontmatter found (must start with ---)")

        try:
            metadata: Any = yaml.safe_load(frontmatter_text)
        except yaml.YAMLError as e:
            raise ExportError(f"Invalid YAML frontmatter: {e}") from e

        if not isinstance(metadata, dict):
            raise ExportError("YAML frontmatter must be a dictionary")
        if not metadata.get("id"):
            raise ExportError("Missing required 'id' field in frontmatter")

        transcript, questions = _split_body(body_lines, metadata.get("title"))

        return cls(
            id=str(metadata["id"]),
            status=str(metadata.get("status") or ""),
            created=metadata.get("created"),
            updated=metadata.get("updated"),
            title=metadata.get("title"),
            tags=[str(t) for t in metadata.get("tags") or []],
            audio=metadata.get("audio"),
            duration=metadata.get("duration"),
            transcript=transcript,
            follow_up_questions=questions,
            file_path=file_path,
        )

    # ---- Output ----
    @property
    def filename(self) -> str:
        """`{slug}--{id}.md` once analyzed with a title, else `{id}.md`."""
        return entry_filename(self.id, self.title, analyzed=self.status == "analyzed")

    def to_markdown(self) -> str:
        """
        Generate the complete Markdown document.

        Output depends only on the entry state, so repeated calls (and
        repeated syncs of an unchanged entry) are byte-identical.
        """
        lines: List[str] = ["---", self._generate_yaml_frontmatter(), "---", ""]

        if self.title:
            lines.extend([f"# {self.title}", ""])

        lines.append(self.transcript if self.transcript else NO_TRANSCRIPT)

        if self.analysis is not None:
            lines.extend(["", "## Analysis", ""])
            lines.extend(_analysis_lines(self.analysis))

        if self.follow_up_questions:
            lines.extend(["", "## Follow-up Questions", ""])
            lines.extend(
                f"{i}. {question}"
                for i, question in enumerate(self.follow_up_questions, 1)
            )

        return "\n".join(lines).rstrip() + "\n"

    # ----- YAML Generation -----
    def _generate_yaml_frontmatter(self) -> str:
        parts: List[str] = [
            f"id: {md.yaml_scalar(self.id)}",
            f"created: {md.yaml_scalar(self.created)}",
            f"updated: {md.yaml_scalar(self.updated)}",
            f"status: {md.yaml_scalar(self.status)}",
        ]

        if self.title:
            parts.append(f"title: {md.yaml_scalar(self.title)}")
        if self.tags:
            parts.append(f"tags: {md.yaml_list(self.tags)}")
        if self.audio:
            parts.append(f"audio: {md.yaml_scalar(self.audio)}")
        if self.duration is not None:
            parts.append(f"duration: {md.yaml_scalar(float(self.duration))}")

        return "\n".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "created": self.created,
            "updated": self.updated,
            "title": self.title,
            "tags": list(self.tags),
            "audio": self.audio,
            "duration": self.duration,
        }

    def __repr__(self) -> str:
        return f"<MdEntry(id={self.id}, status={self.status})>"

    def __str__(self) -> str:
        return self.filename


# ----- Body helpers -----
def _analysis_lines(analysis: Analysis) -> List[str]:
    """Readable rendering of an Analysis (fixed section order)."""
    lines: List[str] = []

    if analysis.summary:
        lines.extend([analysis.summary, ""])
    if analysis.mood:
        lines.extend([f"**Mood:** {analysis.mood}", ""])

    sections = [
        ("Themes", analysis.themes),
        ("People", analysis.people_mentioned),
        ("Places", analysis.places_mentioned),
        ("Key Insights", analysis.key_insights),
    ]
    for heading, items in sections:
        if items:
            lines.append(f"### {heading}")
            lines.append("")
            lines.extend(f"- {item}" for item in items)
            lines.append("")

    if analysis.time_references:
        lines.extend(["### Time References", ""])
        for ref in analysis.time_references:
            suffix = f" ({ref.approximate_date})" if ref.approximate_date else ""
            lines.append(f"- {ref.description}{suffix}")
        lines.append("")

    while lines and lines[-1] == "":
        lines.pop()
    return lines


def _split_body(body_lines: List[str], title: Optional[str]) -> tuple:
    """Recover transcript text and follow-up questions from body lines."""
    lines = list(body_lines)

    if title and lines and lines[0] == f"# {title}":
        lines = lines[1:]
        while lines and not lines[0].strip():
            lines.pop(0)

    questions: List[str] = []
    if "## Follow-up Questions" in lines:
        idx = lines.index("## Follow-up Questions")
        for line in lines[idx + 1 :]:
            head, sep, rest = line.partition(". ")
            if sep and head.isdigit():
                questions.append(rest)
        lines = lines[:idx]

    if "## Analysis" in lines:
        lines = lines[: lines.index("## Analysis")]

    transcript = "\n".join(lines).strip()
    if transcript == NO_TRANSCRIPT:
        transcript = ""
    return (transcript or None), questions
