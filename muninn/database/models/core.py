"""
Core Models
------------

Central models for the journal database.

Models:
    - Entry: One journaling session (audio, transcript, analysis)
    - EntryLink: Undirected relationship edge between two entries

An entry moves through pending_transcription -> transcribed -> analyzed.
Its three structured columns hold typed objects (Analysis, list of
questions, AgentTrajectory) and are serialized only at the column type.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from muninn.dataclasses.analysis import AgentTrajectory, Analysis

from .associations import entry_tags
from .base import Base, DataclassJSON, StringListJSON, utc_now
from .enums import EntryStatus

if TYPE_CHECKING:
    from .entities import Tag


# ----- Entry Model -----
class Entry(Base):
    """
    A single journal entry.

    Attributes:
        id: Time-sortable opaque id (`{millis}-{9 base36 chars}`)
        created_at: When the entry was created
        updated_at: Refreshed on every mutation
        analyzed_at: When the current analysis was applied (None otherwise)
        title: Set by analysis (or the user)
        transcript: Set by transcription (or the user)
        audio_path: Path of this entry's exclusive audio file
        audio_duration_seconds: Length of the recording
        status: Pipeline stage reached
        analysis: Structured analysis (column `analysis_json`)
        follow_up_questions: Questions suggested by analysis
        agent_trajectory: Debug trace of the last analysis run

    Relationships:
        tags: Many-to-many with Tag
        outgoing_links: EntryLink rows where this entry is the source
        incoming_links: EntryLink rows where this entry is the target
    """

    __tablename__ = "entries"
    __table_args__ = (
        CheckConstraint("id != ''", name="ck_entry_non_empty_id"),
        CheckConstraint(
            "audio_duration_seconds IS NULL OR audio_duration_seconds >= 0",
            name="ck_entry_non_negative_duration",
        ),
        Index("idx_entries_created_at", "created_at"),
        Index("idx_entries_status", "status"),
        Index("idx_entries_analyzed_at", "analyzed_at"),
    )

    # ---- Primary fields ----
    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    title: Mapped[Optional[str]] = mapped_column(Text)
    transcript: Mapped[Optional[str]] = mapped_column(Text)
    audio_path: Mapped[Optional[str]] = mapped_column(Text)
    audio_duration_seconds: Mapped[Optional[float]] = mapped_column(Float)
    status: Mapped[EntryStatus] = mapped_column(
        SQLEnum(
            EntryStatus,
            values_callable=lambda x: [e.value for e in x],
            native_enum=False,
            length=32,
        ),
        nullable=False,
        default=EntryStatus.PENDING_TRANSCRIPTION,
    )

    # ---- Structured columns ----
    analysis: Mapped[Optional[Analysis]] = mapped_column(
        "analysis_json", DataclassJSON(Analysis)
    )
    follow_up_questions: Mapped[Optional[List[str]]] = mapped_column(StringListJSON)
    agent_trajectory: Mapped[Optional[AgentTrajectory]] = mapped_column(
        DataclassJSON(AgentTrajectory)
    )

    # ---- Timestamps ----
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    # Set only by a completed analysis; the derived-value cache keys on it
    analyzed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # ---- Relationships ----
    tags: Mapped[List["Tag"]] = relationship(
        "Tag", secondary=entry_tags, back_populates="entries", passive_deletes=True
    )
    outgoing_links: Mapped[List["EntryLink"]] = relationship(
        "EntryLink",
        foreign_keys="EntryLink.source_id",
        back_populates="source",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    incoming_links: Mapped[List["EntryLink"]] = relationship(
        "EntryLink",
        foreign_keys="EntryLink.target_id",
        back_populates="target",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    # ---- Computed properties ----
    @property
    def tag_names(self) -> List[str]:
        """Tag names, alphabetical."""
        return sorted(tag.name for tag in self.tags)

    @property
    def has_audio(self) -> bool:
        return bool(self.audio_path)

    def to_dict(self) -> dict:
        """Plain representation for CLI/JSON output."""
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "analyzed_at": self.analyzed_at.isoformat() if self.analyzed_at else None,
            "title": self.title,
            "transcript": self.transcript,
            "audio_path": self.audio_path,
            "audio_duration_seconds": self.audio_duration_seconds,
            "status": self.status.value if self.status else None,
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "follow_up_questions": self.follow_up_questions,
            "agent_trajectory": (
                self.agent_trajectory.to_dict() if self.agent_trajectory else None
            ),
            "tags": self.tag_names,
        }

    def __repr__(self) -> str:
        return f"<Entry(id={self.id}, status={self.status})>"

    def __str__(self) -> str:
        return f"Entry {self.id} ({self.title or 'untitled'})"


# ----- Entry links -----
class EntryLink(Base):
    """
    Relationship edge between two entries.

    Edges are undirected: at most one row exists per unordered pair, and
    re-linking either direction updates that row.

    Attributes:
        source_id: Entry that declared the link
        target_id: Entry it points at
        description: Relationship text as seen from the source (column `relationship`)
        reverse_description: Optional text as seen from the target
            (column `reverse_relationship`)
        created_at: When the edge was first created
    """

    __tablename__ = "entry_links"
    __table_args__ = (
        CheckConstraint("source_id != target_id", name="ck_entry_link_no_self"),
        Index("idx_entry_links_target_id", "target_id"),
    )

    source_id: Mapped[str] = mapped_column(
        String(100), ForeignKey("entries.id", ondelete="CASCADE"), primary_key=True
    )
    target_id: Mapped[str] = mapped_column(
        String(100), ForeignKey("entries.id", ondelete="CASCADE"), primary_key=True
    )
    description: Mapped[Optional[str]] = mapped_column("relationship", Text)
    reverse_description: Mapped[Optional[str]] = mapped_column(
        "reverse_relationship", Text
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    source: Mapped["Entry"] = relationship(
        "Entry", foreign_keys=[source_id], back_populates="outgoing_links"
    )
    target: Mapped["Entry"] = relationship(
        "Entry", foreign_keys=[target_id], back_populates="incoming_links"
    )

    def description_for(self, viewer_id: str) -> Optional[str]:
        """Relationship text relevant to the entry looking at this edge."""
        if viewer_id == self.target_id and self.reverse_description:
            return self.reverse_description
        return self.description

    def other(self, viewer_id: str) -> "Entry":
        return self.target if viewer_id == self.source_id else self.source

    def __repr__(self) -> str:
        return f"<EntryLink({self.source_id} -> {self.target_id})>"
