"""
Entity Models
--------------

Tag model for the journal database.

Models:
    - Tag: Deduplicated, case-insensitive keyword label
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import CheckConstraint, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .associations import entry_tags
from .base import Base, utc_now

if TYPE_CHECKING:
    from .core import Entry


class Tag(Base):
    """
    Keyword tag for entries.

    Names are stored normalized (trimmed, lowercase), so the unique
    constraint on `name` is also the case-insensitive identity.

    Attributes:
        id: Primary key
        name: Normalized tag text (unique)
        created_at: When the tag was first used

    Relationships:
        entries: Many-to-many with Entry
    """

    __tablename__ = "tags"
    __table_args__ = (CheckConstraint("name != ''", name="ck_non_empty_tag"),)

    # ---- Primary fields ----
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    # ---- Relationships ----
    entries: Mapped[List["Entry"]] = relationship(
        "Entry", secondary=entry_tags, back_populates="tags", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name={self.name})>"

    def __str__(self) -> str:
        return self.name
