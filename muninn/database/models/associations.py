"""
Association Tables
-------------------

Many-to-many relationship tables for the journal database.

- entry_tags: Entries with tags (pure association, indexed on tag_id)

Entry-to-entry links carry a description and timestamp, so they are a
full model (EntryLink in core.py) rather than a bare table.
"""
# --- Third party imports ---
from sqlalchemy import Column, ForeignKey, Index, Integer, String, Table

# --- Local imports ---
from .base import Base

entry_tags = Table(
    "entry_tags",
    Base.metadata,
    Column(
        "entry_id",
        String(100),
        ForeignKey("entries.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "tag_id",
        Integer,
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Index("idx_entry_tags_tag_id", "tag_id"),
)
