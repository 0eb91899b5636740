#!/usr/bin/env python3
"""
tag_manager.py
--------------------
Manages Tag entities and their relationships with entries.

Tags are plain labels with a many-to-many relationship to entries.
Names are normalized (trimmed, lowercased) before every lookup, so
"Work", " work " and "WORK" are the same tag.

Key Features:
    - Get-or-create semantics, safe against concurrent creators
    - Idempotent link/unlink to entries
    - Incremental or replacement updates of an entry's tags
    - Usage statistics and entries-by-tag lookup

Usage:
    tag_mgr = TagManager(session, logger)

    # Create or get a tag
    tag = tag_mgr.get_or_create("Travel")   # stored as "travel"

    # Link tag to entry
    tag_mgr.link_to_entry(entry, "travel")

    # Replace all tags of an entry
    tag_mgr.update_entry_tags(entry, ["t1", "t2"], incremental=False)

    # Usage statistics
    counts = tag_mgr.get_with_counts()
"""
from typing import List, Optional, Tuple

from sqlalchemy import func, select

from muninn.core.exceptions import ValidationError
from muninn.core.logging_manager import safe_logger
from muninn.core.validators import DataValidator
from muninn.database.decorators import handle_db_errors, log_database_operation
from muninn.database.models import Entry, Tag, entry_tags
from .base_manager import BaseManager


class TagManager(BaseManager):
    """
    Manages Tag table operations and relationships.

    Every method that changes an entry's tag set marks the entry dirty so
    the markdown mirror is resynced after the surrounding commit.
    """

    # -------------------------------------------------------------------------
    # Core Operations
    # -------------------------------------------------------------------------

    @handle_db_errors
    @log_database_operation("tag_exists")
    def exists(self, tag_name: str) -> bool:
        return self.get(tag_name) is not None

    @handle_db_errors
    @log_database_operation("get_tag")
    def get(self, tag_name: str) -> Optional[Tag]:
        """Tag by name (normalized first), or None."""
        normalized = DataValidator.normalize_tag(tag_name)
        if not normalized:
            return None
        return self._find_one(Tag, {"name": normalized})

    @handle_db_errors
    @log_database_operation("get_all_tags")
    def get_all(self) -> List[Tag]:
        """All tags, alphabetical."""
        return list(self.session.scalars(select(Tag).order_by(Tag.name)).all())

    @handle_db_errors
    @log_database_operation("get_or_create_tag")
    def get_or_create(self, tag_name: str) -> Tag:
        """
        The canonical Tag row for `tag_name`, created on first use.

        Raises:
            ValidationError: If tag_name is empty after normalization
        """
        normalized = DataValidator.normalize_tag(tag_name)
        if not normalized:
            raise ValidationError("Tag cannot be empty")

        return self._get_or_create(Tag, {"name": normalized})

    # -------------------------------------------------------------------------
    # Relationship Management
    # -------------------------------------------------------------------------

    @handle_db_errors
    @log_database_operation("link_tag_to_entry")
    def link_to_entry(self, entry: Entry, tag_name: str) -> Tag:
        """
        Link a tag to an entry (get-or-create the tag first).

        Linking a tag that is already present is a no-op.

        Returns:
            The Tag object that was linked
        """
        tag = self.get_or_create(tag_name)

        if tag not in entry.tags:
            entry.tags.append(tag)
            self._touch(entry)
            self.session.flush()

            safe_logger(self.logger).log_debug(
                "Linked tag to entry", {"tag": tag.name, "entry_id": entry.id}
            )

        return tag

    @handle_db_errors
    @log_database_operation("unlink_tag_from_entry")
    def unlink_from_entry(self, entry: Entry, tag_name: str) -> bool:
        """
        Unlink a tag from an entry.

        Returns:
            True if the tag was unlinked, False if it wasn't linked
        """
        tag = self.get(tag_name)
        if not tag or tag not in entry.tags:
            return False

        entry.tags.remove(tag)
        self._touch(entry)
        self.session.flush()

        safe_logger(self.logger).log_debug(
            "Unlinked tag from entry", {"tag": tag.name, "entry_id": entry.id}
        )
        return True

    @handle_db_errors
    @log_database_operation("update_entry_tags")
    def update_entry_tags(
        self,
        entry: Entry,
        tags: List[str],
        incremental: bool = True,
    ) -> None:
        """
        Add `tags` to an entry, or make them its whole tag set.

        Names are normalized and empty ones skipped. Replacement
        (incremental=False) is what a fresh analysis does; manual tagging
        is incremental.
        """
        norm_tags = DataValidator.normalize_tags(tags)

        if not incremental and entry.tags:
            entry.tags.clear()
            self.session.flush()

        existing = {tag.name for tag in entry.tags}
        new_tags = [name for name in norm_tags if name not in existing]

        for tag_name in new_tags:
            entry.tags.append(self.get_or_create(tag_name))

        self._touch(entry)
        self.session.flush()

        safe_logger(self.logger).log_debug(
            "Updated entry tags",
            {
                "entry_id": entry.id,
                "added_count": len(new_tags),
                "total_count": len(entry.tags),
                "incremental": incremental,
            },
        )

    @handle_db_errors
    @log_database_operation("clear_entry_tags")
    def clear_entry_tags(self, entry: Entry) -> int:
        """
        Remove every tag from an entry.

        Returns:
            Number of tags removed
        """
        removed = len(entry.tags)
        if removed:
            entry.tags.clear()
            self._touch(entry)
            self.session.flush()
        return removed

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    @handle_db_errors
    @log_database_operation("get_entry_tags")
    def get_for_entry(self, entry: Entry) -> List[Tag]:
        """Tags of one entry, alphabetical."""
        return sorted(entry.tags, key=lambda t: t.name)

    @handle_db_errors
    @log_database_operation("get_tags_with_counts")
    def get_with_counts(self, min_count: int = 0) -> List[Tuple[Tag, int]]:
        """
        Tags with the number of entries using each.

        Counted in SQL through the tag_id index, not by loading entries.

        Args:
            min_count: Drop tags used by fewer entries than this

        Returns:
            (Tag, count) pairs, most used first, then alphabetical
        """
        count = func.count(entry_tags.c.entry_id).label("usage")
        stmt = (
            select(Tag, count)
            .outerjoin(entry_tags, entry_tags.c.tag_id == Tag.id)
            .group_by(Tag.id)
            .having(count >= min_count)
            .order_by(count.desc(), Tag.name)
        )
        return [(tag, usage) for tag, usage in self.session.execute(stmt).all()]

    @handle_db_errors
    @log_database_operation("get_entries_for_tag")
    def entries_for_tag(self, tag_name: str, limit: int = 50) -> List[Entry]:
        """
        Entries carrying a tag, newest first.

        Returns:
            List of entries; empty if the tag does not exist
        """
        normalized = DataValidator.normalize_tag(tag_name)
        if not normalized:
            return []

        stmt = (
            select(Entry)
            .join(entry_tags, entry_tags.c.entry_id == Entry.id)
            .join(Tag, Tag.id == entry_tags.c.tag_id)
            .where(Tag.name == normalized)
            .order_by(Entry.created_at.desc(), Entry.id.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())
