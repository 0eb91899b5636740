#!/usr/bin/env python3
"""
link_manager.py
--------------------
Manages undirected relationship edges between entries.

One row in entry_links represents the edge for an unordered pair. Linking
(a, b) when (b, a) already exists updates that row rather than adding a
second one, so the pair can never be duplicated.

Usage:
    link_mgr = LinkManager(session, logger)

    link_mgr.link_entries(new_id, old_id, "Continues the thought on moving")
    for entry, reason in link_mgr.get_linked_entries(old_id):
        print(entry.id, reason)
"""
from typing import List, Optional, Tuple

from sqlalchemy import and_, or_, select

from muninn.core.exceptions import DatabaseError, ValidationError
from muninn.core.logging_manager import safe_logger
from muninn.database.decorators import handle_db_errors, log_database_operation
from muninn.database.models import Entry, EntryLink
from .base_manager import BaseManager


class LinkManager(BaseManager):
    """Manages EntryLink rows."""

    def _find_edge(self, a: str, b: str) -> Optional[EntryLink]:
        stmt = select(EntryLink).where(
            or_(
                and_(EntryLink.source_id == a, EntryLink.target_id == b),
                and_(EntryLink.source_id == b, EntryLink.target_id == a),
            )
        )
        return self.session.scalars(stmt).first()

    @handle_db_errors
    @log_database_operation("link_entries")
    def link_entries(
        self,
        source_id: str,
        target_id: str,
        reason: Optional[str] = None,
        reverse_reason: Optional[str] = None,
    ) -> EntryLink:
        """
        Create or update the edge between two entries.

        If the edge already exists in either direction, its description is
        replaced (from the point of view of `source_id`) instead of adding
        another row.

        Args:
            source_id: Entry declaring the link
            target_id: Entry being linked to
            reason: Why the entries relate, as seen from source_id
            reverse_reason: Optional description as seen from target_id

        Returns:
            The EntryLink row

        Raises:
            ValidationError: If source and target are the same entry
            DatabaseError: If either entry does not exist
        """
        if source_id == target_id:
            raise ValidationError("An entry cannot be linked to itself")

        for entry_id in (source_id, target_id):
            if self.session.get(Entry, entry_id) is None:
                raise DatabaseError(f"Related entry not found: {entry_id}")

        edge = self._find_edge(source_id, target_id)

        if edge is None:
            edge = EntryLink(
                source_id=source_id,
                target_id=target_id,
                description=reason,
                reverse_description=reverse_reason,
            )
            self.session.add(edge)
        elif edge.source_id == source_id:
            edge.description = reason
            if reverse_reason is not None:
                edge.reverse_description = reverse_reason
        else:
            # Stored the other way round: our view is its reverse side
            edge.reverse_description = reason
            if reverse_reason is not None:
                edge.description = reverse_reason

        self.session.flush()

        safe_logger(self.logger).log_debug(
            "Linked entries", {"source_id": source_id, "target_id": target_id}
        )
        return edge

    @handle_db_errors
    @log_database_operation("unlink_entries")
    def unlink_entries(self, a: str, b: str) -> bool:
        """
        Remove the edge between two entries, whichever direction it was stored.

        Returns:
            True if an edge was removed
        """
        edge = self._find_edge(a, b)
        if edge is None:
            return False
        self.session.delete(edge)
        self.session.flush()
        return True

    @handle_db_errors
    @log_database_operation("get_linked_entries")
    def get_linked_entries(self, entry_id: str) -> List[Tuple[Entry, Optional[str]]]:
        """
        Entries connected to `entry_id` in either direction.

        Returns:
            (Entry, relationship text) pairs, newest entries first; the text
            is the description relevant to `entry_id` as the viewer
        """
        stmt = select(EntryLink).where(
            or_(EntryLink.source_id == entry_id, EntryLink.target_id == entry_id)
        )
        linked = [
            (edge.other(entry_id), edge.description_for(entry_id))
            for edge in self.session.scalars(stmt).all()
        ]
        return sorted(linked, key=lambda pair: (pair[0].created_at, pair[0].id), reverse=True)
