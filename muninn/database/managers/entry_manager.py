#!/usr/bin/env python3
"""
entry_manager.py
--------------------
Manager for Entry lifecycle operations.

The Entry is the central entity: its status moves through the pipeline
stages and every mutation refreshes `updated_at` and queues a markdown
resync for after the surrounding commit.

    [none] --create--> pending_transcription
    pending_transcription --transcribe--> transcribed
    transcribed --analyze--> analyzed
    (any) --retranscribe--> pending_transcription
    (any) --delete--> [none]

Key Features:
    - Creation with fresh time-sortable ids
    - Paginated listing and LIKE-escaped search
    - Whitelisted updates through EntryUpdate
    - Hard delete with file cleanup deferred until after commit
    - Reset for retranscription and analysis completion as single units
    - Head-of-journal token for cache invalidation

Usage:
    entry_mgr = EntryManager(session, logger)
    entry = entry_mgr.create(audio_path="/data/audio/1700000000000-abc.webm")
    entry_mgr.update(entry, EntryUpdate(title="Morning walk"))
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from muninn.core.exceptions import DatabaseError, InvalidEntryIdError
from muninn.core.logging_manager import JournalLogger, safe_logger
from muninn.core.validators import LIKE_ESCAPE, DataValidator
from muninn.dataclasses.analysis import (
    AgentTrajectory,
    Analysis,
    EntryUpdate,
    RelatedEntry,
)
from muninn.database.decorators import handle_db_errors, log_database_operation
from muninn.database.models import Entry, EntryStatus
from .base_manager import BaseManager
from .link_manager import LinkManager
from .tag_manager import TagManager


class EntryManager(BaseManager):
    """
    Manager for Entry CRUD and status transitions.

    Works inside the caller's session; the caller's transaction decides
    whether a multi-step operation commits as a whole.
    """

    def __init__(self, session: Session, logger: Optional[JournalLogger] = None):
        super().__init__(session, logger)
        self.tags = TagManager(session, logger)
        self.links = LinkManager(session, logger)

    # -------------------------------------------------------------------------
    # Core CRUD Operations
    # -------------------------------------------------------------------------

    @handle_db_errors
    @log_database_operation("entry_exists")
    def exists(self, entry_id: str) -> bool:
        return self.session.get(Entry, entry_id) is not None

    @handle_db_errors
    @log_database_operation("get_entry")
    def get(self, entry_id: str) -> Optional[Entry]:
        """
        Retrieve an entry by id.

        Returns:
            Entry if found, None otherwise
        """
        return self.session.get(Entry, entry_id, options=[selectinload(Entry.tags)])

    @handle_db_errors
    @log_database_operation("create_entry")
    def create(
        self,
        audio_path: Optional[str] = None,
        transcript: Optional[str] = None,
        entry_id: Optional[str] = None,
    ) -> Entry:
        """
        Insert a new entry.

        Args:
            audio_path: Audio locator, if the audio is already stored
            transcript: Text for entries created without audio; such an
                entry starts as `transcribed`
            entry_id: Explicit id (validated); a fresh one is generated otherwise

        Returns:
            The new Entry
        """
        if entry_id is None:
            entry_id = DataValidator.generate_entry_id()
        else:
            DataValidator.validate_entry_id(entry_id)

        status = (
            EntryStatus.TRANSCRIBED if transcript else EntryStatus.PENDING_TRANSCRIPTION
        )

        def _do_create():
            entry = Entry(
                id=entry_id,
                audio_path=audio_path,
                transcript=transcript,
                status=status,
            )
            self.session.add(entry)
            self.session.flush()
            return entry

        entry = self._execute_with_retry(_do_create)
        self._touch(entry)

        safe_logger(self.logger).log_info(
            "Created entry", {"entry_id": entry.id, "status": status.value}
        )
        return entry

    @handle_db_errors
    @log_database_operation("list_entries")
    def list(
        self,
        limit: int = 50,
        offset: int = 0,
        status: Optional[EntryStatus] = None,
    ) -> List[Entry]:
        """
        Entries newest first.

        Args:
            limit: Page size
            offset: Rows to skip
            status: Only entries at this stage
        """
        stmt = select(Entry).options(selectinload(Entry.tags))
        if status is not None:
            stmt = stmt.where(Entry.status == EntryStatus(status))
        stmt = (
            stmt.order_by(Entry.created_at.desc(), Entry.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(self.session.scalars(stmt).all())

    @handle_db_errors
    @log_database_operation("count_entries")
    def count(self, status: Optional[EntryStatus] = None) -> int:
        stmt = select(func.count()).select_from(Entry)
        if status is not None:
            stmt = stmt.where(Entry.status == EntryStatus(status))
        return self.session.scalar(stmt) or 0

    @handle_db_errors
    @log_database_operation("search_entries")
    def search(self, query: str, limit: int = 50) -> List[Entry]:
        """
        Substring search over transcript and title.

        LIKE metacharacters in the query are escaped, so "%" and "_"
        only match themselves.

        Raises:
            ValidationError: If the query is empty
        """
        DataValidator.validate_search_query(query)
        pattern = f"%{DataValidator.escape_like(query)}%"

        stmt = (
            select(Entry)
            .options(selectinload(Entry.tags))
            .where(
                or_(
                    Entry.transcript.like(pattern, escape=LIKE_ESCAPE),
                    Entry.title.like(pattern, escape=LIKE_ESCAPE),
                )
            )
            .order_by(Entry.created_at.desc(), Entry.id.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

    @handle_db_errors
    @log_database_operation("update_entry")
    def update(self, entry: Entry, changes: EntryUpdate) -> Entry:
        """
        Apply a whitelisted update.

        Only the fields of EntryUpdate can be written; the set is closed, so
        no column name ever comes from caller-supplied keys.

        Args:
            entry: Entry to update
            changes: Fields to change (UNSET fields are left alone)

        Returns:
            The updated Entry
        """

        def _do_update():
            for name, value in changes.changes():
                if name == "status":
                    value = EntryStatus(value)
                setattr(entry, name, value)
            self._touch(entry)
            self.session.flush()
            return entry

        return self._execute_with_retry(_do_update)

    @handle_db_errors
    @log_database_operation("delete_entry")
    def delete(self, entry: Entry) -> None:
        """
        Hard-delete an entry; tags and links go with it by cascade.

        The audio locator is recorded in the session so file cleanup can
        happen after the commit, never before.
        """
        pending = self.session.info.setdefault("deleted_entries", {})
        pending[entry.id] = entry.audio_path
        self.session.info.get("dirty_entries", set()).discard(entry.id)

        def _do_delete():
            self.session.delete(entry)
            self.session.flush()

        self._execute_with_retry(_do_delete)

        safe_logger(self.logger).log_info("Deleted entry", {"entry_id": entry.id})

    # -------------------------------------------------------------------------
    # Lifecycle Transitions
    # -------------------------------------------------------------------------

    @handle_db_errors
    @log_database_operation("reset_for_retranscription")
    def reset_for_retranscription(self, entry: Entry) -> Entry:
        """
        Return an entry to pending_transcription.

        Clears tags (they were derived from the discarded transcript), then
        title, transcript, analysis, follow-up questions and trajectory.
        Audio and links are kept.
        """
        self.tags.clear_entry_tags(entry)

        entry.title = None
        entry.transcript = None
        entry.analysis = None
        entry.follow_up_questions = None
        entry.agent_trajectory = None
        entry.analyzed_at = None
        entry.status = EntryStatus.PENDING_TRANSCRIPTION
        self._touch(entry)
        self.session.flush()
        return entry

    @handle_db_errors
    @log_database_operation("apply_transcription")
    def apply_transcription(
        self, entry: Entry, text: str, duration_seconds: Optional[float] = None
    ) -> Entry:
        """Write a successful transcription and move to `transcribed`."""
        entry.transcript = text
        if duration_seconds is not None:
            entry.audio_duration_seconds = duration_seconds
        entry.status = EntryStatus.TRANSCRIBED
        self._touch(entry)
        self.session.flush()
        return entry

    @handle_db_errors
    @log_database_operation("apply_analysis")
    def apply_analysis(
        self,
        entry: Entry,
        analysis: Analysis,
        related: Sequence[RelatedEntry] = (),
        trajectory: Optional[AgentTrajectory] = None,
        related_limit: int = 5,
    ) -> Entry:
        """
        Write an analysis result: tags, links, fields and status.

        Tags are replaced by the analysis tags. Related entries are linked
        from this entry; a malformed or missing related id raises, and the
        caller's transaction rolls everything back. A related id equal to
        the entry itself is skipped.

        Raises:
            DatabaseError: If a related entry id is malformed or unknown
        """
        self.tags.update_entry_tags(entry, analysis.tags, incremental=False)

        for ref in list(related)[:related_limit]:
            if ref.id == entry.id:
                safe_logger(self.logger).log_warning(
                    "Skipping self-reference in related entries", {"entry_id": entry.id}
                )
                continue
            try:
                DataValidator.validate_entry_id(ref.id)
            except InvalidEntryIdError as e:
                raise DatabaseError(f"Malformed related entry id: {ref.id!r}") from e
            self.links.link_entries(entry.id, ref.id, ref.reason or None)

        entry.title = analysis.title
        entry.analysis = analysis
        entry.follow_up_questions = list(analysis.follow_up_questions)
        entry.agent_trajectory = trajectory
        entry.status = EntryStatus.ANALYZED
        self._touch(entry)
        entry.analyzed_at = entry.updated_at
        self.session.flush()
        return entry

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    @handle_db_errors
    @log_database_operation("head_analyzed_entry")
    def head_analyzed_entry(self) -> Optional[Entry]:
        """
        Most recently analyzed entry (latest `analyzed_at`, then highest id).

        Later edits, tagging or retranscription of other entries do not
        move the head; only a new analysis does.

        Its id is the dependency token for derived values such as
        interview questions.
        """
        stmt = (
            select(Entry)
            .where(Entry.status == EntryStatus.ANALYZED)
            .order_by(Entry.analyzed_at.desc(), Entry.id.desc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    @handle_db_errors
    @log_database_operation("recent_analyzed_entries")
    def recent_analyzed(self, limit: int = 10) -> List[Entry]:
        stmt = (
            select(Entry)
            .options(selectinload(Entry.tags))
            .where(Entry.status == EntryStatus.ANALYZED)
            .order_by(Entry.analyzed_at.desc(), Entry.id.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

    @handle_db_errors
    @log_database_operation("find_stale_pending")
    def find_stale_pending(self, cutoff: datetime) -> List[Entry]:
        """
        Pending entries created before `cutoff` that never got audio or text.
        """
        stmt = select(Entry).where(
            Entry.status == EntryStatus.PENDING_TRANSCRIPTION,
            Entry.audio_path.is_(None),
            or_(Entry.transcript.is_(None), Entry.transcript == ""),
            Entry.created_at < cutoff,
        )
        return list(self.session.scalars(stmt).all())
