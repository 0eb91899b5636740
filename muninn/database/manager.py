#!/usr/bin/env python3
"""
manager.py
--------------------
Database manager for the Muninn journal.

Provides the JournalDB class, the single source of truth for entries,
tags, links, cached derived values and settings.

Handles:
    - Engine setup (SQLite in WAL mode, foreign keys enforced)
    - Transaction scopes with commit/rollback and post-commit side effects
    - Schema creation and migrations via Alembic
    - Entry lifecycle operations as single transactions
    - Best-effort file cleanup and markdown resync after commit

Key Features:
    - `with_transaction(fn)`: the atomic primitive every multi-row
      mutation goes through
    - Markdown mirror resync runs only after a successful commit and never
      fails the operation that triggered it
    - Deletion is DB-first: the row is removed in a transaction, then the
      audio and markdown files are released (errors logged, swallowed)

Core Operations:
    Entry Management:
        - create_entry / get_entry / list_entries / search_entries
        - update_entry: whitelisted fields only (EntryUpdate)
        - delete_entry: hard delete, cascading to tags and links
        - reset_for_retranscription / apply_transcription / apply_analysis

    Tags & Links:
        - get_all_tags / get_tags_with_counts / entries_for_tag
        - add_tag_to_entry / remove_tag_from_entry
        - link_entries / get_linked_entries

    Cache & Settings:
        - get_cache / set_cache / invalidate_cache
        - get_setting / set_setting, agent overview and user profile helpers

Notes
==============
- All datetime fields are UTC-aware
- Managers never commit; JournalDB owns transaction boundaries
- External (STT/analysis) calls never happen inside these transactions
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
    Union,
)

# --- Third party imports ---
from sqlalchemy import create_engine, event, select, Engine
from sqlalchemy.orm import Session, sessionmaker

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext

# --- Local imports ---
from muninn.core.exceptions import DatabaseError, ValidationError
from muninn.core.logging_manager import JournalLogger, safe_logger
from muninn.core.paths import ALEMBIC_DIR
from muninn.core.validators import DataValidator
from muninn.dataclasses.analysis import (
    AgentTrajectory,
    Analysis,
    EntryUpdate,
    RelatedEntry,
)
from muninn.pipeline.audio_store import AudioStore, LocalAudioStore
from .decorators import DatabaseOperation, handle_db_errors, log_database_operation
from .managers import (
    AGENT_OVERVIEW,
    USER_PROFILE,
    CacheManager,
    EntryManager,
    LinkManager,
    SettingsManager,
    TagManager,
)
from .models import Base, Entry, EntryStatus, utc_now

if TYPE_CHECKING:
    from muninn.pipeline.sql2md import MarkdownMirror

T = TypeVar("T")


# ----- Main Database Manager -----
class JournalDB:
    """
    Main database manager for the journal.

    Attributes:
        db_path: Filesystem path to the SQLite database file
        alembic_dir: Filesystem path to the Alembic script directory
        engine: SQLAlchemy engine instance
        SessionLocal: SQLAlchemy session factory
        mirror: Markdown mirror resynced after commits (optional)
        audio_store: Store that owns entries' audio files

    Usage:
        db = JournalDB("~/journal/journal.db", log_dir="~/journal/logs")
        entry = db.create_entry()
        db.update_entry(entry.id, {"title": "Morning walk"})
    """

    # ---- Initialization ----
    def __init__(
        self,
        db_path: Union[str, Path],
        alembic_dir: Union[str, Path] = ALEMBIC_DIR,
        log_dir: Optional[Union[str, Path]] = None,
        mirror: Optional["MarkdownMirror"] = None,
        audio_store: Optional[AudioStore] = None,
        logger: Optional[JournalLogger] = None,
    ) -> None:
        """
        Initialize database engine and session factory.

        Args:
            db_path: Path to the SQLite file
            alembic_dir: Path to the Alembic script directory
            log_dir: Directory for log files (ignored if `logger` is given)
            mirror: Markdown mirror to keep in sync
            audio_store: Audio store used to release files of deleted entries;
                defaults to an `audio/` directory next to the database
            logger: Pre-built logger shared with other components
        """
        self.db_path = Path(db_path).expanduser().resolve()
        self.alembic_dir = Path(alembic_dir).expanduser().resolve()

        # --- Logging ---
        if logger is not None:
            self.logger: Optional[JournalLogger] = logger
        elif log_dir:
            self.logger = JournalLogger(
                Path(log_dir).expanduser().resolve(), component_name="database"
            )
        else:
            self.logger = None

        self.mirror = mirror
        self.audio_store = audio_store or LocalAudioStore(
            self.db_path.parent / "audio", logger=self.logger
        )

        self._setup_engine()

    def _setup_engine(self) -> None:
        """Initialize database engine, session factory and Alembic config."""
        try:
            safe_logger(self.logger).log_operation(
                "database_init_start",
                {"db_path": str(self.db_path), "alembic_dir": str(self.alembic_dir)},
            )

            is_new = not self.db_path.exists()
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

            self.engine: Engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"timeout": 30},
            )
            _configure_sqlite(self.engine)

            self.SessionLocal: sessionmaker = sessionmaker(
                bind=self.engine,
                autoflush=True,
                expire_on_commit=False,
            )

            self.alembic_cfg: Config = self._setup_alembic()

            if is_new:
                self.initialize_schema()

            safe_logger(self.logger).log_operation(
                "database_init_complete", {"success": True}
            )

        except DatabaseError:
            raise
        except Exception as e:
            safe_logger(self.logger).log_error(e, {"operation": "database_init"})
            raise DatabaseError(f"Database initialization failed: {e}") from e

    # ---- Session Management ----
    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Provide a transactional scope around a series of operations.

        Commits on success, rolls back and re-raises on error, always
        closes. After a successful commit, entries touched inside the scope
        are resynced to the markdown mirror and files of deleted entries are
        released; neither step can fail the operation.

        Usage:
            with db.session_scope() as session:
                entries = EntryManager(session, db.logger)
                entries.update(entry, EntryUpdate(title="New"))
        """
        session = self.SessionLocal()
        session_id = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        safe_logger(self.logger).log_debug("session_start", {"session_id": session_id})

        try:
            yield session
            session.commit()
            safe_logger(self.logger).log_debug(
                "session_commit", {"session_id": session_id}
            )
        except Exception as e:
            session.rollback()
            safe_logger(self.logger).log_debug(
                "session_rollback",
                {"session_id": session_id, "error_type": type(e).__name__},
            )
            raise
        else:
            self._after_commit(session)
        finally:
            session.close()
            safe_logger(self.logger).log_debug(
                "session_close", {"session_id": session_id}
            )

    def with_transaction(self, fn: Callable[[Session], T]) -> T:
        """
        Run `fn(session)` atomically.

        Any exception raised inside `fn` rolls back every write it made and
        propagates; a normal return commits and returns `fn`'s value.
        """
        with self.session_scope() as session:
            return fn(session)

    def _after_commit(self, session: Session) -> None:
        """Release files of deleted entries and resync touched ones."""
        deleted: Dict[str, Optional[str]] = session.info.pop("deleted_entries", {})
        dirty = session.info.pop("dirty_entries", set()) - set(deleted)

        for entry_id, audio_path in deleted.items():
            self._release_entry_files(entry_id, audio_path)

        if self.mirror is None:
            return

        for entry_id in sorted(dirty):
            try:
                entry = session.get(Entry, entry_id)
            except Exception as e:
                safe_logger(self.logger).log_error(
                    e, {"operation": "mirror_reload", "entry_id": entry_id}
                )
                continue
            if entry is not None:
                self.mirror.sync(entry)

    def _release_entry_files(self, entry_id: str, audio_path: Optional[str]) -> None:
        """Best-effort removal of a deleted entry's audio and markdown."""
        if audio_path:
            try:
                self.audio_store.delete(audio_path)
            except Exception as e:
                safe_logger(self.logger).log_error(
                    e,
                    {
                        "operation": "release_audio",
                        "entry_id": entry_id,
                        "audio_path": audio_path,
                    },
                )

        if self.mirror is not None:
            self.mirror.remove(entry_id)

    # ---- Alembic setup ----
    def _setup_alembic(self) -> Config:
        """Setup Alembic configuration."""
        try:
            safe_logger(self.logger).log_debug("Setting up Alembic configuration...")

            alembic_cfg: Config = Config()
            alembic_cfg.set_main_option("script_location", str(self.alembic_dir))
            alembic_cfg.set_main_option("sqlalchemy.url", f"sqlite:///{self.db_path}")
            alembic_cfg.set_main_option(
                "file_template",
                "%%(year)d%%(month).2d%%(day).2d_%%(rev)s_%%(slug)s",
            )
            return alembic_cfg
        except Exception as e:
            safe_logger(self.logger).log_error(e, {"operation": "setup_alembic"})
            raise DatabaseError(f"Alembic configuration failed: {e}") from e

    @handle_db_errors
    @log_database_operation("initialize_schema")
    def initialize_schema(self) -> None:
        """
        Create tables if needed and bring the schema to head.

        Actions:
            Fresh database (no tables): create all tables, stamp head
            Tables but no Alembic revision: stamp head
            Otherwise: run pending migrations
        """
        try:
            with self.engine.connect() as conn:
                tables = self.engine.dialect.get_table_names(conn)
                current_rev = MigrationContext.configure(conn).get_current_revision()

            user_tables = [t for t in tables if t != "alembic_version"]

            if not user_tables:
                Base.metadata.create_all(bind=self.engine)
                command.stamp(self.alembic_cfg, "head")
                safe_logger(self.logger).log_operation(
                    "fresh_database_created",
                    {"tables_created": len(Base.metadata.tables)},
                )
            elif current_rev is None:
                Base.metadata.create_all(bind=self.engine)
                command.stamp(self.alembic_cfg, "head")
                safe_logger(self.logger).log_operation(
                    "existing_database_stamped", {"table_count": len(user_tables)}
                )
            else:
                self.upgrade_database()
                safe_logger(self.logger).log_operation(
                    "existing_database_migrated", {"table_count": len(user_tables)}
                )

        except DatabaseError:
            raise
        except Exception as e:
            raise DatabaseError(f"Could not initialize database: {e}") from e

    @handle_db_errors
    @log_database_operation("upgrade_database")
    def upgrade_database(self, revision: str = "head") -> None:
        """
        Upgrade the schema to the given Alembic revision (default: head).
        """
        try:
            command.upgrade(self.alembic_cfg, revision)
        except Exception as e:
            raise DatabaseError(f"Database upgrade failed: {e}") from e

    def get_migration_history(self) -> Dict[str, Optional[str]]:
        """
        Current migration status of the database.

        Returns:
            Dictionary with 'current_revision' and 'status'
            ('up_to_date' or 'needs_migration'), or 'error'.
        """
        try:
            with self.engine.connect() as conn:
                context = MigrationContext.configure(conn)
                current_rev = context.get_current_revision()

            return {
                "current_revision": current_rev,
                "status": "up_to_date" if current_rev else "needs_migration",
            }
        except Exception as e:
            safe_logger(self.logger).log_error(e, {"operation": "get_migration_history"})
            return {"error": str(e)}

    # -------------------------------------------------------------------------
    # Entry Operations
    # -------------------------------------------------------------------------

    @staticmethod
    def _loaded(entry: Optional[Entry]) -> Optional[Entry]:
        # Tags must be loaded before the session closes
        if entry is not None:
            entry.tags
        return entry

    def create_entry(
        self,
        audio_path: Optional[str] = None,
        transcript: Optional[str] = None,
        entry_id: Optional[str] = None,
    ) -> Entry:
        """
        Create an entry in `pending_transcription` (or `transcribed` when
        created from text).
        """

        def _create(session: Session) -> Entry:
            entry = EntryManager(session, self.logger).create(
                audio_path=audio_path, transcript=transcript, entry_id=entry_id
            )
            return self._loaded(entry)

        return self.with_transaction(_create)

    def get_entry(self, entry_id: str) -> Optional[Entry]:
        """
        Entry by id, or None if it does not exist.

        Raises:
            InvalidEntryIdError: If the id is malformed
        """
        DataValidator.validate_entry_id(entry_id)
        return self.with_transaction(
            lambda session: self._loaded(EntryManager(session, self.logger).get(entry_id))
        )

    def list_entries(
        self,
        limit: int = 50,
        offset: int = 0,
        status: Optional[Union[EntryStatus, str]] = None,
    ) -> List[Entry]:
        """Entries newest first, optionally filtered by status."""
        limit, offset = DataValidator.validate_pagination(limit, offset)
        if status is not None:
            status = _status_filter(status)
        return self.with_transaction(
            lambda session: EntryManager(session, self.logger).list(
                limit=limit, offset=offset, status=status
            )
        )

    def count_entries(self, status: Optional[Union[EntryStatus, str]] = None) -> int:
        if status is not None:
            status = _status_filter(status)
        return self.with_transaction(
            lambda session: EntryManager(session, self.logger).count(status)
        )

    def search_entries(self, query: str, limit: int = 50) -> List[Entry]:
        """Literal substring search over transcript and title."""
        limit, _ = DataValidator.validate_pagination(limit)
        return self.with_transaction(
            lambda session: EntryManager(session, self.logger).search(query, limit)
        )

    def update_entry(
        self, entry_id: str, changes: Union[EntryUpdate, Mapping[str, Any]]
    ) -> Optional[Entry]:
        """
        Apply a whitelisted update to an entry.

        A mapping is validated as a whole before anything is written: one
        unknown key or wrongly-typed value rejects the entire update.

        Args:
            entry_id: Entry to update
            changes: EntryUpdate or untrusted mapping of field -> value

        Returns:
            The updated entry, or None if the id does not exist

        Raises:
            InvalidEntryIdError: If the id is malformed
            UnknownFieldError: If a mapping contains a non-mutable field
            ValidationError: If a mapping value has the wrong type, or the
                audio path is not a locator of this journal's audio store
        """
        DataValidator.validate_entry_id(entry_id)
        if not isinstance(changes, EntryUpdate):
            changes = EntryUpdate.from_mapping(changes)
        if changes.audio_path and not self.audio_store.owns(changes.audio_path):
            raise ValidationError("Audio path must point inside the audio directory")

        def _update(session: Session) -> Optional[Entry]:
            entries = EntryManager(session, self.logger)
            entry = entries.get(entry_id)
            if entry is None:
                return None
            return self._loaded(entries.update(entry, changes))

        return self.with_transaction(_update)

    def delete_entry(self, entry_id: str) -> bool:
        """
        Hard-delete an entry.

        The row (with its tag associations and links) is deleted in one
        transaction; the audio and markdown files are removed afterwards,
        best effort.

        Returns:
            False if the entry does not exist, True once the row is gone
        """
        DataValidator.validate_entry_id(entry_id)

        def _delete(session: Session) -> bool:
            entries = EntryManager(session, self.logger)
            entry = entries.get(entry_id)
            if entry is None:
                return False
            entries.delete(entry)
            return True

        return self.with_transaction(_delete)

    def reset_for_retranscription(self, entry_id: str) -> Optional[Entry]:
        """Clear tags and derived fields; status back to pending_transcription."""
        DataValidator.validate_entry_id(entry_id)

        def _reset(session: Session) -> Optional[Entry]:
            entries = EntryManager(session, self.logger)
            entry = entries.get(entry_id)
            if entry is None:
                return None
            return self._loaded(entries.reset_for_retranscription(entry))

        return self.with_transaction(_reset)

    def apply_transcription(
        self, entry_id: str, text: str, duration_seconds: Optional[float] = None
    ) -> Optional[Entry]:
        DataValidator.validate_entry_id(entry_id)

        def _apply(session: Session) -> Optional[Entry]:
            entries = EntryManager(session, self.logger)
            entry = entries.get(entry_id)
            if entry is None:
                return None
            return self._loaded(
                entries.apply_transcription(entry, text, duration_seconds)
            )

        return self.with_transaction(_apply)

    def apply_analysis(
        self,
        entry_id: str,
        analysis: Analysis,
        related: Sequence[RelatedEntry] = (),
        trajectory: Optional[AgentTrajectory] = None,
        related_limit: int = 5,
    ) -> Optional[Entry]:
        """
        Write an analysis result in one transaction.

        Tags, links, fields and status either all change or none do.

        Returns:
            The analyzed entry, or None if the id does not exist

        Raises:
            DatabaseError: If any sub-step fails (e.g. unknown related id)
        """
        DataValidator.validate_entry_id(entry_id)

        def _apply(session: Session) -> Optional[Entry]:
            entries = EntryManager(session, self.logger)
            entry = entries.get(entry_id)
            if entry is None:
                return None
            entries.apply_analysis(
                entry,
                analysis,
                related=related,
                trajectory=trajectory,
                related_limit=related_limit,
            )
            return self._loaded(entry)

        return self.with_transaction(_apply)

    def head_analyzed_entry_id(self) -> Optional[str]:
        """Id of the most recently analyzed entry (the cache head token)."""

        def _head(session: Session) -> Optional[str]:
            entry = EntryManager(session, self.logger).head_analyzed_entry()
            return entry.id if entry is not None else None

        return self.with_transaction(_head)

    def recent_analyzed_entries(self, limit: int = 10) -> List[Entry]:
        return self.with_transaction(
            lambda session: EntryManager(session, self.logger).recent_analyzed(limit)
        )

    @log_database_operation("prune_pending_entries")
    def prune_pending_entries(self, older_than: timedelta) -> List[str]:
        """
        Delete entries stuck in pending_transcription with neither audio nor
        transcript, created more than `older_than` ago.

        Returns:
            Ids of the deleted entries
        """
        cutoff = utc_now() - older_than

        def _prune(session: Session) -> List[str]:
            entries = EntryManager(session, self.logger)
            stale = entries.find_stale_pending(cutoff)
            for entry in stale:
                entries.delete(entry)
            return [entry.id for entry in stale]

        return self.with_transaction(_prune)

    # -------------------------------------------------------------------------
    # Tag & Link Operations
    # -------------------------------------------------------------------------

    def get_all_tags(self) -> List[str]:
        return self.with_transaction(
            lambda session: [tag.name for tag in TagManager(session, self.logger).get_all()]
        )

    def get_tags_with_counts(self, min_count: int = 0) -> List[Tuple[str, int]]:
        """(tag name, usage count) pairs, most used first."""
        return self.with_transaction(
            lambda session: [
                (tag.name, count)
                for tag, count in TagManager(session, self.logger).get_with_counts(
                    min_count
                )
            ]
        )

    def entries_for_tag(self, tag_name: str, limit: int = 50) -> List[Entry]:
        def _lookup(session: Session) -> List[Entry]:
            found = TagManager(session, self.logger).entries_for_tag(tag_name, limit)
            return [self._loaded(entry) for entry in found]

        return self.with_transaction(_lookup)

    def get_entry_tags(self, entry_id: str) -> Optional[List[str]]:
        entry = self.get_entry(entry_id)
        return entry.tag_names if entry is not None else None

    def add_tag_to_entry(self, entry_id: str, tag_name: str) -> Optional[List[str]]:
        """
        Add a tag to an entry (no-op if already present).

        Returns:
            The entry's tag names afterwards, or None if the entry does not exist
        """
        DataValidator.validate_entry_id(entry_id)

        def _add(session: Session) -> Optional[List[str]]:
            entry = EntryManager(session, self.logger).get(entry_id)
            if entry is None:
                return None
            TagManager(session, self.logger).link_to_entry(entry, tag_name)
            return entry.tag_names

        return self.with_transaction(_add)

    def remove_tag_from_entry(self, entry_id: str, tag_name: str) -> Optional[List[str]]:
        """Remove a tag from an entry (no-op if absent)."""
        DataValidator.validate_entry_id(entry_id)

        def _remove(session: Session) -> Optional[List[str]]:
            entry = EntryManager(session, self.logger).get(entry_id)
            if entry is None:
                return None
            TagManager(session, self.logger).unlink_from_entry(entry, tag_name)
            return entry.tag_names

        return self.with_transaction(_remove)

    def link_entries(
        self,
        source_id: str,
        target_id: str,
        reason: Optional[str] = None,
        reverse_reason: Optional[str] = None,
    ) -> None:
        DataValidator.validate_entry_id(source_id)
        DataValidator.validate_entry_id(target_id)

        def _link(session: Session) -> None:
            LinkManager(session, self.logger).link_entries(
                source_id, target_id, reason, reverse_reason
            )

        self.with_transaction(_link)

    def get_linked_entries(self, entry_id: str) -> List[Tuple[Entry, Optional[str]]]:
        """Entries linked to `entry_id` in either direction, with relationship text."""
        DataValidator.validate_entry_id(entry_id)

        def _linked(session: Session) -> List[Tuple[Entry, Optional[str]]]:
            pairs = LinkManager(session, self.logger).get_linked_entries(entry_id)
            return [(self._loaded(entry), text) for entry, text in pairs]

        return self.with_transaction(_linked)

    # -------------------------------------------------------------------------
    # Cache & Settings
    # -------------------------------------------------------------------------

    def get_cache(self, key: str, depends_on: Optional[str] = None) -> Optional[Any]:
        return self.with_transaction(
            lambda session: CacheManager(session, self.logger).get(key, depends_on)
        )

    def set_cache(self, key: str, value: Any, depends_on: Optional[str] = None) -> None:
        self.with_transaction(
            lambda session: CacheManager(session, self.logger).set(key, value, depends_on)
        )

    def invalidate_cache(self, key: str) -> bool:
        return self.with_transaction(
            lambda session: CacheManager(session, self.logger).invalidate(key)
        )

    def get_setting(self, key: str) -> Optional[str]:
        return self.with_transaction(
            lambda session: SettingsManager(session, self.logger).get(key)
        )

    def set_setting(self, key: str, value: str) -> None:
        self.with_transaction(
            lambda session: SettingsManager(session, self.logger).set(key, value)
        )

    def get_agent_overview(self) -> str:
        return self.get_setting(AGENT_OVERVIEW) or ""

    def set_agent_overview(self, text: str) -> None:
        self.set_setting(AGENT_OVERVIEW, text)

    def get_user_profile(self) -> str:
        return self.get_setting(USER_PROFILE) or ""

    def set_user_profile(self, text: str) -> None:
        self.set_setting(USER_PROFILE, text)

    # -------------------------------------------------------------------------
    # Mirror
    # -------------------------------------------------------------------------

    def iter_entry_ids(self) -> List[str]:
        def _ids(session: Session) -> List[str]:
            stmt = select(Entry.id).order_by(Entry.created_at, Entry.id)
            return list(session.scalars(stmt).all())

        return self.with_transaction(_ids)

    def rebuild_mirror(self) -> int:
        """
        Rewrite every entry's markdown file.

        Returns:
            Number of entries synced
        """
        if self.mirror is None:
            raise DatabaseError("No markdown mirror configured")
        with DatabaseOperation(self.logger, "rebuild_mirror", log_start=True):
            return self.mirror.rebuild(self)

    # ----- Context Manager Support -----
    def __enter__(self) -> "JournalDB":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        del exc_type, exc_val, exc_tb
        self.engine.dispose()


def _configure_sqlite(engine: Engine) -> None:
    """
    Enable WAL, foreign keys and real SAVEPOINT support on every connection.

    pysqlite's own transaction handling defers BEGIN and breaks
    SAVEPOINT; it is disabled here and BEGIN is emitted explicitly.
    """

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA busy_timeout=30000")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _status_filter(value: Union[EntryStatus, str]) -> EntryStatus:
    try:
        return EntryStatus(value)
    except ValueError as e:
        raise ValidationError(
            f"Unknown status: {value} (expected one of {', '.join(EntryStatus.choices())})"
        ) from e
