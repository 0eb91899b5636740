#!/usr/bin/env python3
"""
base_manager.py
--------------------
Shared session helpers for the entity managers.

Managers never commit: they work inside the session handed to them, and
the caller's transaction (JournalDB.session_scope / with_transaction)
decides whether everything commits or rolls back together.

Helpers:
    - _execute_with_retry: rerun a unit of work while SQLite reports a lock
    - _get_or_create: savepoint-safe lookup-or-insert (tags)
    - _upsert: full replace of a key/value row (cache, settings)
    - _touch: bump updated_at and queue the entry for the markdown mirror
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import time
from abc import ABC
from typing import Any, Callable, Dict, Optional, Type, TypeVar

# --- Third party imports ---
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

# --- Local imports ---
from muninn.core.exceptions import DatabaseError
from muninn.core.logging_manager import JournalLogger, safe_logger
from muninn.database.models import Entry, utc_now

T = TypeVar("T")

LOCK_MARKERS = ("locked", "busy")


def is_lock_error(error: OperationalError) -> bool:
    """Whether SQLite refused the statement because another writer holds the lock."""
    message = str(error).lower()
    return any(marker in message for marker in LOCK_MARKERS)


class BaseManager(ABC):
    """
    Abstract base for managers bound to one session.

    Attributes:
        session: Session of the surrounding transaction
        logger: Optional logger for operation tracking
    """

    def __init__(self, session: Session, logger: Optional[JournalLogger] = None):
        self.session = session
        self.logger = logger

    def _execute_with_retry(
        self,
        operation: Callable[[], T],
        max_retries: int = 3,
        retry_delay: float = 0.1,
    ) -> T:
        """
        Run `operation`, retrying with doubling delays while the database is locked.

        Other operational errors, and a lock on the last attempt, propagate.
        """
        attempt = 0
        while True:
            try:
                return operation()
            except OperationalError as e:
                attempt += 1
                if attempt >= max_retries or not is_lock_error(e):
                    raise
                wait_time = retry_delay * (2 ** (attempt - 1))
                safe_logger(self.logger).log_debug(
                    f"Database locked, retrying in {wait_time}s",
                    {"attempt": attempt, "max_retries": max_retries},
                )
                time.sleep(wait_time)

    def _find_one(self, model_class: Type[T], fields: Dict[str, Any]) -> Optional[T]:
        return self.session.scalars(select(model_class).filter_by(**fields)).first()

    def _get_or_create(
        self,
        model_class: Type[T],
        lookup_fields: Dict[str, Any],
        extra_fields: Optional[Dict[str, Any]] = None,
    ) -> T:
        """
        Existing row matching `lookup_fields`, or a new one.

        The insert runs inside a SAVEPOINT. If a concurrent writer created
        the row first, only the savepoint rolls back and the row is read
        again; the caller's transaction survives.

        Raises:
            DatabaseError: If the row can neither be created nor found
        """
        existing = self._find_one(model_class, lookup_fields)
        if existing is not None:
            return existing

        try:
            with self.session.begin_nested():
                obj = model_class(**{**lookup_fields, **(extra_fields or {})})
                self.session.add(obj)
            return obj
        except IntegrityError as e:
            winner = self._find_one(model_class, lookup_fields)
            if winner is None:
                raise DatabaseError(
                    f"Could not create {model_class.__name__} {lookup_fields}"
                ) from e
            return winner

    def _upsert(self, model_class: Type[T], key: str, **values: Any) -> T:
        """Insert or fully replace the row with primary key `key`; stamps updated_at."""
        obj = self.session.get(model_class, key)
        if obj is None:
            obj = model_class(key=key)
            self.session.add(obj)

        for name, value in values.items():
            setattr(obj, name, value)
        obj.updated_at = utc_now()

        self.session.flush()
        return obj

    def _touch(self, entry: Entry) -> None:
        """Refresh updated_at and queue the entry for a mirror resync."""
        entry.updated_at = utc_now()
        self.session.info.setdefault("dirty_entries", set()).add(entry.id)
