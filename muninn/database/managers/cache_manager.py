#!/usr/bin/env python3
"""
cache_manager.py
--------------------
Dependency-keyed cache for derived values.

A cached value is pinned to the dependency token it was computed against
(e.g. the id of the most recently analyzed entry). A lookup with a
different token is a miss; there is no time-based expiry.

Usage:
    cache = CacheManager(session, logger)

    head = "1700000000000-abc123xyz"
    questions = cache.get("interview_questions", depends_on=head)
    if questions is None:
        questions = generate()
        cache.set("interview_questions", questions, depends_on=head)
"""
from typing import Any, Optional

from muninn.core.logging_manager import safe_logger
from muninn.database.decorators import handle_db_errors, log_database_operation
from muninn.database.models import CacheEntry
from .base_manager import BaseManager


class CacheManager(BaseManager):
    """Reads and writes CacheEntry rows."""

    @handle_db_errors
    @log_database_operation("get_cache")
    def get(self, key: str, depends_on: Optional[str] = None) -> Optional[Any]:
        """
        Cached value for `key`, or None on a miss.

        Args:
            key: Cache key
            depends_on: Caller's current token; when given, the stored token
                must be equal for a hit

        Returns:
            The stored value, or None
        """
        row = self.session.get(CacheEntry, key)
        if row is None:
            return None
        if depends_on is not None and row.depends_on != depends_on:
            safe_logger(self.logger).log_debug(
                "Cache token mismatch",
                {"key": key, "stored": row.depends_on, "current": depends_on},
            )
            return None
        return row.value

    @handle_db_errors
    @log_database_operation("set_cache")
    def set(self, key: str, value: Any, depends_on: Optional[str] = None) -> None:
        """Store `value`, replacing any prior value and token for `key`."""
        self._upsert(CacheEntry, key, value=value, depends_on=depends_on)

    @handle_db_errors
    @log_database_operation("invalidate_cache")
    def invalidate(self, key: str) -> bool:
        """
        Drop a cached value.

        Returns:
            True if a value was removed
        """
        row = self.session.get(CacheEntry, key)
        if row is None:
            return False
        self.session.delete(row)
        self.session.flush()
        return True
