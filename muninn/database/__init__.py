#!/usr/bin/env python3
"""
Muninn Database Package
-----------------------
Relational store for the journal: entries, tags, links, cached derived
values and settings, with Alembic-managed schema.

- JournalDB: transaction boundaries and the lifecycle facade
- managers: per-entity operations working inside a session
- models: SQLAlchemy ORM models
"""

from .manager import JournalDB
from muninn.core.exceptions import (
    DatabaseError,
    ValidationError,
    ExportError,
)
from .decorators import (
    DatabaseOperation,
    log_database_operation,
    handle_db_errors,
)

__all__ = [
    # Main manager
    "JournalDB",
    # Exceptions
    "DatabaseError",
    "ValidationError",
    "ExportError",
    # Decorators
    "DatabaseOperation",
    "log_database_operation",
    "handle_db_errors",
]
