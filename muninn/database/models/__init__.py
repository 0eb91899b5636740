"""
Database Models Package
------------------------

SQLAlchemy ORM models for the journal database.

- base: Base class and JSON column types
- enums: EntryStatus
- associations: entry_tags
- core: Entry, EntryLink
- entities: Tag
- cache: CacheEntry, Setting

Usage:
    from muninn.database.models import Entry, Tag, EntryStatus
"""
# Base classes
from .base import Base, DataclassJSON, StringListJSON, utc_now

# Enumerations
from .enums import EntryStatus

# Association tables
from .associations import entry_tags

# Core models
from .core import Entry, EntryLink

# Entity models
from .entities import Tag

# Key/value models
from .cache import CacheEntry, Setting

__all__ = [
    # Base
    "Base",
    "DataclassJSON",
    "StringListJSON",
    "utc_now",
    # Enums
    "EntryStatus",
    # Associations
    "entry_tags",
    # Models
    "Entry",
    "EntryLink",
    "Tag",
    "CacheEntry",
    "Setting",
]
