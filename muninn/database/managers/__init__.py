#!/usr/bin/env python3
"""
managers package
--------------------
Entity managers for the journal database.

Each manager works inside a session it is given and never commits;
JournalDB owns the transaction boundaries.

Available Managers:
    BaseManager: Abstract base class with common utilities
    EntryManager: Entry lifecycle (create, update, transitions, delete)
    TagManager: Tag normalization and entry associations
    LinkManager: Undirected entry-to-entry edges
    CacheManager: Dependency-keyed derived values
    SettingsManager: Free-text user settings

Usage:
    from muninn.database.managers import EntryManager, TagManager

    entry_mgr = EntryManager(session, logger)
    tag_mgr = TagManager(session, logger)
"""
from .base_manager import BaseManager
from .tag_manager import TagManager
from .link_manager import LinkManager
from .cache_manager import CacheManager
from .settings_manager import AGENT_OVERVIEW, USER_PROFILE, SettingsManager
from .entry_manager import EntryManager

__all__ = [
    "BaseManager",
    "TagManager",
    "LinkManager",
    "CacheManager",
    "SettingsManager",
    "EntryManager",
    "AGENT_OVERVIEW",
    "USER_PROFILE",
]
