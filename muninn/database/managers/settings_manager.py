#!/usr/bin/env python3
"""
settings_manager.py
--------------------
Key/value user settings.

Two documents are well known: the user-authored agent overview (context
handed to the analysis agent) and the agent-authored user profile, which
persists across analysis sessions.
"""
from typing import Dict, Optional

from sqlalchemy import select

from muninn.database.decorators import handle_db_errors, log_database_operation
from muninn.database.models import Setting
from .base_manager import BaseManager

AGENT_OVERVIEW = "agent_overview"
USER_PROFILE = "user_profile"


class SettingsManager(BaseManager):
    """Reads and upserts Setting rows."""

    @handle_db_errors
    @log_database_operation("get_setting")
    def get(self, key: str) -> Optional[str]:
        row = self.session.get(Setting, key)
        return row.value if row is not None else None

    @handle_db_errors
    @log_database_operation("set_setting")
    def set(self, key: str, value: str) -> None:
        self._upsert(Setting, key, value=value)

    @handle_db_errors
    @log_database_operation("get_all_settings")
    def get_all(self) -> Dict[str, str]:
        rows = self.session.scalars(select(Setting).order_by(Setting.key)).all()
        return {row.key: row.value for row in rows}
