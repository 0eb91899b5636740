"""
Cache and Settings Models
--------------------------

Key/value tables for derived values and user configuration.

Models:
    - CacheEntry: Derived value pinned to a dependency token
    - Setting: Free-text user setting (agent overview, user profile)
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utc_now


class CacheEntry(Base):
    """
    Cached derived value.

    A value is only valid while the caller's current dependency token
    equals `depends_on`. There is no expiry.

    Attributes:
        key: Cache key (primary key)
        value: JSON-serializable value
        depends_on: Token the value was computed against
        updated_at: When the value was last written
    """

    __tablename__ = "cache"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=False)
    depends_on: Mapped[Optional[str]] = mapped_column(String(255))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<CacheEntry(key={self.key}, depends_on={self.depends_on})>"


class Setting(Base):
    """
    User-level setting stored as free text.

    Attributes:
        key: Setting name (primary key)
        value: Setting text
        updated_at: When the setting was last written
    """

    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Setting(key={self.key})>"
