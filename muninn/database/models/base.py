"""
Base Classes and Column Types
------------------------------

Foundational ORM classes for the journal database.

Classes:
    - Base: Declarative base for all SQLAlchemy models
    - DataclassJSON: Column type storing a typed dataclass as JSON text
    - utc_now: Timestamp default used by every model
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import json
from datetime import datetime, timezone
from typing import Any, Optional

# --- Third party ---
from sqlalchemy import Text
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# --- Base ORM class ---
class Base(DeclarativeBase):
    """
    Base class for all ORM models.

    Serves as the declarative base for SQLAlchemy models and provides
    access to the metadata object for table creation and migrations.
    """

    pass


class DataclassJSON(TypeDecorator):
    """
    Store a dataclass with `to_dict()` / `from_dict()` as JSON text.

    Serialization happens only here, at the storage boundary. A stored
    value that is not valid JSON loads as None rather than breaking every
    query that touches the row.

    Usage:
        analysis: Mapped[Optional[Analysis]] = mapped_column(
            "analysis_json", DataclassJSON(Analysis)
        )
    """

    impl = Text
    cache_ok = True

    def __init__(self, value_type: type, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.value_type = value_type

    def process_bind_param(self, value: Any, dialect) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, dict):
            value = self.value_type.from_dict(value)
        return json.dumps(value.to_dict(), ensure_ascii=False, sort_keys=True)

    def process_result_value(self, value: Optional[str], dialect) -> Any:
        if value is None:
            return None
        try:
            data = json.loads(value)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict):
            return None
        return self.value_type.from_dict(data)


class StringListJSON(TypeDecorator):
    """Store a list of strings as a JSON array."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect) -> Optional[str]:
        if value is None:
            return None
        return json.dumps([str(item) for item in value], ensure_ascii=False)

    def process_result_value(self, value: Optional[str], dialect) -> Any:
        if value is None:
            return None
        try:
            data = json.loads(value)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, list):
            return None
        return [str(item) for item in data]
