"""
Dataclasses package
-------------------
Typed structures that travel between the database, the pipeline and the
markdown mirror.

- analysis: Analysis, RelatedEntry, AgentTrajectory, EntryUpdate
- md_entry: MdEntry, the markdown projection of an Entry
"""
from .analysis import (
    UNSET,
    AgentTrajectory,
    Analysis,
    EntryUpdate,
    PotentialLink,
    RelatedEntry,
    TimeReference,
)
from .md_entry import MdEntry

__all__ = [
    "UNSET",
    "AgentTrajectory",
    "Analysis",
    "EntryUpdate",
    "PotentialLink",
    "RelatedEntry",
    "TimeReference",
    "MdEntry",
]
