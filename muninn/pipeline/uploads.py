#!/usr/bin/env python3
"""
uploads.py
-------------------
Tracking state for chunked uploads in flight.

One ChunkUploadTracker is owned by each JournalPipeline (no module-level
state), so tests and separate pipelines never share counters. Every
mutation happens under a lock.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional


@dataclass
class UploadState:
    """
    Progress of one chunked upload.

    Attributes:
        key: Audio store key the chunks are written to
        total_bytes: Bytes received so far
        next_index: Index the next chunk must carry
        last_seen: Clock reading of the latest chunk
    """

    key: str
    total_bytes: int = 0
    next_index: int = 0
    last_seen: float = 0.0


class ChunkUploadTracker:
    """
    Running byte totals per entry id.

    Args:
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._uploads: Dict[str, UploadState] = {}

    def start(self, entry_id: str, key: str) -> UploadState:
        """Begin (or restart) tracking an upload; resets the running total."""
        with self._lock:
            state = UploadState(key=key, last_seen=self._clock())
            self._uploads[entry_id] = state
            return state

    def add(self, entry_id: str, size: int) -> Optional[int]:
        """
        Record `size` more bytes for an upload.

        Returns:
            The new running total, or None if the upload is not tracked
        """
        with self._lock:
            state = self._uploads.get(entry_id)
            if state is None:
                return None
            state.total_bytes += size
            state.next_index += 1
            state.last_seen = self._clock()
            return state.total_bytes

    def get(self, entry_id: str) -> Optional[UploadState]:
        with self._lock:
            return self._uploads.get(entry_id)

    def discard(self, entry_id: str) -> Optional[UploadState]:
        """Stop tracking an upload; returns its final state if it was tracked."""
        with self._lock:
            return self._uploads.pop(entry_id, None)

    def stale(self, max_age: float) -> List[tuple]:
        """
        Remove and return uploads idle for longer than `max_age` seconds.

        Returns:
            (entry_id, UploadState) pairs
        """
        cutoff = self._clock() - max_age
        with self._lock:
            expired = [
                (entry_id, state)
                for entry_id, state in self._uploads.items()
                if state.last_seen < cutoff
            ]
            for entry_id, _ in expired:
                del self._uploads[entry_id]
        return expired

    def __len__(self) -> int:
        with self._lock:
            return len(self._uploads)

    def __contains__(self, entry_id: object) -> bool:
        with self._lock:
            return entry_id in self._uploads
