#!/usr/bin/env python3
"""
sql2md.py
-----------
One-way projection of database entries into Markdown files.

The database is the source of truth; the mirror directory is a
human-readable, grep-able copy that is rewritten after every committed
entry mutation. Mirror writes are best effort: failures are logged with
the entry id and path and never propagate to the caller.

File naming:
    - `{id}.md` while the entry is not analyzed (or has no title)
    - `{slug}--{id}.md` once analyzed with a title
    Any other file for the same id is removed on every sync, so a rename
    never leaves a stale copy behind.

Usage:
    mirror = MarkdownMirror(ENTRIES_DIR, logger=logger)
    db = JournalDB(DB_PATH, mirror=mirror)

    # Rewrite everything (e.g. after restoring a backup)
    mirror.rebuild(db)
"""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Union

from muninn.core.logging_manager import JournalLogger, safe_logger
from muninn.dataclasses.md_entry import MdEntry

if TYPE_CHECKING:
    from muninn.database.manager import JournalDB
    from muninn.database.models import Entry


class MarkdownMirror:
    """
    Writes and removes mirror files for entries.

    Attributes:
        entries_dir: Directory holding the markdown files
        logger: Optional logger for operation tracking
    """

    def __init__(
        self, entries_dir: Union[str, Path], logger: Optional[JournalLogger] = None
    ) -> None:
        self.entries_dir = Path(entries_dir).expanduser().resolve()
        self.logger = logger

    # ---- Paths ----
    def files_for(self, entry_id: str) -> List[Path]:
        """Every mirror file currently on disk for an entry id."""
        if not self.entries_dir.is_dir():
            return []
        candidates = [self.entries_dir / f"{entry_id}.md"]
        candidates.extend(sorted(self.entries_dir.glob(f"*--{entry_id}.md")))
        return [path for path in candidates if path.is_file()]

    def path_for(self, entry: "Entry") -> Path:
        return self.entries_dir / MdEntry.from_database(entry).filename

    # ---- Operations ----
    def sync(self, entry: "Entry", tags: Optional[List[str]] = None) -> Optional[Path]:
        """
        Write an entry's markdown file and drop stale names for the same id.

        Never raises. Unchanged content is not rewritten.

        Args:
            entry: Entry to project (its tags must be loadable)
            tags: Tag names, if already at hand

        Returns:
            The file written, or None if the write failed
        """
        entry_id = getattr(entry, "id", None)
        target: Optional[Path] = None

        try:
            md_entry = MdEntry.from_database(entry, tags)
            target = self.entries_dir / md_entry.filename
            content = md_entry.to_markdown()

            self.entries_dir.mkdir(parents=True, exist_ok=True)
            if not target.exists() or target.read_text(encoding="utf-8") != content:
                target.write_text(content, encoding="utf-8")

            for stale in self.files_for(entry.id):
                if stale != target:
                    self._unlink(stale, entry.id)

            safe_logger(self.logger).log_debug(
                "Synced entry to markdown", {"entry_id": entry_id, "path": str(target)}
            )
            return target

        except Exception as e:
            safe_logger(self.logger).log_error(
                e,
                {
                    "operation": "markdown_sync",
                    "entry_id": entry_id,
                    "path": str(target) if target else None,
                },
            )
            return None

    def remove(self, entry_id: str) -> int:
        """
        Delete every mirror file for an entry id (best effort).

        Returns:
            Number of files removed
        """
        try:
            files = self.files_for(entry_id)
        except OSError as e:
            safe_logger(self.logger).log_error(
                e, {"operation": "markdown_remove", "entry_id": entry_id}
            )
            return 0
        return sum(1 for path in files if self._unlink(path, entry_id))

    def rebuild(self, db: "JournalDB") -> int:
        """
        Resync every entry in the database.

        Returns:
            Number of entries written successfully
        """
        synced = 0
        for entry_id in db.iter_entry_ids():
            entry = db.get_entry(entry_id)
            if entry is not None and self.sync(entry) is not None:
                synced += 1

        safe_logger(self.logger).log_operation(
            "markdown_rebuild_completed", {"entries_synced": synced}
        )
        return synced

    def _unlink(self, path: Path, entry_id: str) -> bool:
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            safe_logger(self.logger).log_error(
                e,
                {"operation": "markdown_unlink", "entry_id": entry_id, "path": str(path)},
            )
            return False
