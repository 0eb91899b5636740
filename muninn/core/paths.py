#!/usr/bin/env python3
"""
paths.py
-------------------
Path constants for the Muninn journal.

The persisted layout is three things that must stay consistent with each
other: the relational store file, a directory of per-entry audio files and
a directory of per-entry markdown files.

    DATA_DIR/
    ├── journal.db     # Relational store (source of truth)
    ├── audio/         # {entry_id}.{ext}
    ├── entries/       # {entry_id}.md or {slug}--{entry_id}.md
    └── logs/          # Component logs

DATA_DIR defaults to ROOT/data and can be overridden with MUNINN_DATA_DIR.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import os
from pathlib import Path


def _get_project_root() -> Path:
    """
    Determine project root directory.

    Assumes this file is at ROOT/muninn/core/paths.py.

    Returns:
        Path object for project root
    """
    # paths.py -> core/ -> muninn/ -> ROOT/
    return Path(__file__).resolve().parent.parent.parent


def _get_data_dir() -> Path:
    override = os.environ.get("MUNINN_DATA_DIR")
    if override:
        return Path(override).expanduser().resolve()
    return ROOT / "data"


# ----- Project directory -----
ROOT: Path = _get_project_root()
PACKAGE_DIR = ROOT / "muninn"
DATA_DIR: Path = _get_data_dir()

# --- Database ---
ALEMBIC_DIR = PACKAGE_DIR / "migrations"
DB_PATH = DATA_DIR / "journal.db"

# --- Files ---
AUDIO_DIR = DATA_DIR / "audio"
ENTRIES_DIR = DATA_DIR / "entries"

# --- Logs ---
LOG_DIR = DATA_DIR / "logs"
