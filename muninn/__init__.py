"""
Muninn Journal Package
======================

A personal voice-journaling core.

Recordings are ingested as audio, transcribed through a speech-to-text
service, analyzed by an AI assistant for titles, themes, tags and links to
earlier entries, and persisted in a SQLite database with a human-readable
Markdown mirror of every entry.

Main Components:
    - database: SQLAlchemy ORM, entity managers and the JournalDB facade
    - pipeline: Upload -> transcription -> analysis orchestration, Markdown mirror
    - nlp: Speech-to-text and analysis clients
    - dataclasses: Typed analysis structures and the Markdown projection
    - core: Logging, configuration, validation, paths, retry
    - utils: Slug and Markdown helpers

Primary Interfaces:
    - muninn.database.manager.JournalDB: Durable store and entry lifecycle
    - muninn.pipeline.orchestrator.JournalPipeline: Stage sequencing
    - muninn.database.cli: Command-line interface

Example Usage:
    >>> from muninn.database import JournalDB
    >>> from muninn.core.paths import DB_PATH, ENTRIES_DIR
    >>> from muninn.pipeline.sql2md import MarkdownMirror
    >>> db = JournalDB(db_path=DB_PATH, mirror=MarkdownMirror(ENTRIES_DIR))
    >>> entry = db.create_entry()
    >>> entry.status
    <EntryStatus.PENDING_TRANSCRIPTION: 'pending_transcription'>
"""

__version__ = "1.0.0"
