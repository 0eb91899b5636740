"""
Pipeline package
----------------
Upload -> transcribe -> analyze orchestration and its file-side helpers.

- audio_store: where audio bytes live (local filesystem by default)
- uploads: in-flight chunked upload tracking
- sql2md: one-way markdown mirror of the database
- orchestrator: JournalPipeline, the per-entry stage sequencer
"""
