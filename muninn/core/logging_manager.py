#!/usr/bin/env python3
"""
logging_manager.py
--------------------
Centralized logging for the journal core.

Every component (database, pipeline, mirror, cli) gets its own rotating
operations log plus a shared errors.log. Best-effort failures that are
swallowed by the core still land here with full context.

Log lines carry a level tag and, when given, a JSON payload:

    2026-10-17 09:12:03 - muninn.pipeline - INFO - [...] - OPERATION - audio_ingested: {"entry_id": ...}
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import json
import logging
import sys
import traceback
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

# --- Third party imports ---
import click

# --- Local imports ---
from muninn.core.exceptions import ValidationError, client_error


FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(funcName)s:%(lineno)d] - %(message)s"
FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"
CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_DATEFMT = "%H:%M:%S"


def _with_details(message: str, details: Optional[Dict[str, Any]]) -> str:
    if not details:
        return message
    return f"{message}: {json.dumps(details, default=str)}"


def _reset_handlers(logger: logging.Logger) -> None:
    # Loggers are process-global by name; close what a previous instance opened
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


class JournalLogger:
    """
    Structured logger for one journal component.

    Attributes:
        log_dir: Directory for log files
        component_name: Name of the component using this logger
        main_logger: Operations, debug detail and warnings (also echoed to
            the console from WARNING up)
        error_logger: errors.log only; shared by all components
    """

    def __init__(
        self,
        log_dir: Path,
        component_name: str = "muninn",
        max_bytes: int = 10 * 1024 * 1024,
        backup_count: int = 5,
    ) -> None:
        """
        Args:
            log_dir: Directory for log files
            component_name: 'database', 'pipeline', 'cli', ...
            max_bytes: Rotation threshold per file (default: 10MB)
            backup_count: Rotated files kept (default: 5)
        """
        self.log_dir = Path(log_dir)
        self.component_name = component_name
        self.max_bytes = max_bytes
        self.backup_count = backup_count
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.main_logger = self._build_logger(
            f"muninn.{component_name}", f"{component_name}.log", logging.DEBUG
        )
        self.error_logger = self._build_logger(
            f"muninn.{component_name}.errors", "errors.log", logging.ERROR
        )

        console = logging.StreamHandler()
        console.setLevel(logging.WARNING)
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=CONSOLE_DATEFMT))
        self.main_logger.addHandler(console)

    def _build_logger(self, name: str, filename: str, level: int) -> logging.Logger:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.propagate = False
        _reset_handlers(logger)

        handler = RotatingFileHandler(
            self.log_dir / filename,
            maxBytes=self.max_bytes,
            backupCount=self.backup_count,
            encoding="utf-8",
        )
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATEFMT))
        logger.addHandler(handler)
        return logger

    # ---- Structured records ----
    def log_operation(self, operation: str, details: Optional[Dict[str, Any]] = None) -> None:
        """Record a completed operation (entry created, upload finished, ...)."""
        self.main_logger.info(_with_details(f"OPERATION - {operation}", details or {}))

    def log_debug(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.main_logger.debug(_with_details(f"DEBUG - {message}", details))

    def log_info(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.main_logger.info(_with_details(f"INFO - {message}", details))

    def log_warning(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.main_logger.warning(_with_details(f"WARNING - {message}", details))

    def log_error(self, error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Write one errors.log record: exception, context and traceback.

        The traceback is taken from the exception itself, so this works
        outside the `except` block that caught it.

        Args:
            error: Exception that occurred
            context: entry_id, path, operation, ...
        """
        lines = [f"ERROR - {type(error).__name__}: {error}"]
        if context:
            lines.append("Context: " + ", ".join(f"{k}={v}" for k, v in context.items()))
        if error.__traceback__ is not None:
            trace = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
            lines.append(f"Traceback:\n{trace}")
        self.error_logger.error("\n".join(lines))

    def log_cli_error(
        self,
        error: Exception,
        context: Optional[Dict[str, Any]] = None,
        show_traceback: bool = False,
    ) -> str:
        """
        Log full error details and return a clean message for the terminal.

        Validation errors are expected input problems: they are shown as
        written and not logged. Anything else is logged, then reduced to its
        category message unless show_traceback is set.

        Examples:
            >>> logger.log_cli_error(MissingAudioError("No audio file for this entry"))
            '❌ No audio file for this entry'
        """
        if not isinstance(error, ValidationError):
            self.log_error(error, context or {"source": "cli"})
        return format_cli_error(error, show_traceback)


def format_cli_error(error: Exception, show_traceback: bool = False) -> str:
    """Render an exception as a single terminal line (plus traceback if asked)."""
    if show_traceback:
        trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return f"❌ {type(error).__name__}: {error}\n\n{trace}"
    return f"❌ {client_error(error)['error']}"


def handle_cli_error(
    ctx: "click.Context",
    error: Exception,
    operation: str,
    additional_context: Optional[Dict[str, Any]] = None,
    exit_code: int = 1,
) -> None:
    """
    Log a failed CLI command, echo one line to stderr and exit.

    With `--verbose` the line carries the exception type, raw message and
    traceback. Never returns.

    Args:
        ctx: Click context; its obj may hold 'logger' and 'verbose'
        error: Exception that occurred
        operation: Command that failed (e.g. 'transcribe')
        additional_context: Entry id, file path, ...
        exit_code: Process exit status (default: 1)
    """
    obj = ctx.obj or {}
    context = {"operation": operation, **(additional_context or {})}

    message = safe_logger(obj.get("logger")).log_cli_error(
        error, context, show_traceback=obj.get("verbose", False)
    )
    click.echo(message, err=True)
    sys.exit(exit_code)


class NullLogger:
    """JournalLogger stand-in that records nothing."""

    def log_operation(self, operation: str, details: Optional[Dict[str, Any]] = None) -> None:
        pass

    def log_error(self, error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
        pass

    def log_debug(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        pass

    def log_info(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        pass

    def log_warning(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        pass

    def log_cli_error(
        self,
        error: Exception,
        context: Optional[Dict[str, Any]] = None,
        show_traceback: bool = False,
    ) -> str:
        return format_cli_error(error, show_traceback)


_null_logger = NullLogger()


def safe_logger(logger: Optional[JournalLogger]) -> JournalLogger:
    """
    The given logger, or a shared NullLogger when it is None.

    Components take `logger: Optional[JournalLogger] = None` and call
    `safe_logger(self.logger).log_info(...)` without checking.
    """
    return logger if logger is not None else _null_logger  # type: ignore[return-value]
