#!/usr/bin/env python3
"""
decorators.py
--------------------
Shared decorators and context managers for database operations.

- log_database_operation: timing + outcome logging for manager methods
- handle_db_errors: SQLAlchemy errors become DatabaseError
- DatabaseOperation: both of the above as a `with` block
"""
from datetime import datetime
from functools import wraps
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from muninn.core.exceptions import DatabaseError, ValidationError
from muninn.core.logging_manager import JournalLogger, safe_logger


def _log_failure(logger, error: Exception, context: Dict[str, Any]) -> None:
    # Client errors are expected input problems, not server faults
    if isinstance(error, ValidationError):
        logger.log_debug(f"Rejected: {error}", context)
    else:
        logger.log_error(error, context)


def log_database_operation(operation_name: str):
    """
    Decorator to log database operations with timing and context.

    Args:
        operation_name: Name of the operation being logged

    Returns:
        Decorator function
    """

    def decorator(function: Callable) -> Callable:
        @wraps(function)
        def wrapper(self, *args, **kwargs):
            logger = safe_logger(getattr(self, "logger", None))
            start_time = datetime.now()
            operation_id = f"{operation_name}_{start_time.strftime('%Y%m%d_%H%M%S_%f')}"

            logger.log_debug(
                f"Starting {operation_name}",
                {
                    "operation_id": operation_id,
                    "args_count": len(args),
                    "kwargs_keys": list(kwargs.keys()),
                },
            )

            try:
                result = function(self, *args, **kwargs)
            except Exception as e:
                _log_failure(
                    logger,
                    e,
                    {
                        "operation": operation_name,
                        "operation_id": operation_id,
                        "duration_seconds": (datetime.now() - start_time).total_seconds(),
                    },
                )
                raise

            logger.log_operation(
                f"{operation_name}_completed",
                {
                    "operation_id": operation_id,
                    "duration_seconds": (datetime.now() - start_time).total_seconds(),
                    "success": True,
                },
            )
            return result

        return wrapper

    return decorator


def handle_db_errors(function: Callable) -> Callable:
    """
    Decorator to convert SQLAlchemy errors into DatabaseError.

    Args:
        function: Function to wrap

    Returns:
        Wrapped function with error handling
    """

    @wraps(function)
    def wrapper(*args, **kwargs):
        try:
            return function(*args, **kwargs)
        except IntegrityError as e:
            raise DatabaseError(f"Data integrity violation: {e.orig}") from e
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database operation failed: {e}") from e

    return wrapper


class DatabaseOperation:
    """
    Context manager combining logging and error conversion.

    Usage:
        with DatabaseOperation(self.logger, "rebuild_mirror"):
            ...

    On success logs `<name>_completed` with duration. On failure logs the
    error, converts SQLAlchemy errors to DatabaseError and re-raises.
    """

    def __init__(
        self,
        logger: Optional[JournalLogger],
        operation_name: str,
        log_start: bool = False,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.logger = safe_logger(logger)
        self.operation_name = operation_name
        self.log_start = log_start
        self.context = context or {}
        self.start_time: Optional[datetime] = None

    def __enter__(self) -> "DatabaseOperation":
        self.start_time = datetime.now()
        if self.log_start:
            self.logger.log_debug(f"Starting {self.operation_name}", self.context)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        duration = (datetime.now() - self.start_time).total_seconds()

        if exc is None:
            self.logger.log_operation(
                f"{self.operation_name}_completed",
                {**self.context, "duration_seconds": duration, "success": True},
            )
            return False

        _log_failure(
            self.logger,
            exc,
            {**self.context, "operation": self.operation_name, "duration_seconds": duration},
        )

        if isinstance(exc, IntegrityError):
            raise DatabaseError(f"Data integrity violation: {exc.orig}") from exc
        if isinstance(exc, SQLAlchemyError):
            raise DatabaseError(f"Database operation failed: {exc}") from exc
        return False
