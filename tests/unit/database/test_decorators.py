"""
Tests for the database decorators and DatabaseOperation.
"""
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from muninn.core.exceptions import DatabaseError, ValidationError
from muninn.core.logging_manager import JournalLogger
from muninn.database.decorators import (
    DatabaseOperation,
    handle_db_errors,
    log_database_operation,
)


@pytest.fixture
def logger():
    return MagicMock(spec=JournalLogger)


class Worker:
    def __init__(self, logger):
        self.logger = logger

    @handle_db_errors
    @log_database_operation("do_work")
    def work(self, error=None):
        if error is not None:
            raise error
        return "done"


class TestDecorators:
    def test_success_is_logged(self, logger):
        assert Worker(logger).work() == "done"

        name, details = logger.log_operation.call_args.args
        assert name == "do_work_completed"
        assert details["success"] is True

    def test_integrity_error_converted(self, logger):
        error = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        with pytest.raises(DatabaseError, match="integrity"):
            Worker(logger).work(error)

        logger.log_error.assert_called_once()

    def test_validation_error_not_logged_as_error(self, logger):
        with pytest.raises(ValidationError):
            Worker(logger).work(ValidationError("bad input"))

        logger.log_error.assert_not_called()
        logger.log_debug.assert_called()

    def test_works_without_logger(self):
        assert Worker(None).work() == "done"


class TestDatabaseOperation:
    def test_success(self, logger):
        with DatabaseOperation(logger, "rebuild", log_start=True, context={"n": 1}):
            pass

        logger.log_debug.assert_called_once_with("Starting rebuild", {"n": 1})
        name, details = logger.log_operation.call_args.args
        assert name == "rebuild_completed"
        assert details["n"] == 1

    def test_sqlalchemy_error_converted(self, logger):
        with pytest.raises(DatabaseError):
            with DatabaseOperation(logger, "rebuild"):
                raise OperationalError("SELECT", {}, Exception("database is locked"))

        logger.log_error.assert_called_once()

    def test_other_errors_propagate(self, logger):
        with pytest.raises(KeyError):
            with DatabaseOperation(logger, "rebuild"):
                raise KeyError("missing")
