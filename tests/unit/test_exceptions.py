"""Unit tests for custom exception hierarchy"""
import logging
import pytest
from datetime import datetime

import psycopg
from psycopg import errors as pg_errors
from psycopg_pool import PoolTimeout

from ecoscan.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConflictError,
    DatabaseError,
    EcoScanError,
    NotFoundError,
    PersistenceError,
    TransientDatabaseError,
    ValidationError,
    wrap_external_exception,
)


class TestEcoScanError:
    """Test base exception class"""

    def test_basic_exception(self):
        """Test basic exception creation"""
        error = EcoScanError("Test error")
        assert error.message == "Test error"
        assert error.user_message == "An error occurred. Please try again."
        assert error.request_id is not None
        assert isinstance(error.timestamp, datetime)
        assert error.timestamp.tzinfo is not None

    def test_exception_with_context(self):
        """Test exception with full context"""
        error = EcoScanError(
            message="Failed to save scan",
            user_id="user-123",
            operation="register_scan",
            context={"scan_id": "abc-123"},
            user_message="Could not save your scan"
        )
        assert error.user_id == "user-123"
        assert error.operation == "register_scan"
        assert error.context["scan_id"] == "abc-123"
        assert error.user_message == "Could not save your scan"

    def test_to_dict(self):
        """Test exception serialization"""
        error = EcoScanError(message="Test error", user_id="user-123")
        error_dict = error.to_dict()
        assert error_dict["error"] == "EcoScanError"
        assert error_dict["message"] == "Test error"
        assert "request_id" in error_dict
        assert "timestamp" in error_dict

    def test_logs_on_creation(self, caplog):
        """Test exceptions log themselves at their class level"""
        with caplog.at_level(logging.WARNING, logger="ecoscan.exceptions"):
            NotFoundError("missing", record_type="User", record_id="ghost")

        assert any(
            r.levelno == logging.WARNING and "NotFoundError" in r.getMessage()
            for r in caplog.records
        )


class TestSubclasses:
    """Test specialized errors"""

    def test_validation_error(self):
        error = ValidationError("must be between 1 and 100", field="limit", value=0)
        assert error.field == "limit"
        assert error.value == 0
        assert error.user_message == "Invalid limit: must be between 1 and 100"

    def test_not_found_error(self):
        error = NotFoundError("No stats", record_type="User", record_id="ghost")
        assert isinstance(error, DatabaseError)
        assert error.user_message == "User not found."

    def test_persistence_error_message(self):
        """Test the user-facing text for failed writes"""
        error = PersistenceError("insert failed", query="INSERT INTO scans")
        assert "could not be recorded" in error.user_message
        assert error.context["query"] == "INSERT INTO scans"

    def test_conflict_error(self):
        error = ConflictError(expected_version=3, actual_version=4)
        assert isinstance(error, DatabaseError)
        assert error.context == {"expected_version": 3, "actual_version": 4}

    def test_configuration_error(self):
        error = ConfigurationError("DATABASE_URL is required", config_key="DATABASE_URL")
        assert error.config_key == "DATABASE_URL"

    def test_authentication_error(self):
        error = AuthenticationError()
        assert error.message == "Authentication failed"


class TestWrapExternalException:
    """Test wrapping of driver errors"""

    def test_serialization_failure_becomes_conflict(self):
        wrapped = wrap_external_exception(
            pg_errors.SerializationFailure("could not serialize access"),
            operation="commit_scan",
            user_id="user-123"
        )
        assert isinstance(wrapped, ConflictError)
        assert wrapped.operation == "commit_scan"

    def test_psycopg_error_becomes_persistence_error(self):
        original = psycopg.IntegrityError("duplicate key value")
        wrapped = wrap_external_exception(original, operation="create_user")
        assert type(wrapped) is PersistenceError
        assert wrapped.cause is original

    def test_operational_error_becomes_transient(self):
        """Test dropped connections are flagged as retryable"""
        wrapped = wrap_external_exception(
            psycopg.OperationalError("server closed the connection unexpectedly"),
            operation="get_user_stats"
        )
        assert isinstance(wrapped, TransientDatabaseError)
        assert isinstance(wrapped, PersistenceError)

    def test_pool_timeout_becomes_transient(self):
        wrapped = wrap_external_exception(
            PoolTimeout("couldn't get a connection after 30.00 sec"),
            operation="commit_scan"
        )
        assert isinstance(wrapped, TransientDatabaseError)

    def test_unknown_error_becomes_base(self):
        wrapped = wrap_external_exception(ValueError("bad"), operation="evaluate")
        assert type(wrapped) is EcoScanError

    def test_ecoscan_error_passes_through(self):
        original = NotFoundError("missing", record_type="User", record_id="ghost")
        assert wrap_external_exception(original, operation="x") is original
