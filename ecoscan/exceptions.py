"""
Standardized exception hierarchy for ecoscan
Provides rich context, consistent logging, and user-friendly error messages
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

import psycopg
from psycopg import errors as pg_errors

logger = logging.getLogger(__name__)


class EcoScanError(Exception):
    """
    Base exception for all ecoscan errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - User-friendly messages
    - Structured context
    - Automatic logging

    Example:
        raise EcoScanError(
            message="Failed to save scan",
            user_id="5b1c...",
            operation="register_scan",
            context={"scan_id": "abc-123"}
        )
    """

    log_level = logging.ERROR

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "An error occurred. Please try again."
        self.timestamp = datetime.now(timezone.utc)

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,  # 'message' is reserved by logging
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.log(
                self.log_level,
                f"{self.__class__.__name__}: {self.message}",
                extra=log_data,
                exc_info=self.cause
            )
        else:
            logger.log(self.log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Validation Errors (User Input)
# ==========================================

class ValidationError(EcoScanError):
    """
    Raised when input fails validation

    Examples:
    - Negative point totals handed to the level calculator
    - Unknown leaderboard metric
    """

    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            user_message=f"Invalid {field}: {message}" if field else message,
            context={"field": field, "value": value},
            **kwargs
        )


# ==========================================
# Database Errors
# ==========================================

class DatabaseError(EcoScanError):
    """
    Base class for store-related errors
    """
    pass


class NotFoundError(DatabaseError):
    """Requested record does not exist (usually the user's stats row)"""

    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            user_message=f"{record_type or 'Record'} not found.",
            context={"record_type": record_type, "record_id": record_id},
            **kwargs
        )


class PersistenceError(DatabaseError):
    """Writing a scan, user stats or achievement unlock failed"""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        **kwargs
    ):
        self.query = query
        kwargs.setdefault("context", {"query": query})
        super().__init__(
            message=message,
            user_message="Your scan was classified but your points could not be recorded. Please try again.",
            **kwargs
        )


class TransientDatabaseError(PersistenceError):
    """
    The database was briefly unreachable (dropped connection, pool timeout,
    server restart). Safe to retry the whole operation.
    """

    log_level = logging.WARNING


class ConflictError(DatabaseError):
    """
    A concurrent update won the race for the same user row.

    Raised by the optimistic-concurrency path; callers retry the
    read-modify-write cycle a bounded number of times.
    """

    log_level = logging.WARNING

    def __init__(
        self,
        message: str = "Concurrent update detected",
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
        **kwargs
    ):
        self.expected_version = expected_version
        self.actual_version = actual_version
        kwargs.setdefault(
            "context",
            {"expected_version": expected_version, "actual_version": actual_version}
        )
        super().__init__(
            message=message,
            user_message="Another update was in progress. Please try again.",
            **kwargs
        )


# ==========================================
# Authentication
# ==========================================

class AuthenticationError(EcoScanError):
    """Authentication failed"""

    log_level = logging.WARNING

    def __init__(
        self,
        message: str = "Authentication failed",
        **kwargs
    ):
        super().__init__(
            message=message,
            user_message="Authentication failed. Please check your credentials.",
            **kwargs
        )


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(EcoScanError):
    """System configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            user_message="The system is not properly configured. Please contact support.",
            context={"config_key": config_key},
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def wrap_external_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> EcoScanError:
    """
    Wrap driver exceptions (psycopg) into our exception hierarchy

    Args:
        error: Original exception
        operation: What operation was being performed
        user_id: User ID if applicable
        context: Additional context

    Returns:
        Appropriate EcoScanError subclass

    Example:
        try:
            await cur.execute(query, params)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="commit_scan", user_id=user_id)
    """
    if isinstance(error, EcoScanError):
        return error

    # Serialization failures and lock timeouts are retryable conflicts
    if isinstance(error, (pg_errors.SerializationFailure, pg_errors.LockNotAvailable)):
        return ConflictError(
            message=f"{operation} lost a concurrent update: {error}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )
    # Includes psycopg_pool.PoolTimeout, a subclass of OperationalError
    elif isinstance(error, psycopg.OperationalError):
        return TransientDatabaseError(
            message=f"Database unavailable during {operation}: {error}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )
    elif isinstance(error, psycopg.Error):
        return PersistenceError(
            message=f"Database operation failed: {error}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )

    # Generic fallback
    return EcoScanError(
        message=f"{operation} failed: {error}",
        user_id=user_id,
        operation=operation,
        context=context,
        cause=error
    )
