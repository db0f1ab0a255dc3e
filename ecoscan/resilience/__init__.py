"""Resilience patterns for store access

Bounded retries with exponential backoff for optimistic-concurrency
conflicts and transient database failures.
"""

from ecoscan.resilience.retry import (
    is_retryable_error,
    calculate_backoff,
    retry_with_backoff,
    with_retry,
)

__all__ = [
    "is_retryable_error",
    "calculate_backoff",
    "retry_with_backoff",
    "with_retry",
]
