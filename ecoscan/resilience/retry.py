"""Retry logic with exponential backoff and jitter

Implements retry logic for read-modify-write cycles that:
1. Only retries transient errors (lost optimistic-concurrency races, dropped connections)
2. Uses exponential backoff with jitter so competing writers spread out
3. Gives up after max retries to avoid infinite loops
"""

import asyncio
import random
import logging
from typing import Callable, Any, TypeVar
from functools import wraps

import psycopg

from ecoscan.config import RETRY_BASE_DELAY, SCAN_CONFLICT_RETRIES
from ecoscan.exceptions import ConflictError, TransientDatabaseError

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Retry configuration
MAX_RETRIES = SCAN_CONFLICT_RETRIES
BASE_DELAY = RETRY_BASE_DELAY  # seconds
MAX_DELAY = 2.0  # seconds
JITTER = 0.1  # 10% random jitter


def is_retryable_error(exc: Exception) -> bool:
    """
    Determine if error is transient and should be retried.

    Retryable errors:
    - ConflictError (another writer bumped the row version first)
    - TransientDatabaseError (connection dropped, pool timeout; raised by the stores)
    - psycopg.OperationalError (same, when raised by unwrapped driver calls)

    Non-retryable errors:
    - NotFoundError, ValidationError
    - Any other psycopg error (constraint violations, bad SQL)

    Args:
        exc: The exception to check

    Returns:
        True if error should be retried, False otherwise
    """
    if isinstance(exc, (ConflictError, TransientDatabaseError)):
        return True

    if isinstance(exc, psycopg.OperationalError):
        return True

    # Default: don't retry unknown errors
    return False


def calculate_backoff(attempt: int, base_delay: float = BASE_DELAY) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Formula: delay = min(base_delay * (2 ** attempt), MAX_DELAY) + jitter
    Jitter is random value between -10% and +10% of delay

    Args:
        attempt: The retry attempt number (0-indexed)
        base_delay: Delay of the first retry in seconds

    Returns:
        Delay in seconds

    Example (base_delay=0.05):
        Attempt 0: ~0.05s
        Attempt 1: ~0.1s
        Attempt 2: ~0.2s
    """
    delay = min(base_delay * (2 ** attempt), MAX_DELAY)

    jitter_amount = random.uniform(-JITTER * delay, JITTER * delay)
    final_delay = delay + jitter_amount

    return max(final_delay, 0.0)


async def retry_with_backoff(
    func: Callable[..., T],
    *args: Any,
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_DELAY,
    **kwargs: Any
) -> T:
    """
    Retry async function with exponential backoff.

    Only retries transient errors. Gives up after max_retries attempts.

    Args:
        func: Async function to retry
        max_retries: Maximum number of retry attempts
        base_delay: Delay of the first retry in seconds
        *args, **kwargs: Arguments to pass to func

    Returns:
        Result from func

    Raises:
        Last exception if all retries exhausted or non-retryable error

    Example:
        result = await retry_with_backoff(self._register_once, user_id, payload, max_retries=3)
    """
    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)

        except Exception as e:
            if not is_retryable_error(e):
                raise

            if attempt == max_retries:
                logger.error(
                    f"[RETRY] All {max_retries} retries exhausted for {func.__name__}"
                )
                raise

            backoff = calculate_backoff(attempt, base_delay)

            logger.info(
                f"[RETRY] Attempt {attempt + 1}/{max_retries} for {func.__name__} "
                f"after {backoff:.3f}s (error: {type(e).__name__})"
            )

            await asyncio.sleep(backoff)

    raise RuntimeError("Retry logic failed unexpectedly")


def with_retry(max_retries: int = MAX_RETRIES, base_delay: float = BASE_DELAY) -> Callable:
    """
    Decorator to add retry logic to async functions.

    Example:
        @with_retry(max_retries=3)
        async def bump_points():
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await retry_with_backoff(
                func, *args, max_retries=max_retries, base_delay=base_delay, **kwargs
            )
        return wrapper
    return decorator
