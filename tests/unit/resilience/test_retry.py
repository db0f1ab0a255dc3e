"""Unit tests for retry logic"""
import pytest
from unittest.mock import AsyncMock, patch

import psycopg

from ecoscan.exceptions import ConflictError, NotFoundError, TransientDatabaseError
from ecoscan.resilience.retry import (
    MAX_DELAY,
    calculate_backoff,
    is_retryable_error,
    retry_with_backoff,
    with_retry,
)


def test_is_retryable_error_conflict():
    """Test lost version races are retryable"""
    assert is_retryable_error(ConflictError("lost race")) == True


def test_is_retryable_error_connection():
    """Test dropped connections are retryable"""
    assert is_retryable_error(psycopg.OperationalError("server closed the connection")) == True


def test_is_retryable_error_transient_database():
    """Test store-wrapped connection failures are retryable"""
    assert is_retryable_error(TransientDatabaseError("connection lost")) == True


def test_is_retryable_error_non_retryable():
    """Test that non-retryable errors are identified correctly"""
    assert is_retryable_error(NotFoundError("missing")) == False
    assert is_retryable_error(psycopg.IntegrityError("duplicate key")) == False
    assert is_retryable_error(ValueError("Bad value")) == False


def test_calculate_backoff():
    """Test exponential backoff calculation"""
    delay_0 = calculate_backoff(0, base_delay=0.1)
    assert 0.09 <= delay_0 <= 0.11  # 0.1s ± 10% jitter

    delay_1 = calculate_backoff(1, base_delay=0.1)
    assert 0.18 <= delay_1 <= 0.22

    delay_2 = calculate_backoff(2, base_delay=0.1)
    assert 0.36 <= delay_2 <= 0.44


def test_calculate_backoff_capped():
    """Test backoff never exceeds MAX_DELAY plus jitter"""
    assert calculate_backoff(20, base_delay=0.1) <= MAX_DELAY * 1.1


def test_calculate_backoff_zero_base():
    assert calculate_backoff(3, base_delay=0) == 0


@pytest.mark.asyncio
async def test_retry_succeeds_after_conflicts():
    """Test function is retried until it succeeds"""
    func = AsyncMock(side_effect=[ConflictError("lost"), ConflictError("lost"), "ok"])
    func.__name__ = "bump"

    with patch("ecoscan.resilience.retry.asyncio.sleep", new=AsyncMock()) as mock_sleep:
        result = await retry_with_backoff(func, "user-123", max_retries=3, base_delay=0.05)

    assert result == "ok"
    assert func.await_count == 3
    assert mock_sleep.await_count == 2
    func.assert_awaited_with("user-123")


@pytest.mark.asyncio
async def test_retry_gives_up():
    """Test the last error is raised once retries are exhausted"""
    func = AsyncMock(side_effect=ConflictError("lost"))
    func.__name__ = "bump"

    with pytest.raises(ConflictError):
        await retry_with_backoff(func, max_retries=2, base_delay=0)

    assert func.await_count == 3


@pytest.mark.asyncio
async def test_retry_non_retryable_raises_immediately():
    func = AsyncMock(side_effect=NotFoundError("missing"))
    func.__name__ = "bump"

    with pytest.raises(NotFoundError):
        await retry_with_backoff(func, max_retries=5, base_delay=0)

    assert func.await_count == 1


@pytest.mark.asyncio
async def test_with_retry_decorator():
    """Test decorator form passes arguments through"""
    attempts = []

    @with_retry(max_retries=2, base_delay=0)
    async def flaky(value):
        attempts.append(value)
        if len(attempts) < 2:
            raise ConflictError("lost")
        return value * 2

    assert await flaky(21) == 42
    assert attempts == [21, 21]
