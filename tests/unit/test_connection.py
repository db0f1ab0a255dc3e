"""Unit tests for the connection pool wrapper (ecoscan/db/connection.py)"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from psycopg.rows import dict_row

from ecoscan.db.connection import Database


def make_pool():
    pool = MagicMock()
    pool.open = AsyncMock()
    pool.close = AsyncMock()
    return pool


@pytest.mark.asyncio
async def test_init_pool_sets_dict_rows_once():
    """Test the row factory is configured on the pool, not per checkout"""
    pool = make_pool()

    with patch("ecoscan.db.connection.AsyncConnectionPool", return_value=pool) as mock_pool_cls:
        database = Database("postgresql://localhost/ecoscan_test")
        await database.init_pool()
        await database.init_pool()

    mock_pool_cls.assert_called_once()
    kwargs = mock_pool_cls.call_args.kwargs
    assert kwargs["kwargs"] == {"row_factory": dict_row}
    assert kwargs["open"] is False
    pool.open.assert_awaited_once()
    assert database.is_open


@pytest.mark.asyncio
async def test_close_pool():
    pool = make_pool()

    with patch("ecoscan.db.connection.AsyncConnectionPool", return_value=pool):
        database = Database("postgresql://localhost/ecoscan_test")
        await database.init_pool()
        await database.close_pool()

    pool.close.assert_awaited_once()
    assert not database.is_open


@pytest.mark.asyncio
async def test_connection_requires_open_pool():
    database = Database("postgresql://localhost/ecoscan_test")

    with pytest.raises(RuntimeError):
        async with database.connection():
            pass
