"""
Record store helpers shared by the settings store and the token managers.

Both talk to an asyncpg-compatible pool: ``pool.acquire()`` is an async
context manager yielding a connection with ``fetch``, ``fetchrow``,
``fetchval``, ``execute`` and ``transaction``.
"""
import contextlib
from collections.abc import AsyncIterator
from typing import Any

from .exceptions import RecoveryError, StorageError


@contextlib.asynccontextmanager
async def connection(db_pool: Any, operation: str) -> AsyncIterator[Any]:
    """Acquire a connection, wrapping driver failures in StorageError.

    Args:
        db_pool: asyncpg-compatible connection pool.
        operation: Short description used in the error message.

    Raises:
        StorageError: If acquiring or using the connection fails.
    """
    try:
        async with db_pool.acquire() as conn:
            yield conn
    except RecoveryError:
        raise
    except Exception as err:
        raise StorageError(f"Failed to {operation}: {err}") from err


def affected_rows(status: Any) -> int:
    """Row count from an ``execute`` status string such as ``"DELETE 3"``."""
    if isinstance(status, int):
        return status
    try:
        return int(str(status).rsplit(" ", 1)[-1])
    except ValueError:
        return 0
