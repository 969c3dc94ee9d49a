"""
Async database access helpers (raw SQL) using asyncpg.

This module owns the connection pool. FastAPI initializes it on startup and
closes it on shutdown (see `api/main.py`).

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
- build dynamic WHERE clauses with `core.sql.QueryParams`
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg

from . import config

logger = logging.getLogger(__name__)

_pool: asyncpg.Pool | None = None


class PoolNotReadyError(RuntimeError):
    pass


# Everything the driver or the network can raise while talking to Postgres.
# Services map these to a StorageError (JSON 500).
STORAGE_FAILURES = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
    PoolNotReadyError,
)


def _sanitize_database_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def database_url() -> str:
    url = config.env_str("DATABASE_URL", "")
    if not url:
        raise RuntimeError("DATABASE_URL is not set.")
    return _sanitize_database_url(url)


async def init_pool() -> None:
    global _pool
    if _pool is not None:
        return None
    _pool = await asyncpg.create_pool(
        dsn=database_url(),
        min_size=config.env_int("DB_POOL_MIN_SIZE", 1),
        max_size=config.env_int("DB_POOL_MAX_SIZE", 5),
        command_timeout=config.env_int("DB_COMMAND_TIMEOUT", 30),
    )
    logger.info("db_pool_ready")


async def close_pool() -> None:
    global _pool
    if _pool is None:
        return None
    await _pool.close()
    _pool = None


def pool() -> asyncpg.Pool:
    if _pool is None:
        raise PoolNotReadyError("DB pool is not initialized. Call init_pool() on startup.")
    return _pool


def _record_to_dict(record: asyncpg.Record) -> dict[str, Any]:
    return dict(record)


async def fetch_one(sql: str, *args: Any) -> dict[str, Any] | None:
    """
    Run a query and return a single row as a dict (or None).
    """
    row = await pool().fetchrow(sql, *args)
    return _record_to_dict(row) if row is not None else None


async def fetch_all(sql: str, *args: Any) -> list[dict[str, Any]]:
    """
    Run a query and return all rows as a list of dicts.
    """
    rows = await pool().fetch(sql, *args)
    return [_record_to_dict(r) for r in rows]


@asynccontextmanager
async def transaction() -> AsyncIterator[asyncpg.Connection]:
    """
    Hold one pooled connection inside a transaction for the duration of the block.

    Commits when the block exits normally, rolls back when it raises.
    The connection goes back to the pool either way.
    """
    async with pool().acquire() as conn:  # type: asyncpg.Connection
        try:
            async with conn.transaction():
                yield conn
        except Exception as exc:
            logger.warning("transaction_rolled_back error=%s", type(exc).__name__)
            raise
