"""
Async PostgreSQL connection pool module.

Holds the process-wide asyncpg pool and a handful of query helpers used by
the persistence adapter (guardforce.core.store.PostgresStore). All
PostgreSQL traffic flows through this module.

Key Components:
- Global connection pool singleton (_pool)
- init_db(): Create the pool from settings
- get_db_pool(): Get the pool instance (initializes if needed)
- close_db(): Close the pool at shutdown
- execute_query / execute_query_one / execute_command: one-shot helpers

Usage:
    await init_db()

    rows = await execute_query("SELECT * FROM guard_leads WHERE id = $1", lead_id)

    await close_db()

Dependencies:
    - asyncpg
    - guardforce.core.config.get_settings (for DATABASE_URL and pool sizing)
"""

from typing import Any, List, Optional

import asyncpg
from asyncpg import Pool

from guardforce.core.config import get_settings


# =============================================================================
# Global Pool Singleton
# =============================================================================

# None until init_db() is called
_pool: Optional[Pool] = None


# =============================================================================
# Pool Lifecycle Functions
# =============================================================================

async def init_db() -> Pool:
    """
    Initialize the database connection pool.

    Idempotent: returns the existing pool when already initialized.

    Returns:
        Pool: The asyncpg connection pool instance.

    Raises:
        asyncpg.PostgresError: If connection to the database fails.
        OSError: If the database host is unreachable.
    """
    global _pool

    if _pool is None:
        settings = get_settings()
        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
        )

    return _pool


async def get_db_pool() -> Pool:
    """
    Get the database connection pool, initializing lazily if needed.

    Returns:
        Pool: The asyncpg connection pool instance.
    """
    global _pool

    if _pool is None:
        await init_db()

    assert _pool is not None, "Pool should be initialized after init_db()"

    return _pool


async def close_db() -> None:
    """Close the pool gracefully. Safe to call when no pool exists."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None


# =============================================================================
# Query Execution Helpers
# =============================================================================

async def execute_query(query: str, *args: Any) -> List[asyncpg.Record]:
    """
    Execute a query and return all rows.

    Args:
        query: SQL query string with $1, $2, ... placeholders.
        *args: Positional query parameters.

    Returns:
        List[asyncpg.Record]: Rows returned by the query.
    """
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        return await conn.fetch(query, *args)


async def execute_query_one(query: str, *args: Any) -> Optional[asyncpg.Record]:
    """
    Execute a query and return the first row, or None.

    Args:
        query: SQL query string with $1, $2, ... placeholders.
        *args: Positional query parameters.
    """
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        return await conn.fetchrow(query, *args)


async def execute_command(query: str, *args: Any) -> str:
    """
    Execute an INSERT/UPDATE/DELETE and return the status string
    (e.g. 'UPDATE 1').
    """
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        return await conn.execute(query, *args)
