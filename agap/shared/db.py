import logging
from contextlib import asynccontextmanager

import asyncpg

from agap.shared import config

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# Shared asyncpg pool, created on startup
db_pool = None


async def init_db():
    """Create the connection pool. Safe to call more than once."""
    global db_pool
    if db_pool is not None:
        return
    if not config.DATABASE_URL:
        raise RuntimeError("DATABASE_URL environment variable is not set.")
    logger.info(f"Opening connection pool ({config.DB_POOL_MIN}-{config.DB_POOL_MAX} connections)")
    db_pool = await asyncpg.create_pool(
        dsn=config.DATABASE_URL,
        min_size=config.DB_POOL_MIN,
        max_size=config.DB_POOL_MAX,
        command_timeout=60,
    )


async def close_db():
    global db_pool
    if db_pool is not None:
        await db_pool.close()
        db_pool = None
        logger.info("Connection pool closed")


@asynccontextmanager
async def get_db_connection():
    """Borrow a pooled connection: `async with get_db_connection() as conn:`"""
    if db_pool is None:
        raise RuntimeError("Database connection pool is not initialized. Call init_db() first.")
    async with db_pool.acquire() as conn:
        yield conn


@asynccontextmanager
async def transaction():
    """A pooled connection inside a transaction; rolls back if the block raises"""
    async with get_db_connection() as conn:
        async with conn.transaction():
            yield conn


async def execute_query(sql, params=None, fetch_one=False, commit=False):
    """
    Run one statement with $1, $2, ... placeholders.

    Returns a single Record (or None) with fetch_one, otherwise a list of Records.
    Single statements auto-commit under asyncpg, so `commit` only marks writes in the log.
    """
    args = tuple(params or ())
    logger.debug(f"{'Write' if commit else 'Query'}: {sql.strip().splitlines()[0][:100]} | {len(args)} params")
    try:
        async with get_db_connection() as conn:
            if fetch_one:
                return await conn.fetchrow(sql, *args)
            return await conn.fetch(sql, *args)
    except asyncpg.PostgresError as e:
        logger.error(f"Database error ({type(e).__name__}): {e}")
        raise
