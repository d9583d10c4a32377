"""Async PostgreSQL connection pool manager."""

import asyncpg
import structlog
from pathlib import Path
from config.settings import settings

log = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

_pool: asyncpg.Pool | None = None


async def create_pool(
    dsn: str,
    min_size: int = 1,
    max_size: int = 5,
    command_timeout: float | None = 30.0,
) -> asyncpg.Pool:
    """Create a new connection pool. The caller owns it and must close it."""
    pool = await asyncpg.create_pool(
        dsn,
        min_size=min_size,
        max_size=max_size,
        command_timeout=command_timeout,
    )
    log.info("database_pool_created", min_size=min_size, max_size=max_size)
    return pool


async def get_pool() -> asyncpg.Pool:
    """Get or create the process-wide pool from settings."""
    global _pool
    if _pool is None:
        _pool = await create_pool(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
        )
    return _pool


async def close_pool() -> None:
    """Close the process-wide pool."""
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
        log.info("database_pool_closed")


async def run_migrations(pool: asyncpg.Pool, migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    """Run all SQL migration files in order. Returns the filenames applied."""
    applied_now: list[str] = []

    async with pool.acquire() as conn:
        # Create migrations tracking table
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS _migrations (
                filename VARCHAR(255) PRIMARY KEY,
                applied_at TIMESTAMPTZ DEFAULT NOW()
            )
        """)

        applied = {
            row["filename"]
            for row in await conn.fetch("SELECT filename FROM _migrations")
        }

        for migration_file in sorted(migrations_dir.glob("*.sql")):
            if migration_file.name in applied:
                log.debug("migration_already_applied", filename=migration_file.name)
                continue

            log.info("applying_migration", filename=migration_file.name)
            sql = migration_file.read_text()
            async with conn.transaction():
                await conn.execute(sql)
                await conn.execute(
                    "INSERT INTO _migrations (filename) VALUES ($1)",
                    migration_file.name,
                )
            applied_now.append(migration_file.name)
            log.info("migration_applied", filename=migration_file.name)

    return applied_now
