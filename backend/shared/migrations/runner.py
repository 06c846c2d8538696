"""SQL migration runner shared by the API and the bot."""

from __future__ import annotations

import logging
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"

# Both services may start at once; serialise on a fixed advisory lock.
_ADVISORY_LOCK_ID = 0x656D6F74


class MigrationRunner:
    """Apply ``versions/NNN_name.sql`` files once each.

    Applied versions are recorded in ``schema_migrations``.
    """

    TRACKING_TABLE = "schema_migrations"

    def __init__(self, pool: asyncpg.Pool, versions_dir: Path | None = None) -> None:
        self.pool = pool
        self.versions_dir = versions_dir or VERSIONS_DIR

    async def ensure_table(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.TRACKING_TABLE} (
                    version    TEXT PRIMARY KEY,
                    name       TEXT NOT NULL,
                    applied_at TIMESTAMPTZ DEFAULT NOW()
                )
                """
            )

    async def get_applied(self) -> set[str]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT version FROM {self.TRACKING_TABLE}"  # noqa: S608
            )
            return {row["version"] for row in rows}

    def pending(self, applied: set[str]) -> list[Path]:
        """SQL files not yet applied, in version order."""
        return [p for p in sorted(self.versions_dir.glob("*.sql")) if p.stem not in applied]

    async def run_pending(self) -> list[str]:
        """Apply every pending migration. Returns the newly applied versions."""
        await self.ensure_table()
        async with self.pool.acquire() as conn:
            await conn.execute("SELECT pg_advisory_lock($1)", _ADVISORY_LOCK_ID)
            try:
                applied = await self.get_applied()
                newly_applied: list[str] = []
                for sql_path in self.pending(applied):
                    await self._apply_one(conn, sql_path)
                    newly_applied.append(sql_path.stem)
            finally:
                await conn.execute("SELECT pg_advisory_unlock($1)", _ADVISORY_LOCK_ID)

        if newly_applied:
            logger.info("Applied %d migration(s): %s", len(newly_applied), ", ".join(newly_applied))
        else:
            logger.info("Database schema is up to date")
        return newly_applied

    async def _apply_one(self, conn: asyncpg.Connection, sql_path: Path) -> None:
        version = sql_path.stem
        logger.info("Applying migration: %s", version)
        sql = sql_path.read_text(encoding="utf-8")
        async with conn.transaction():
            await conn.execute(sql)
            await conn.execute(
                f"INSERT INTO {self.TRACKING_TABLE} (version, name) VALUES ($1, $2)",
                version,
                sql_path.name,
            )


async def run_migrations(pool: asyncpg.Pool) -> list[str]:
    return await MigrationRunner(pool).run_pending()
