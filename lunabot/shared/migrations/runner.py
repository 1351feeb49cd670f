"""SQL-file migrations tracked in a ``schema_migrations`` table."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"


@dataclass(frozen=True)
class Migration:
    version: str  # file stem, e.g. "000_initial_schema"
    path: Path

    @property
    def sql(self) -> str:
        return self.path.read_text(encoding="utf-8")


def discover(migrations_dir: Path | None = None) -> list[Migration]:
    """Migration files in apply order (the NNN_ prefix sorts them)."""
    directory = migrations_dir or VERSIONS_DIR
    return [Migration(p.stem, p) for p in sorted(directory.glob("*.sql"))]


class MigrationRunner:
    """Applies pending migrations, each in its own transaction."""

    TRACKING_TABLE = "schema_migrations"

    def __init__(self, pool: asyncpg.Pool, migrations_dir: Path | None = None) -> None:
        self.pool = pool
        self.migrations_dir = migrations_dir or VERSIONS_DIR

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
            rows = await conn.fetch(f"SELECT version FROM {self.TRACKING_TABLE}")  # noqa: S608
            return {row["version"] for row in rows}

    async def pending(self) -> list[Migration]:
        await self.ensure_table()
        applied = await self.get_applied()
        return [m for m in discover(self.migrations_dir) if m.version not in applied]

    async def run_pending(self) -> list[str]:
        """Apply every pending migration; returns the applied versions."""
        todo = await self.pending()
        if not todo:
            logger.info("Database is up to date, no pending migrations")
            return []

        for migration in todo:
            await self._apply_one(migration)

        versions = [m.version for m in todo]
        logger.info("Applied %d migration(s): %s", len(versions), ", ".join(versions))
        return versions

    async def _apply_one(self, migration: Migration) -> None:
        logger.info("Applying migration: %s", migration.version)
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(migration.sql)
                await conn.execute(
                    f"INSERT INTO {self.TRACKING_TABLE} (version, name) VALUES ($1, $2)",
                    migration.version,
                    migration.path.name,
                )
