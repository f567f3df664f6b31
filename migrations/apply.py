"""
Apply database migrations.

Each numbered module in this directory holds one SCHEMA_SQL string. Pending
modules run in filename order, each in its own transaction together with its
schema_migrations row, so a failed module leaves no trace and stops the run.

    workforce-migrate              # apply pending migrations
    workforce-migrate --status     # list applied and pending names
"""

import asyncio
import hashlib
import importlib.util
import logging
import os
import ssl
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import asyncpg

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent

TRACKING_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    migration_name TEXT PRIMARY KEY,
    checksum TEXT NOT NULL,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""


def load_schema_sql(migration_file: Path) -> str:
    spec = importlib.util.spec_from_file_location(f"migration_{migration_file.stem}", migration_file)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    sql = getattr(module, "SCHEMA_SQL", None)
    if not sql:
        raise ValueError(f"{migration_file.name} does not define SCHEMA_SQL")
    return sql


def discover_migrations(migrations_dir: Path = MIGRATIONS_DIR) -> List[Path]:
    return sorted(
        path for path in migrations_dir.glob("[0-9]*.py")
        if path.stem[:3].isdigit()
    )


class MigrationRunner:
    def __init__(self, database_url: str, verify_tls: bool = True, migrations_dir: Path = MIGRATIONS_DIR):
        self.database_url = database_url
        self.verify_tls = verify_tls
        self.migrations_dir = migrations_dir

    async def connect(self) -> asyncpg.Connection:
        if self.verify_tls:
            conn = await asyncpg.connect(self.database_url)
        else:
            # Hosted Postgres behind a proxy presents certificates we can't verify
            context = ssl.create_default_context()
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
            conn = await asyncpg.connect(self.database_url, ssl=context)
        await conn.execute(TRACKING_TABLE_SQL)
        return conn

    def get_pending_migrations(self, applied: List[str]) -> List[Path]:
        return [path for path in discover_migrations(self.migrations_dir) if path.stem not in applied]

    async def _applied(self, conn: asyncpg.Connection) -> List[str]:
        rows = await conn.fetch("SELECT migration_name FROM schema_migrations ORDER BY migration_name")
        return [row["migration_name"] for row in rows]

    async def status(self) -> Tuple[List[str], List[Path]]:
        conn = await self.connect()
        try:
            applied = await self._applied(conn)
            return applied, self.get_pending_migrations(applied)
        finally:
            await conn.close()

    async def migrate(self) -> List[str]:
        """Apply every pending migration. Returns the names applied."""
        conn = await self.connect()
        done = []
        try:
            for path in self.get_pending_migrations(await self._applied(conn)):
                sql = load_schema_sql(path)
                async with conn.transaction():
                    await conn.execute(sql)
                    await conn.execute(
                        "INSERT INTO schema_migrations (migration_name, checksum) VALUES ($1, $2)",
                        path.stem,
                        hashlib.sha256(sql.encode()).hexdigest(),
                    )
                logger.info("Applied migration %s", path.stem)
                done.append(path.stem)
        finally:
            await conn.close()
        return done


async def _main(argv: Optional[List[str]] = None) -> int:
    from argparse import ArgumentParser

    from dotenv import load_dotenv

    from core.logging_setup import configure_logging

    load_dotenv()
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))

    parser = ArgumentParser(description="Apply workforce notifier schema migrations")
    parser.add_argument("--database-url", default=os.getenv("DATABASE_URL"), help="PostgreSQL connection URL")
    parser.add_argument("--status", action="store_true", help="List applied and pending migrations")
    args = parser.parse_args(argv)

    if not args.database_url:
        print("Error: DATABASE_URL not set", file=sys.stderr)
        return 1

    env = os.environ.get("APP_ENV") or os.environ.get("NODE_ENV", "development")
    runner = MigrationRunner(args.database_url, verify_tls=env != "production")

    try:
        if args.status:
            applied, pending = await runner.status()
            for name in applied:
                print(f"applied  {name}")
            for path in pending:
                print(f"pending  {path.stem}")
        else:
            done = await runner.migrate()
            print(f"{len(done)} migration(s) applied")
    except Exception as e:
        logger.error("Migration failed: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    return asyncio.run(_main(argv))


if __name__ == "__main__":
    sys.exit(main())
