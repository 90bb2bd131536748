"""
Schema migration runner

Applies ``*.sql`` scripts in filename order, each exactly once, recording
them in the ``_migrations`` ledger inside the same transaction as the script.
"""
from pathlib import Path
from typing import List, Set

from backoffice_jobs.core.exceptions import DatabaseError, MigrationError
from backoffice_jobs.core.logger import error, info, warning
from backoffice_jobs.core.setup_logger import db_logger
from backoffice_jobs.db.database import Database
from backoffice_jobs.db.dialects import split_sql_statements


class MigrationRunner:

    def __init__(self, db: Database, migrations_dir: Path):
        self.db = db
        self.migrations_dir = Path(migrations_dir)

    async def run(self) -> List[str]:
        """
        Apply every pending migration.

        Returns:
            Names applied by this call (empty when the schema is current)

        Raises:
            MigrationError: on the first failing script; nothing after it runs
        """
        if not self.migrations_dir.is_dir():
            warning(db_logger, "Migrations directory not found, skipping", context={
                "migrations_dir": str(self.migrations_dir),
            })
            return []

        await self.db.exec(self.db.dialect.ledger_ddl)
        applied = await self.applied_migrations()

        files = sorted(p for p in self.migrations_dir.iterdir() if p.is_file() and p.suffix == ".sql")
        info(db_logger, f"Checking {len(files)} migrations", context={
            "migrations_dir": str(self.migrations_dir),
            "already_applied": len(applied),
        })

        newly_applied = []
        for path in files:
            if path.name in applied:
                continue
            await self._apply(path)
            newly_applied.append(path.name)

        info(db_logger, "All migrations verified/applied", context={"applied": newly_applied})
        return newly_applied

    async def applied_migrations(self) -> Set[str]:
        rows = await self.db.all("SELECT name FROM _migrations")
        return {row["name"] for row in rows}

    async def _apply(self, path: Path) -> None:
        name = path.name
        sql = self.db.dialect.rewrite_migration(path.read_text(encoding="utf-8"))
        info(db_logger, f"Running migration: {name}")

        try:
            if self.db.dialect.concurrent_ddl_outside_transaction and "CONCURRENTLY" in sql.upper():
                await self._apply_statementwise(name, sql)
            else:
                async with self.db.transaction() as tx:
                    await tx.exec(sql)
                    await tx.run("INSERT INTO _migrations (name) VALUES (?)", [name])
        except DatabaseError as e:
            error(db_logger, f"Migration {name} failed", context={
                "error": e.message,
                "statement": (e.statement or "")[:200],
            })
            raise MigrationError(name, e.message, original=e) from e

        info(db_logger, f"Migration {name} applied successfully")

    async def _apply_statementwise(self, name: str, sql: str) -> None:
        statements = split_sql_statements(sql)
        info(db_logger, f"Detected CONCURRENTLY in {name}, running {len(statements)} statements individually")

        for statement in statements:
            try:
                await self.db.exec_autocommit(statement)
            except DatabaseError as e:
                if "already exists" in e.message:
                    warning(db_logger, "Index already exists, skipping", context={"statement": statement[:100]})
                    continue
                raise

        await self.db.run("INSERT INTO _migrations (name) VALUES (?)", [name])
