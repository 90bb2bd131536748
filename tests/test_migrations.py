# tests/test_migrations.py
"""Migration ledger: ordering, idempotence and atomicity."""
from __future__ import annotations

import pytest

from backoffice_jobs.core.config import DEFAULT_MIGRATIONS_DIR
from backoffice_jobs.core.exceptions import MigrationError
from backoffice_jobs.db.migration_runner import MigrationRunner

BUNDLED = [
    "001_sync_jobs.sql",
    "002_audit_logs.sql",
    "003_system_health.sql",
    "004_job_dispatch_indexes.sql",
]


async def _tables(db) -> set:
    rows = await db.all("SELECT name FROM sqlite_master WHERE type = 'table'")
    return {row["name"] for row in rows}


@pytest.mark.asyncio
async def test_bundled_migrations_apply_in_order(bare_db):
    applied = await MigrationRunner(bare_db, DEFAULT_MIGRATIONS_DIR).run()
    assert applied == BUNDLED
    assert {"_migrations", "sync_jobs", "audit_logs", "system_health"} <= await _tables(bare_db)

    indexes = await bare_db.all("SELECT name FROM sqlite_master WHERE type = 'index'")
    assert "idx_sync_jobs_dispatch" in {row["name"] for row in indexes}


@pytest.mark.asyncio
async def test_second_run_applies_nothing(bare_db):
    runner = MigrationRunner(bare_db, DEFAULT_MIGRATIONS_DIR)
    await runner.run()
    ledger_before = await bare_db.all("SELECT name, applied_at FROM _migrations ORDER BY name")

    assert await runner.run() == []
    assert await bare_db.all("SELECT name, applied_at FROM _migrations ORDER BY name") == ledger_before


@pytest.mark.asyncio
async def test_postgres_syntax_is_rewritten_for_sqlite(bare_db, tmp_path):
    (tmp_path / "001_pg.sql").write_text(
        'CREATE EXTENSION IF NOT EXISTS "pgcrypto";\n'
        "CREATE TABLE events (id TEXT PRIMARY KEY, data JSONB, at TIMESTAMPTZ NOT NULL DEFAULT NOW());\n"
    )
    assert await MigrationRunner(bare_db, tmp_path).run() == ["001_pg.sql"]

    await bare_db.run("INSERT INTO events (id, data) VALUES (?, ?)", ["e1", {"k": 1}])
    row = await bare_db.get("SELECT data, at FROM events WHERE id = ?", ["e1"])
    assert row["data"] == '{"k": 1}'
    assert row["at"]


@pytest.mark.asyncio
async def test_failed_migration_is_not_recorded_and_stops_the_run(bare_db, tmp_path):
    (tmp_path / "001_ok.sql").write_text("CREATE TABLE first_table (id INTEGER);")
    (tmp_path / "002_bad.sql").write_text(
        "CREATE TABLE second_table (id INTEGER);\n"
        "INSERT INTO not_a_table VALUES (1);\n"
    )
    (tmp_path / "003_never.sql").write_text("CREATE TABLE third_table (id INTEGER);")

    with pytest.raises(MigrationError) as exc_info:
        await MigrationRunner(bare_db, tmp_path).run()
    assert exc_info.value.name == "002_bad.sql"
    assert "not_a_table" in exc_info.value.message

    tables = await _tables(bare_db)
    assert "first_table" in tables
    assert "second_table" not in tables
    assert "third_table" not in tables

    ledger = await MigrationRunner(bare_db, tmp_path).applied_migrations()
    assert ledger == {"001_ok.sql"}


@pytest.mark.asyncio
async def test_applied_migrations_are_not_revalidated(bare_db, tmp_path):
    script = tmp_path / "001_table.sql"
    script.write_text("CREATE TABLE only_once (id INTEGER);")
    runner = MigrationRunner(bare_db, tmp_path)
    assert await runner.run() == ["001_table.sql"]

    script.write_text("this is no longer valid sql")
    assert await runner.run() == []


@pytest.mark.asyncio
async def test_non_sql_files_are_ignored(bare_db, tmp_path):
    (tmp_path / "README.md").write_text("notes")
    (tmp_path / "001_a.sql").write_text("CREATE TABLE a (id INTEGER);")
    assert await MigrationRunner(bare_db, tmp_path).run() == ["001_a.sql"]


@pytest.mark.asyncio
async def test_missing_directory_is_skipped(bare_db, tmp_path):
    assert await MigrationRunner(bare_db, tmp_path / "nowhere").run() == []
