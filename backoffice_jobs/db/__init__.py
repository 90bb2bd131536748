from backoffice_jobs.db.database import Database, Transaction, create_database
from backoffice_jobs.db.dialects import Dialect, PostgresDialect, SqliteDialect, as_number, utcnow
from backoffice_jobs.db.migration_runner import MigrationRunner

__all__ = [
    "Database",
    "Transaction",
    "create_database",
    "Dialect",
    "PostgresDialect",
    "SqliteDialect",
    "as_number",
    "utcnow",
    "MigrationRunner",
]
