"""
SQL dialect adapters

Calling code writes one placeholder style (``?``) and plain Python values.
Each adapter turns that into what its driver expects and normalizes the rows
coming back, so repositories never branch on the backend.
"""
import json
import re
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from backoffice_jobs.core.exceptions import DatabaseError

# Sortable text form used by the embedded engine; compares correctly against CURRENT_TIMESTAMP
SQLITE_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def as_number(value: Any):
    """
    Coerce a driver value to int/float.

    Counts come back as strings or Decimals from some drivers and as ints from
    others; None and empty strings count as 0.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, bytes):
        value = value.decode()
    text = str(value).strip()
    if not text:
        return 0
    try:
        return int(text)
    except ValueError:
        return float(text)


def _tokenize(sql: str) -> Iterator[Tuple[str, str]]:
    """
    Yield ("code" | "literal" | "comment", text) chunks.

    Literals are single/double quoted strings and $$ bodies; doubled quotes
    inside a literal are treated as escapes.
    """
    i = 0
    n = len(sql)
    code_start = 0
    while i < n:
        ch = sql[i]
        if ch in ("'", '"'):
            end = i + 1
            while end < n:
                if sql[end] == ch:
                    if end + 1 < n and sql[end + 1] == ch:
                        end += 2
                        continue
                    break
                end += 1
            kind, stop = "literal", min(end + 1, n)
        elif sql.startswith("$$", i):
            end = sql.find("$$", i + 2)
            kind, stop = "literal", (n if end == -1 else end + 2)
        elif sql.startswith("--", i):
            end = sql.find("\n", i)
            kind, stop = "comment", (n if end == -1 else end)
        elif sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            kind, stop = "comment", (n if end == -1 else end + 2)
        else:
            i += 1
            continue

        if code_start < i:
            yield "code", sql[code_start:i]
        yield kind, sql[i:stop]
        i = code_start = stop

    if code_start < n:
        yield "code", sql[code_start:]


def convert_qmarks_to_dollars(sql: str) -> str:
    """Rewrite ``?`` placeholders into ``$1, $2, ...`` leaving literals and comments alone"""
    counter = 0

    def number(_match):
        nonlocal counter
        counter += 1
        return f"${counter}"

    parts = []
    for kind, text in _tokenize(sql):
        parts.append(re.sub(r"\?", number, text) if kind == "code" else text)
    return "".join(parts)


def strip_sql_comments(sql: str) -> str:
    return "".join(text for kind, text in _tokenize(sql) if kind != "comment")


def split_sql_statements(sql: str) -> List[str]:
    """Split a script on ``;`` outside literals, dropping comments and empty statements"""
    statements = []
    current = []
    for kind, text in _tokenize(sql):
        if kind == "comment":
            continue
        if kind == "literal":
            current.append(text)
            continue
        pieces = text.split(";")
        for piece in pieces[:-1]:
            current.append(piece)
            statements.append("".join(current))
            current = []
        current.append(pieces[-1])
    statements.append("".join(current))
    return [s.strip() for s in statements if s.strip()]


class Dialect:
    """Base adapter. Subclasses set the driver specifics."""

    name = "generic"
    # Statement emitted by the "begin" event; None means the driver begins on its own
    begin_statement: Optional[str] = None
    tuning_statements: Tuple[str, ...] = ()
    ledger_ddl = ""
    # CREATE INDEX CONCURRENTLY must run outside a transaction block
    concurrent_ddl_outside_transaction = False

    def prepare(self, sql: str, params: Optional[Sequence[Any]] = None) -> Tuple[str, tuple]:
        bound = tuple(self.adapt_param(value) for value in (params or ()))
        return self.rewrite_placeholders(sql), bound

    def rewrite_placeholders(self, sql: str) -> str:
        return sql

    def adapt_param(self, value: Any) -> Any:
        if isinstance(value, (dict, list)):
            return json.dumps(value, default=str)
        if isinstance(value, Enum):
            return value.value
        return value

    def normalize_row(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        return dict(row)

    def rewrite_migration(self, sql: str) -> str:
        return sql

    def engine_options(self, *, pool_size: int, max_overflow: int, ssl: bool) -> Dict[str, Any]:
        return {}


class SqliteDialect(Dialect):
    """Embedded single-file engine (aiosqlite driver)"""

    name = "sqlite"
    # write lock taken up front; a deferred BEGIN can hit SQLITE_BUSY_SNAPSHOT under WAL with concurrent claims
    begin_statement = "BEGIN IMMEDIATE"
    tuning_statements = (
        "PRAGMA busy_timeout = 5000",
        "PRAGMA journal_mode = WAL",
        "PRAGMA synchronous = NORMAL",
        "PRAGMA cache_size = 10000",
        "PRAGMA temp_store = MEMORY",
        "PRAGMA mmap_size = 268435456",
    )
    ledger_ddl = """
        CREATE TABLE IF NOT EXISTS _migrations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT UNIQUE NOT NULL,
            applied_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """

    _MIGRATION_REWRITES = (
        (re.compile(r"CREATE\s+EXTENSION\s+IF\s+NOT\s+EXISTS\s+[^;]+;", re.IGNORECASE), "-- extension skipped for sqlite"),
        (re.compile(r"DEFAULT\s+NOW\(\)", re.IGNORECASE), "DEFAULT CURRENT_TIMESTAMP"),
        (re.compile(r"\bTIMESTAMP\s+WITH\s+TIME\s+ZONE\b", re.IGNORECASE), "TEXT"),
        (re.compile(r"\bTIMESTAMPTZ\b", re.IGNORECASE), "TEXT"),
        (re.compile(r"\bJSONB\b", re.IGNORECASE), "TEXT"),
        (re.compile(r"\bINDEX\s+CONCURRENTLY\b", re.IGNORECASE), "INDEX"),
    )

    def adapt_param(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return to_utc(value).strftime(SQLITE_TIMESTAMP_FORMAT)
        if isinstance(value, date):
            return value.isoformat()
        return super().adapt_param(value)

    def rewrite_migration(self, sql: str) -> str:
        for pattern, replacement in self._MIGRATION_REWRITES:
            sql = pattern.sub(replacement, sql)
        return sql

    def engine_options(self, *, pool_size: int, max_overflow: int, ssl: bool) -> Dict[str, Any]:
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": 20,
            },
        }


class PostgresDialect(Dialect):
    """Client/server engine (asyncpg driver, numbered placeholders)"""

    name = "postgres"
    concurrent_ddl_outside_transaction = True
    tuning_statements = (
        "SET work_mem = '64MB'",
        "SET maintenance_work_mem = '256MB'",
        "SET effective_cache_size = '1GB'",
        "SET random_page_cost = 1.1",
    )
    ledger_ddl = """
        CREATE TABLE IF NOT EXISTS _migrations (
            id SERIAL PRIMARY KEY,
            name TEXT UNIQUE NOT NULL,
            applied_at TIMESTAMPTZ DEFAULT NOW()
        )
    """

    def rewrite_placeholders(self, sql: str) -> str:
        return convert_qmarks_to_dollars(sql)

    def adapt_param(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return to_utc(value)
        return super().adapt_param(value)

    def normalize_row(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            key: as_number(value) if isinstance(value, Decimal) else value
            for key, value in row.items()
        }

    def engine_options(self, *, pool_size: int, max_overflow: int, ssl: bool) -> Dict[str, Any]:
        options = {
            "pool_pre_ping": True,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
        }
        if ssl:
            options["connect_args"] = {"ssl": "require"}
        return options


def dialect_for_url(url: str) -> Dialect:
    if url.startswith("sqlite"):
        return SqliteDialect()
    if url.startswith("postgres"):
        return PostgresDialect()
    raise DatabaseError(f"Unsupported database URL scheme: {url.split(':', 1)[0]}")
