import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncTransaction, create_async_engine

from backoffice_jobs.core.config import Settings
from backoffice_jobs.core.exceptions import DatabaseConnectionError, DatabaseError
from backoffice_jobs.core.logger import debug, info, warning
from backoffice_jobs.core.setup_logger import db_logger
from backoffice_jobs.db.dialects import Dialect, as_number, dialect_for_url, split_sql_statements

Params = Optional[Sequence[Any]]


def _wrap_error(exc: SQLAlchemyError, sql: Optional[str] = None) -> DatabaseError:
    """Keep the backend's own message rather than SQLAlchemy's decorated one"""
    original = getattr(exc, "orig", None)
    return DatabaseError(str(original or exc), statement=sql, original=exc)


class QueryExecutor:
    """
    Query operations shared by the database and by an open transaction.

    Subclasses provide ``_connection()``, an async context manager yielding the
    SQLAlchemy connection to run on.
    """

    dialect: Dialect

    def _connection(self):
        raise NotImplementedError

    async def _execute(self, conn: AsyncConnection, sql: str, params: Params):
        driver_sql, bound = self.dialect.prepare(sql, params)
        try:
            return await conn.exec_driver_sql(driver_sql, bound)
        except SQLAlchemyError as e:
            raise _wrap_error(e, sql) from e

    async def all(self, sql: str, params: Params = None) -> List[Dict[str, Any]]:
        """Return every row as a dict"""
        async with self._connection() as conn:
            result = await self._execute(conn, sql, params)
            return [self.dialect.normalize_row(row) for row in result.mappings().all()]

    async def get(self, sql: str, params: Params = None) -> Optional[Dict[str, Any]]:
        """Return the first row or None"""
        async with self._connection() as conn:
            result = await self._execute(conn, sql, params)
            row = result.mappings().first()
            return self.dialect.normalize_row(row) if row is not None else None

    async def run(self, sql: str, params: Params = None) -> int:
        """Execute a write and return the affected row count"""
        async with self._connection() as conn:
            result = await self._execute(conn, sql, params)
            return max(as_number(result.rowcount), 0)

    async def count(self, sql: str, params: Params = None, column: str = "count") -> int:
        row = await self.get(sql, params)
        return int(as_number(row.get(column) if row else None))

    async def exec(self, sql: str) -> None:
        """Run one or more raw statements with no parameter binding"""
        async with self._connection() as conn:
            for statement in split_sql_statements(sql):
                try:
                    await conn.exec_driver_sql(statement)
                except SQLAlchemyError as e:
                    raise _wrap_error(e, statement) from e


class Transaction(QueryExecutor):
    """An explicit transaction; every query runs on the same connection until commit/rollback"""

    def __init__(self, conn: AsyncConnection, trans: AsyncTransaction, dialect: Dialect):
        self._conn = conn
        self._trans = trans
        self.dialect = dialect
        self.closed = False

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[AsyncConnection]:
        if self.closed:
            raise DatabaseError("Transaction already closed")
        yield self._conn

    async def commit(self) -> None:
        try:
            await self._trans.commit()
        except SQLAlchemyError as e:
            raise _wrap_error(e, "COMMIT") from e
        finally:
            await self._close()

    async def rollback(self) -> None:
        try:
            await self._trans.rollback()
        except SQLAlchemyError as e:
            raise _wrap_error(e, "ROLLBACK") from e
        finally:
            await self._close()

    async def _close(self) -> None:
        if not self.closed:
            self.closed = True
            await self._conn.close()


class Database(QueryExecutor):
    """
    Dialect-neutral persistence port.

    Construct once per process, ``await connect()``, and pass the instance to
    whatever needs the store. Each query outside ``begin()``/``transaction()``
    runs in its own short transaction.
    """

    def __init__(
            self,
            url: str,
            *,
            dialect: Optional[Dialect] = None,
            echo: bool = False,
            pool_size: int = 5,
            max_overflow: int = 10,
            ssl: bool = False,
            connect_retries: int = 5,
            retry_delay: float = 3.0,
    ):
        self.url = url
        self.dialect = dialect or dialect_for_url(url)
        self.echo = echo
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.ssl = ssl
        self.connect_retries = max(connect_retries, 1)
        self.retry_delay = retry_delay
        self._engine: Optional[AsyncEngine] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise DatabaseError("Database is not connected")
        return self._engine

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    def _create_engine(self) -> AsyncEngine:
        engine = create_async_engine(
            self.url,
            echo=self.echo,
            **self.dialect.engine_options(
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                ssl=self.ssl,
            ),
        )
        dialect = self.dialect

        @event.listens_for(engine.sync_engine, "connect")
        def on_connect(dbapi_connection, _connection_record):
            if dialect.begin_statement:
                # the driver's implicit BEGIN skips DDL; we emit our own in on_begin
                dbapi_connection.isolation_level = None
            apply_tuning(dbapi_connection, dialect)

        if dialect.begin_statement:
            @event.listens_for(engine.sync_engine, "begin")
            def on_begin(conn):
                conn.exec_driver_sql(dialect.begin_statement)

        return engine

    async def connect(self) -> None:
        """Connect with retry. Raises DatabaseConnectionError when the backend stays unreachable."""
        if self._engine is not None:
            return

        for attempt in range(1, self.connect_retries + 1):
            engine = self._create_engine()
            try:
                async with engine.connect() as conn:
                    await conn.exec_driver_sql("SELECT 1")
                self._engine = engine
                info(db_logger, "Database connection initialized", context={
                    "dialect": self.dialect.name,
                    "attempt": attempt,
                })
                return
            except Exception as e:
                await engine.dispose()
                if attempt == self.connect_retries:
                    raise DatabaseConnectionError(
                        f"Could not connect to {self.dialect.name} database: {e}",
                        original=e,
                    ) from e
                warning(db_logger, f"Database connection attempt {attempt} failed, retrying in {self.retry_delay} seconds...", context={
                    "dialect": self.dialect.name,
                    "error": str(e),
                })
                await asyncio.sleep(self.retry_delay)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            info(db_logger, "Database connections closed")

    async def ping(self) -> bool:
        try:
            return await self.get("SELECT 1 AS ok") is not None
        except DatabaseError:
            return False

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[AsyncConnection]:
        try:
            async with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            raise _wrap_error(e) from e

    async def exec_autocommit(self, sql: str) -> None:
        """Run raw statement(s) outside any transaction block (e.g. CREATE INDEX CONCURRENTLY)"""
        try:
            async with self.engine.connect() as conn:
                conn = await conn.execution_options(isolation_level="AUTOCOMMIT")
                for statement in split_sql_statements(sql):
                    try:
                        await conn.exec_driver_sql(statement)
                    except SQLAlchemyError as e:
                        raise _wrap_error(e, statement) from e
        except SQLAlchemyError as e:
            raise _wrap_error(e) from e

    async def begin(self) -> Transaction:
        """Open an explicit transaction; the caller must commit() or rollback()"""
        conn = await self.engine.connect()
        try:
            trans = await conn.begin()
        except SQLAlchemyError as e:
            await conn.close()
            raise _wrap_error(e, "BEGIN") from e
        return Transaction(conn, trans, self.dialect)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """Commit on success, roll back on any exception"""
        tx = await self.begin()
        try:
            yield tx
        except BaseException:
            await tx.rollback()
            raise
        else:
            await tx.commit()


def apply_tuning(dbapi_connection, dialect: Dialect) -> None:
    """Best-effort per-connection tuning; a failing statement is logged and skipped"""
    for statement in dialect.tuning_statements:
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute(statement)
            dbapi_connection.commit()
        except Exception as e:
            dbapi_connection.rollback()
            warning(db_logger, "Database tuning statement skipped", context={
                "dialect": dialect.name,
                "statement": statement,
                "error": str(e),
            })
        finally:
            cursor.close()
    debug(db_logger, "Database tuning applied", context={"dialect": dialect.name})


def create_database(settings: Settings) -> Database:
    """Build the adapter the settings point at (postgres URL, else the embedded file)"""
    if not settings.is_postgres:
        Path(settings.SQLITE_PATH).parent.mkdir(parents=True, exist_ok=True)

    return Database(
        settings.async_database_url,
        echo=settings.DEBUG,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        ssl=settings.DATABASE_SSL,
        connect_retries=settings.DB_CONNECT_RETRIES,
        retry_delay=settings.DB_CONNECT_RETRY_DELAY,
    )
