from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backoffice_jobs.api.deps import get_database
from backoffice_jobs.api.v1 import api_v1_router
from backoffice_jobs.core import settings
from backoffice_jobs.core.logger import info
from backoffice_jobs.core.setup_logger import api_logger
from backoffice_jobs.db.database import Database, create_database
from backoffice_jobs.db.migration_runner import MigrationRunner


def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Build the HTTP app.

    With no ``database`` the lifespan connects to the configured backend and
    applies migrations; an injected one is used as is and left open.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = database is None
        db = create_database(settings) if owned else database
        if owned:
            await db.connect()
            await MigrationRunner(db, settings.migrations_path).run()
        app.state.database = db
        info(api_logger, "FastAPI application starting...")
        try:
            yield
        finally:
            if owned:
                await db.close()
            info(api_logger, "FastAPI application stopped")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        lifespan=lifespan,
    )
    if database is not None:
        app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.ALLOW_CREDENTIALS,
        allow_methods=settings.CORS_METHODS,
        allow_headers=settings.CORS_HEADERS,
    )

    app.include_router(api_v1_router, prefix=settings.API_V1_STR)

    @app.get("/")
    def health_check():
        return {"status": "ok", "message": "Application running"}

    @app.get("/db-health")
    async def db_health_check(db: Database = Depends(get_database)):
        if await db.ping():
            return {"status": "ok", "message": "Database running"}
        return {"status": "error", "message": "Database unreachable"}

    return app


app = create_app()
