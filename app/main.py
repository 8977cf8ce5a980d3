import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.engine import Engine

from . import schemas
from .config import Settings, settings as default_settings
from .database import create_db_engine, create_session_factory, init_db
from .routes import pages as pages_routes
from .routes import users as users_routes

logging.basicConfig(level=default_settings.log_level.upper())
logger = logging.getLogger(__name__)

static_dir = Path(__file__).resolve().parent / "static"


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
) -> FastAPI:
    """Build the application and its single pooled engine.

    Passing `engine` lets tests run the app against their own database.
    """
    settings = settings or default_settings
    owns_engine = engine is None
    if owns_engine:
        engine = create_db_engine(
            settings.database_url,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            echo=settings.sql_echo,
        )

    app = FastAPI(
        title=settings.app_name,
        description="CRUD demo over a single User table: FastAPI + SQLAlchemy ORM.",
        version="0.1.0",
    )
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    @app.on_event("startup")
    def on_startup() -> None:
        if settings.create_tables_on_startup:
            init_db(engine)
            logger.info("Database schema ensured")
        else:
            logger.info("Skipping create_all; schema is managed by migrations")

    @app.on_event("shutdown")
    def on_shutdown() -> None:
        if owns_engine:
            engine.dispose()

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        message = schemas.format_errors(exc)
        logger.info("Rejected %s %s: %s", request.method, request.url.path, message)
        return JSONResponse({"error": message}, status_code=status.HTTP_400_BAD_REQUEST)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.mount("/static", StaticFiles(directory=static_dir), name="static")
    app.include_router(users_routes.router)
    app.include_router(pages_routes.router)
    return app


app = create_app()
