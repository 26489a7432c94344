import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from filedrop import __version__
from filedrop.core.config import Settings, settings as default_settings
from filedrop.core.database import create_engine, create_session_factory, init_models
from filedrop.core.errors import AuthRequiredError, FileDropError
from filedrop.monitoring.setup import configure_logging, setup_monitoring
from filedrop.routes import admin, auth, links, public, uploads
from filedrop.services.admins import ensure_default_admin
from filedrop.services.sessions import SessionStore
from filedrop.services.storage import ensure_upload_root, is_writable_dir
from filedrop.tasks.cleanup import run_orphan_sweeper
from filedrop.ui import pages
from filedrop.utils.dates import utcnow

logger = logging.getLogger("filedrop")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    engine = app.state.engine
    configure_logging(settings.LOG_LEVEL)

    upload_root = ensure_upload_root(settings.UPLOAD_DIR)
    logger.info("Upload directory: %s", upload_root.resolve())

    try:
        await init_models(engine)
        async with app.state.session_factory() as db:
            await ensure_default_admin(db, settings)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    cleanup_task = None
    if settings.CLEANUP_INTERVAL_SECONDS > 0:
        cleanup_task = asyncio.create_task(run_orphan_sweeper(app.state.session_factory, settings))
        logger.info("Background orphan sweep started")

    yield

    if cleanup_task is not None:
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            logger.info("Orphan sweep task cancelled")
    await engine.dispose()
    logger.info("Application shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title="FileDrop",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )
    app.state.settings = settings
    app.state.engine = create_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)
    app.state.session_factory = create_session_factory(app.state.engine)
    app.state.sessions = SessionStore()

    @app.exception_handler(AuthRequiredError)
    async def redirect_to_login(request: Request, exc: AuthRequiredError):
        return RedirectResponse("/login", status_code=exc.status_code)

    @app.exception_handler(FileDropError)
    async def render_error(request: Request, exc: FileDropError):
        return HTMLResponse(pages.error_page(exc.status_code, exc.message), status_code=exc.status_code)

    @app.exception_handler(SQLAlchemyError)
    async def database_error(request: Request, exc: SQLAlchemyError):
        logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
        return HTMLResponse(pages.error_page(500, "Database error"), status_code=500)

    app.include_router(public)
    app.include_router(auth)
    app.include_router(admin)
    app.include_router(links)
    app.include_router(uploads)

    @app.get("/health")
    async def health_check():
        try:
            async with app.state.session_factory() as db:
                await db.execute(text("SELECT 1"))
            db_status = "ok"
        except Exception as e:
            db_status = f"error: {str(e)}"

        storage_status = "ok" if is_writable_dir(settings.UPLOAD_DIR) else "error: upload directory not writable"

        return {
            "status": "running",
            "timestamp": utcnow().isoformat(),
            "database": db_status,
            "storage": storage_status,
        }

    setup_monitoring(app, max_body=settings.MAX_REQUEST_BODY, expose_metrics=settings.METRICS_ENABLED)
    return app


app = create_app()


def run():
    uvicorn.run(
        app,
        host=default_settings.HOST,
        port=default_settings.PORT,
        log_level=default_settings.LOG_LEVEL.lower(),
        timeout_keep_alive=60,
    )


if __name__ == "__main__":
    run()
