import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from multiblog.config import Settings, settings as default_settings
from multiblog.container import Platform
from multiblog.exception_handlers import register_exception_handlers
from multiblog.middleware.logging import AccessLogMiddleware, setup_structured_logging
from multiblog.routes import blog, signup, tenants
from multiblog.scheduler import build_scheduler

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    platform: Platform | None = None,
    run_scheduler: bool = True,
    configure_logging: bool = True,
) -> FastAPI:
    """Create the FastAPI application."""
    settings = settings or default_settings
    platform = platform or Platform.build(settings)

    if configure_logging:
        setup_structured_logging(log_level=settings.log_level, json_format=settings.log_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting up the application...")
        if settings.debug:
            await platform.create_schema()
            logger.info("Database tables created (if not existing).")

        scheduler = None
        if run_scheduler:
            scheduler = build_scheduler(platform.store, settings.session_sweep_interval_seconds)
            scheduler.start()

        yield

        logger.info("Shutting down the application...")
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        await platform.drain()
        await platform.engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        description="Multi-tenant blogging platform",
        debug=settings.debug,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.platform = platform

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(AccessLogMiddleware)

    register_exception_handlers(app)

    app.include_router(signup.router, prefix="/signup", tags=["Signup"])
    app.include_router(tenants.router, prefix="/admin", tags=["Tenants"])
    app.include_router(blog.router, tags=["Blog"])

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "version": settings.app_version}

    if settings.debug:
        logger.info(f"Running in {settings.environment} mode")
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    return app
