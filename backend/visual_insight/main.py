"""Main FastAPI application entry point."""

import asyncio
import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from visual_insight.config import config
from visual_insight.routes import analysis, datasets, results
from visual_insight.routes import config as config_routes
from visual_insight.services.analysis.pipeline import get_pipeline

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

# Set specific loggers to appropriate levels
logging.getLogger("visual_insight").setLevel(logging.INFO)
logging.getLogger("langchain").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("matplotlib").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def run_retention_sweep() -> None:
    """Delete expired charts and orphaned sandbox files once."""
    storage = config.get_storage_config()
    max_age = timedelta(hours=storage["retention_hours"])
    pipeline = get_pipeline()
    removed = pipeline.store.sweep(max_age)
    stale = pipeline.runner.sweep_stale_files(max_age)
    logger.debug(f"Retention sweep: {len(removed)} charts, {len(stale)} temp files removed")


async def _sweep_expired_artifacts():
    """Background task running the retention sweep on a fixed interval."""
    interval = config.get_storage_config()["sweep_interval_seconds"]

    while True:
        await asyncio.sleep(interval)
        try:
            run_retention_sweep()
        except Exception as e:
            logger.error(f"Retention sweep failed: {e}", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan handler."""
    app_config = config.get_app_config()
    logger.info(f"Starting {app_config['name']} {app_config['version']}...")

    paths = config.get_paths()
    for name, path in paths.items():
        logger.info(f"  {name}: {path.resolve()}")

    # Sweep once at startup, then periodically
    run_retention_sweep()
    sweep_task = asyncio.create_task(_sweep_expired_artifacts())
    logger.info("Started artifact retention background task")

    yield

    logger.info(f"Shutting down {app_config['name']}...")
    sweep_task.cancel()
    try:
        await sweep_task
    except asyncio.CancelledError:
        pass


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app_config = config.get_app_config()

    app = FastAPI(
        title=app_config["name"],
        version=app_config["version"],
        description="Natural-language chart generation over uploaded datasets",
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:5173", "*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(datasets.router, prefix="/api")
    app.include_router(analysis.router, prefix="/api")
    app.include_router(results.router, prefix="/api")
    app.include_router(config_routes.router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": app_config["name"],
            "version": app_config["version"],
            "docs": "/docs",
        }

    @app.get("/health")
    async def health():
        """Simple health check."""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "visual_insight.main:app",
        host=config.settings.host,
        port=config.settings.port,
        reload=config.settings.debug,
    )
