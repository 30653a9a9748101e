"""Main entry point for Hodor."""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from hodor import __version__
from hodor.api.health import router as health_router
from hodor.api.hook import init_deployer, router as hook_router
from hodor.api.middleware import (
    setup_error_handling,
    setup_logging_middleware,
    setup_metrics_middleware,
)
from hodor.core.config import ReleaseConfig, Settings
from hodor.deploy.engine import FileDeployer
from hodor.deploy.fetch import DefaultTransport, HttpxTransport, S3Transport
from hodor.deploy.models import EngineState
from hodor.deploy.store import JobStore, SqliteStore
from hodor.utils.logging import setup_logging

logger = structlog.get_logger()


def build_deployer(settings: Settings) -> FileDeployer:
    """Load the release mapping, open the status database and wire the engine."""
    config = ReleaseConfig.load(settings.config_path)
    logger.info("Release config loaded", path=settings.config_path, releases=sorted(config.entries))

    store = JobStore(SqliteStore(settings.db_path))
    max_size_bytes = settings.max_release_size_mb * 1024 * 1024
    transport = DefaultTransport(
        http=HttpxTransport(timeout_sec=settings.fetch_timeout_seconds, max_size_bytes=max_size_bytes),
        s3=S3Transport(
            max_size_bytes=max_size_bytes,
            region_name=settings.aws_region,
            endpoint_url=settings.s3_endpoint_url,
        ),
    )
    return FileDeployer(store, config, transport, queue_size=settings.queue_size)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager: runs the engine worker alongside the server."""
    settings: Settings = app.state.settings
    logger.info(
        "Starting Hodor",
        version=__version__,
        config=settings.config_path,
        db=settings.db_path,
        listen=settings.listen,
    )

    owns_deployer = app.state.deployer is None
    deployer = app.state.deployer if not owns_deployer else build_deployer(settings)
    app.state.deployer = init_deployer(deployer)

    worker = None
    if deployer.state is EngineState.NOT_STARTED:
        worker = deployer.run_in_thread()

    yield

    logger.info("Shutting down Hodor")
    if deployer.state is EngineState.RUNNING:
        deployer.stop()
    if worker is not None:
        worker.join(timeout=settings.shutdown_timeout_seconds)
        if worker.is_alive():
            logger.warning("Deployer still busy with a job at shutdown")
    if owns_deployer:
        deployer.store.close()
        app.state.deployer = None


def create_app(settings: Settings | None = None, deployer: Optional[FileDeployer] = None) -> FastAPI:
    """Create FastAPI application.

    When ``deployer`` is given it is used as is, otherwise one is built from
    ``settings`` at startup.
    """
    if settings is None:
        settings = Settings()

    setup_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Hodor",
        version=__version__,
        description="Hookable deployment of releases",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.deployer = deployer
    if deployer is not None:
        init_deployer(deployer)

    setup_error_handling(app)
    setup_logging_middleware(app)
    setup_metrics_middleware(app)

    app.include_router(hook_router, tags=["hook"])
    app.include_router(health_router, tags=["runtime"])

    if settings.metrics_enabled:
        app.mount("/metrics", make_asgi_app())

    return app


def run(settings: Settings | None = None) -> None:
    """Run the HTTP server and the deployment engine until interrupted."""
    if settings is None:
        settings = Settings()

    setup_logging(settings.log_level, settings.log_format)

    # Built up front so a bad config fails before the server starts listening
    deployer = build_deployer(settings)

    config = uvicorn.Config(
        create_app(settings, deployer=deployer),
        host=settings.host,
        port=settings.port,
        log_config=None,  # We handle logging ourselves
        access_log=False,  # Handled by middleware
    )

    server = uvicorn.Server(config)
    try:
        server.run()
    finally:
        deployer.store.close()
    logger.info("done")


if __name__ == "__main__":
    run()
