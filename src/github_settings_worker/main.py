"""GitHub settings worker entry point.

Initializes the FastAPI host with:
- structlog logging configured from settings
- the ComplianceWorker wired to OPA and the evidence collector
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from github_settings_worker import __version__
from github_settings_worker.adapters.opa_client import OPAClient
from github_settings_worker.api.router import router
from github_settings_worker.core.worker import ComplianceWorker, create_default_worker
from github_settings_worker.observability import configure_logging, get_logger
from github_settings_worker.settings import Settings

logger = get_logger(__name__)


def create_app(settings: Settings | None = None, worker: ComplianceWorker | None = None) -> FastAPI:
    """Build the worker host application.

    Args:
        settings: Process-wide settings; read from the environment when None.
        worker: Pre-built worker; the default OPA-backed worker when None.

    Returns:
        The FastAPI application.
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Verify OPA connectivity on startup and log shutdown."""
        opa_client = OPAClient(
            opa_url=settings.opa_url,
            eval_timeout_ms=settings.policy_eval_timeout_ms,
        )
        if not await opa_client.health_check():
            logger.warning(
                "OPA is not reachable at startup, policy evaluation will fail until it is available",
                opa_url=settings.opa_url,
            )
        logger.info("Worker host startup complete", service=settings.service_name)

        yield

        logger.info("Worker host shutdown complete", service=settings.service_name)

    app = FastAPI(title=settings.service_name, version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.worker = worker or create_default_worker(settings)
    app.include_router(router, prefix="/v1")
    return app


def run() -> None:
    """Configure logging and serve the worker host with uvicorn."""
    settings = Settings()
    configure_logging(settings.log_level, settings.log_json)
    logger.debug("initiating plugin", service=settings.service_name)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)
