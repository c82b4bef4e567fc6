"""
Startup and shutdown for the POS API process.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from shared.config.logging import pos_api_logger as logger, setup_logging
from shared.config.settings import settings
from shared.infrastructure.db import engine
from pos_api.models import Base, SessionTotalsTrigger


def _check_configuration() -> None:
    problems = settings.validate_production_secrets()
    for problem in problems:
        logger.error("Configuration error", error=problem)
    if problems and settings.environment == "production":
        raise RuntimeError("Refusing to start: " + "; ".join(problems))
    if problems:
        logger.warning("Running with development defaults")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    _check_configuration()

    logger.info(
        "Starting POS API",
        port=settings.rest_api_port,
        env=settings.environment,
        tax_rate_bps=settings.tax_rate_bps,
    )
    Base.metadata.create_all(bind=engine)

    # Tab totals follow their orders on every flush
    SessionTotalsTrigger.register()
    logger.info("Session totals trigger registered")

    yield

    logger.info("Shutting down POS API")
    SessionTotalsTrigger.unregister()
    engine.dispose()
