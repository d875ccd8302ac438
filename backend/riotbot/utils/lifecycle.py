# /riotbot/utils/lifecycle.py

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from riotbot.config.settings import settings
from riotbot.services.bot_service import SERVICE_TYPE, create_service
from riotbot.services.flow_loader import FlowLoadError, load_tutorial_flow
from riotbot.services.matrix_service import MatrixService
from riotbot.services.tutorial_service import TutorialService
from riotbot.utils.logging import setup_logging

# This file manages the application's lifespan: the tutorial flow is loaded
# once at startup (a bad script aborts startup) and pending tutorial steps are
# cancelled on shutdown.

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    setup_logging()

    logger.info("Application starting up...")

    try:
        flow = load_tutorial_flow(settings.tutorial_flow_path)
    except FlowLoadError as e:
        logger.critical(f"Cannot start without a valid tutorial flow: {e}")
        raise

    matrix_service = MatrixService(
        settings.matrix_homeserver_url,
        settings.matrix_access_token,
        user_id=settings.matrix_user_id,
        timeout=settings.matrix_request_timeout,
        max_attempts=settings.matrix_max_attempts,
    )
    tutorial_service = TutorialService(flow, matrix_service)

    app.state.matrix_service = matrix_service
    app.state.tutorial_service = tutorial_service
    app.state.bot_service = create_service(SERVICE_TYPE, settings.matrix_user_id or SERVICE_TYPE, tutorial_service)

    logger.info("Application startup complete. Ready to accept commands.")

    yield  # Application is now running

    logger.info("Application shutting down...")

    await tutorial_service.shutdown()
    await matrix_service.aclose()
