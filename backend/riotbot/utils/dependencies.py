# /riotbot/utils/dependencies.py

import secrets
import structlog
from fastapi import HTTPException, Request

from riotbot.config.settings import settings
from riotbot.services.bot_service import RiotbotService
from riotbot.services.tutorial_service import TutorialService

log = structlog.get_logger(__name__)


async def verify_api_key(request: Request):
    if settings.api_key:
        provided_key = request.headers.get("X-API-KEY")
        if not (provided_key and secrets.compare_digest(provided_key, settings.api_key)):
            log.warning("Rejected request with invalid API key.", path=request.url.path)
            raise HTTPException(status_code=403, detail="Invalid or missing API key")


def get_tutorial_service(request: Request) -> TutorialService:
    return request.app.state.tutorial_service


def get_bot_service(request: Request) -> RiotbotService:
    return request.app.state.bot_service
