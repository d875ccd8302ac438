# /riotbot/routes/commands.py

import structlog
from fastapi import APIRouter, Depends, HTTPException

from riotbot.models.api import CommandRequest, CommandResponse, TutorialSessionStatus
from riotbot.services.bot_service import RiotbotService
from riotbot.services.tutorial_service import TutorialService
from riotbot.utils.dependencies import get_bot_service, get_tutorial_service, verify_api_key
from riotbot.utils.metrics import response_time_histogram

# Entry points the chat host calls when a user types a bot command, plus a
# read-only view of a user's tutorial progress.

router = APIRouter(
    tags=["Commands"],
    dependencies=[Depends(verify_api_key)]
)

log = structlog.get_logger(__name__)


@router.post("/commands", response_model=CommandResponse)
async def handle_command(
    command: CommandRequest,
    bot_service: RiotbotService = Depends(get_bot_service)
):
    """Dispatches a chat command (e.g. ``!start``) and returns the notice to post back."""
    with response_time_histogram.labels(endpoint="commands").time():
        log.info("Command received.", room_id=command.room_id, user_id=command.user_id)
        reply = await bot_service.dispatch(command.body, command.room_id, command.user_id)
        if reply is None:
            raise HTTPException(status_code=404, detail="Unknown command")
        return CommandResponse(**reply)


@router.get("/tutorials/{user_id}", response_model=TutorialSessionStatus)
async def get_tutorial_status(
    user_id: str,
    tutorial_service: TutorialService = Depends(get_tutorial_service)
):
    """Returns the progress of the user's tutorial session."""
    session = tutorial_service.get_session(user_id)
    if session is None:
        raise HTTPException(status_code=404, detail="No tutorial for this user")
    return TutorialSessionStatus(**session.snapshot())
