# /riotbot/services/bot_service.py

import logging
import shlex
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from riotbot.services.tutorial_service import TutorialService

logger = logging.getLogger(__name__)

SERVICE_TYPE = "riotbot"
COMMAND_PREFIX = "!"

CommandHandler = Callable[[str, str, List[str]], Awaitable[Dict[str, Any]]]
ServiceFactory = Callable[..., "RiotbotService"]


@dataclass(frozen=True)
class Command:
    """A chat command such as ``!start``; path holds the words after the prefix."""

    path: List[str]
    handler: CommandHandler

    def matches(self, words: List[str]) -> bool:
        return [w.lower() for w in words[: len(self.path)]] == self.path


def parse_command(text: str) -> Optional[List[str]]:
    """Splits ``!start arg1 arg2`` into its words. Returns None for non-command text."""
    if not text or not text.startswith(COMMAND_PREFIX):
        return None
    try:
        words = shlex.split(text[len(COMMAND_PREFIX):])
    except ValueError:
        words = text[len(COMMAND_PREFIX):].split()
    return words or None


class RiotbotService:
    """The onboarding capability exposed to the host bot framework."""

    service_type = SERVICE_TYPE

    def __init__(self, service_id: str, tutorial_service: TutorialService):
        self.service_id = service_id
        self.tutorial_service = tutorial_service

    def commands(self) -> List[Command]:
        async def start(room_id: str, user_id: str, args: List[str]) -> Dict[str, Any]:
            response = await self.tutorial_service.start(room_id, user_id)
            return {"msgtype": "m.notice", "body": response}

        return [Command(path=["start"], handler=start)]

    async def dispatch(self, text: str, room_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Routes a chat message to the matching command. Returns None if nothing matched."""
        words = parse_command(text)
        if words is None:
            return None

        best: Optional[Command] = None
        for command in self.commands():
            if command.matches(words) and (best is None or len(command.path) > len(best.path)):
                best = command
        if best is None:
            logger.info(f"Unknown command '{words[0]}' from {user_id} in {room_id}")
            return None

        args = words[len(best.path):]
        logger.info(f"Dispatching command {best.path} for {user_id} in {room_id}")
        return await best.handler(room_id, user_id, args)


_SERVICE_FACTORIES: Dict[str, ServiceFactory] = {}


def register_service(service_type: str, factory: ServiceFactory) -> None:
    if service_type in _SERVICE_FACTORIES:
        raise ValueError(f"Service type '{service_type}' is already registered")
    _SERVICE_FACTORIES[service_type] = factory


def create_service(service_type: str, *args: Any, **kwargs: Any) -> RiotbotService:
    try:
        factory = _SERVICE_FACTORIES[service_type]
    except KeyError:
        raise ValueError(f"Unknown service type '{service_type}'") from None
    return factory(*args, **kwargs)


register_service(SERVICE_TYPE, RiotbotService)
