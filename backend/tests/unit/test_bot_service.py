# backend/tests/unit/test_bot_service.py
import pytest
from unittest.mock import AsyncMock, MagicMock

from riotbot.services.bot_service import (
    SERVICE_TYPE,
    RiotbotService,
    create_service,
    parse_command,
    register_service,
)


@pytest.fixture
def tutorial_service():
    service = MagicMock()
    service.start = AsyncMock(return_value="Starting tutorial")
    return service


class TestParseCommand:

    def test_splits_words_after_prefix(self):
        assert parse_command("!start now please") == ["start", "now", "please"]

    def test_quoted_arguments_stay_together(self):
        assert parse_command('!start "two words"') == ["start", "two words"]

    @pytest.mark.parametrize("text", ["", "start", "hello !start", "!", "!   "])
    def test_non_commands_return_none(self, text):
        assert parse_command(text) is None


@pytest.mark.asyncio
async def test_start_command_returns_notice(tutorial_service):
    bot = RiotbotService("@riotbot:x", tutorial_service)

    reply = await bot.dispatch("!start", "!room:x", "@u:x")

    assert reply == {"msgtype": "m.notice", "body": "Starting tutorial"}
    tutorial_service.start.assert_awaited_once_with("!room:x", "@u:x")


@pytest.mark.asyncio
async def test_command_match_ignores_case_and_extra_args(tutorial_service):
    bot = RiotbotService("@riotbot:x", tutorial_service)

    reply = await bot.dispatch("!START again", "!room:x", "@u:x")

    assert reply["body"] == "Starting tutorial"


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["hello there", "!help"])
async def test_unmatched_text_is_ignored(tutorial_service, text):
    bot = RiotbotService("@riotbot:x", tutorial_service)

    assert await bot.dispatch(text, "!room:x", "@u:x") is None
    tutorial_service.start.assert_not_awaited()


def test_riotbot_registers_itself(tutorial_service):
    service = create_service(SERVICE_TYPE, "@riotbot:x", tutorial_service)
    assert isinstance(service, RiotbotService)
    assert service.service_type == "riotbot"
    assert [c.path for c in service.commands()] == [["start"]]


def test_unknown_service_type_is_rejected():
    with pytest.raises(ValueError, match="Unknown service type"):
        create_service("echo")


def test_duplicate_registration_is_rejected():
    with pytest.raises(ValueError, match="already registered"):
        register_service(SERVICE_TYPE, RiotbotService)
