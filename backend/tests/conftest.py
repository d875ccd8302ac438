import asyncio
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from dotenv import load_dotenv
from unittest.mock import AsyncMock

# Load the test environment FIRST, before any app imports, so the
# module-level Settings instance is built from it.
load_dotenv(dotenv_path=Path(__file__).resolve().parent.parent / ".env.test")

from riotbot.config.settings import settings  # noqa: E402
from riotbot.main import app  # noqa: E402
from riotbot.models.flow import TutorialFlow  # noqa: E402


@pytest.fixture
def make_flow():
    """Builds a TutorialFlow from plain step dicts."""
    def _make(steps, initial_delay=0, resources_base_url="", templates=None) -> TutorialFlow:
        return TutorialFlow.model_validate({
            "resources_base_url": resources_base_url,
            "templates": templates or {},
            "initial_delay": initial_delay,
            "tutorial": {"steps": steps},
        })
    return _make


@pytest.fixture
def sender():
    """Stands in for the Matrix client; send_message is awaited once per step."""
    mock = AsyncMock()
    mock.send_message.return_value = "$event"
    return mock


@pytest.fixture
def wait_until():
    """Polls a condition on the running loop instead of sleeping a fixed time."""
    async def _wait(predicate, timeout=1.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition was not met in time")
            await asyncio.sleep(0.001)
    return _wait


@pytest.fixture
def flow_file(tmp_path):
    path = tmp_path / "tutorial.yml"
    path.write_text(
        "resources_base_url: 'http://cdn.test/'\n"
        "templates:\n"
        "  Client: Riot\n"
        "initial_delay: 0\n"
        "tutorial:\n"
        "  steps:\n"
        "    - type: text\n"
        "      body: 'Welcome to {{.Client}}'\n"
        "      delay: 0\n"
        "    - type: image\n"
        "      body: 'Room list'\n"
        "      src: 'rooms.png'\n"
        "      delay: 60000\n"
        "    - type: notice\n"
        "      body: 'Done'\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture(scope="function")
def send_mock(mocker):
    """Replaces the real homeserver call so no request leaves the test process."""
    return mocker.patch(
        "riotbot.services.matrix_service.MatrixService.send_message",
        new_callable=AsyncMock,
        return_value="$event",
    )


@pytest.fixture(scope="function")
def test_client(mocker, flow_file, send_mock):
    """
    Provides a TestClient for API integration tests, running the real lifespan
    against a small flow file and a mocked Matrix sender.
    """
    mocker.patch.object(settings, "tutorial_flow_path", flow_file)
    mocker.patch.object(settings, "api_key", None)

    # The app's lifespan (startup/shutdown events) is managed by the TestClient
    with TestClient(app) as client:
        yield client
