# /riotbot/services/flow_loader.py

import logging
from pathlib import Path
from typing import Union

import yaml
from pydantic import ValidationError

from riotbot.models.flow import TutorialFlow

logger = logging.getLogger(__name__)


class FlowLoadError(Exception):
    """Raised when the tutorial flow script is missing or malformed. Fatal at startup."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Failed to load tutorial flow from {self.path}: {reason}")


def parse_tutorial_flow(raw: object, path: Union[str, Path] = "<memory>") -> TutorialFlow:
    """Validates an already-parsed flow document into an immutable TutorialFlow."""
    if raw is None:
        raise FlowLoadError(path, "document is empty")
    if not isinstance(raw, dict):
        raise FlowLoadError(path, f"expected a mapping at the top level, got {type(raw).__name__}")
    try:
        return TutorialFlow.model_validate(raw)
    except ValidationError as e:
        raise FlowLoadError(path, str(e)) from e


def load_tutorial_flow(path: Union[str, Path]) -> TutorialFlow:
    """
    Reads and validates the tutorial flow script.

    The file is YAML (JSON documents are accepted as a subset). Any failure is
    raised as FlowLoadError; callers at startup should let it abort the process.
    """
    path = Path(path)
    logger.info(f"Loading tutorial flow from {path}")
    try:
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle)
    except FileNotFoundError as e:
        raise FlowLoadError(path, "file not found") from e
    except OSError as e:
        raise FlowLoadError(path, f"cannot read file: {e}") from e
    except yaml.YAMLError as e:
        raise FlowLoadError(path, f"invalid YAML: {e}") from e

    flow = parse_tutorial_flow(raw, path)
    logger.info(
        f"Loaded tutorial flow with {len(flow.steps)} steps "
        f"(initial delay {flow.initial_delay}ms)"
    )
    return flow
