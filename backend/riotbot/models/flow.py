# /riotbot/models/flow.py

from enum import Enum
from typing import Dict, List
from pydantic import BaseModel, Field, field_validator


class StepType(str, Enum):
    TEXT = "text"
    NOTICE = "notice"
    IMAGE = "image"


class TutorialStep(BaseModel):
    """
    A single message of the onboarding script.

    Delays are expressed in milliseconds, matching the flow file format.
    """
    type: StepType = Field(default=StepType.TEXT, description="Message kind; unknown kinds fall back to text")
    body: str = Field(default="", description="Template expression rendered against session variables")
    src: str = Field(default="", description="Resource path relative to resources_base_url (image steps only)")
    delay: int = Field(default=0, ge=0, description="Milliseconds to wait after sending before advancing")

    @field_validator("type", mode="before")
    @classmethod
    def coerce_unknown_type(cls, v):
        if isinstance(v, StepType):
            return v
        try:
            return StepType(str(v).strip().lower())
        except ValueError:
            return StepType.TEXT

    @field_validator("body", "src", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return "" if v is None else v

    @property
    def delay_seconds(self) -> float:
        return self.delay / 1000.0

    class Config:
        frozen = True


class TutorialScript(BaseModel):
    steps: List[TutorialStep] = Field(default_factory=list)

    class Config:
        frozen = True


class TutorialFlow(BaseModel):
    """
    Immutable onboarding script, loaded once at startup and shared by every session.
    """
    resources_base_url: str = Field(default="", description="Prefix concatenated with image step src")
    templates: Dict[str, str] = Field(default_factory=dict, description="Default render-time variables")
    initial_delay: int = Field(default=0, ge=0, description="Milliseconds before the first step")
    tutorial: TutorialScript = Field(default_factory=TutorialScript)

    @property
    def steps(self) -> List[TutorialStep]:
        return self.tutorial.steps

    @property
    def initial_delay_seconds(self) -> float:
        return self.initial_delay / 1000.0

    class Config:
        frozen = True
