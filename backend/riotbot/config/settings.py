# /riotbot/config/settings.py

import sys
from pathlib import Path
from pydantic import field_validator
from pydantic_settings import BaseSettings

DEFAULT_FLOW_PATH = Path(__file__).with_name("tutorial.yml")


class Settings(BaseSettings):
    # Tutorial flow script (loaded once at startup)
    tutorial_flow_path: Path = DEFAULT_FLOW_PATH

    # Matrix homeserver the bot user sends through
    matrix_homeserver_url: str = "http://localhost:8008"
    matrix_access_token: str | None = None
    matrix_user_id: str | None = None
    matrix_request_timeout: float = 15.0
    matrix_max_attempts: int = 3

    # Security
    api_key: str | None = None

    # Deployment
    environment: str = "production"
    log_level: str = "INFO"

    # App Metadata
    api_version: str = "v1"

    # ---------------- Validators ---------------- #

    @field_validator("matrix_homeserver_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("matrix_max_attempts")
    @classmethod
    def attempts_must_be_positive(cls, v):
        if v < 1:
            raise ValueError("MATRIX_MAX_ATTEMPTS must be at least 1")
        return v

    @field_validator("log_level")
    @classmethod
    def normalise_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown LOG_LEVEL '{v}'")
        return level

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


def validate_environment(settings_obj: Settings):
    try:
        if settings_obj.environment == "production" and not settings_obj.matrix_access_token:
            raise ValueError("MATRIX_ACCESS_TOKEN is required in production")

        return settings_obj

    except Exception as e:
        print(f"--- [ERROR] Environment validation failed: {e}")
        sys.exit(1)


settings = Settings()
validate_environment(settings)
