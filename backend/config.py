"""Configuration management using Pydantic settings."""

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings

# Find .env file - check current dir, then parent (for when running from backend/)
_env_file = Path(".env")
if not _env_file.exists():
    _env_file = Path("../.env")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Redis (thread registry, event dedup, Celery broker)
    REDIS_URL: str = "redis://localhost:6379"
    REDIS_KEY_PREFIX: str = "gptslack"

    # Parameter store (AWS Parameters and Secrets extension compatible)
    PARAMETER_NAME_PREFIX: str = "/gpt-slack"
    PARAMETER_STORE_ENDPOINT: str = "http://localhost:2773"
    AWS_SESSION_TOKEN: Optional[str] = None

    # Conversation policy
    THREAD_REGISTRY_TTL_SECONDS: int = 3 * 60 * 60
    RUN_POLL_INTERVAL_SECONDS: float = 1.0

    # Worker wall-clock budget for a single mention
    CHAT_TASK_TIME_LIMIT_SECONDS: int = 15 * 60

    # App
    ENVIRONMENT: str = "development"

    class Config:
        env_file = str(_env_file)
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars from shared .env files


settings = Settings()

EXPECTED_ENV_VARS: tuple[str, ...] = (
    "REDIS_URL",
    "PARAMETER_NAME_PREFIX",
    "PARAMETER_STORE_ENDPOINT",
    "AWS_SESSION_TOKEN",
    "ENVIRONMENT",
)


def log_missing_env_vars(logger: logging.Logger) -> None:
    """Log debug warnings for expected environment variables that are unset."""
    for var_name in EXPECTED_ENV_VARS:
        value = os.environ.get(var_name)
        if value is None or value == "":
            logger.debug(
                "Warning: expected environment variable %s is not set.",
                var_name,
            )


# Logical parameter name -> path below PARAMETER_NAME_PREFIX
PARAMETER_PATHS: dict[str, str] = {
    "slackBotToken": "botToken",
    "githubAppPrivateKey": "githubApp/privateKey",
    "githubAppId": "githubApp/appId",
    "openAIApiKey": "openai/apiKey",
    "openAIAssistantId": "assistantId",
    "openAIModel": "model",
    "assistantInstruction": "instruction",
    "assistantName": "name",
}


def get_parameter_name(name: str, prefix: str | None = None) -> str:
    """Get the fully qualified parameter name for a logical name."""
    path = PARAMETER_PATHS.get(name)
    if not path:
        raise ValueError(f"Unknown parameter: {name}")
    return f"{prefix if prefix is not None else settings.PARAMETER_NAME_PREFIX}/{path}"


def get_redis_connection_kwargs() -> dict[str, object]:
    """Connection options shared by every Redis client in the app."""
    return {
        "decode_responses": True,
        "socket_connect_timeout": 5,
        "socket_timeout": 5,
    }
