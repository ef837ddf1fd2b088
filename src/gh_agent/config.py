"""Client configuration."""

import logging
import os
import subprocess
from typing import Any

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_HOST = "api.github.com"
DEFAULT_PORT = 443
DEFAULT_TIMEOUT = 30.0  # seconds
DEFAULT_MAX_RETRIES = 1  # single attempt

REQUIRED_FIELDS = ("owner", "repository", "api_key")


def get_token_from_gh_cli() -> str | None:
    """
    Get GitHub token from gh cli.

    Returns:
        Token string or None if gh cli not available/authenticated
    """
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0 and result.stdout.strip():
            logger.info("Using token from gh cli")
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError) as e:
        logger.debug("gh cli not available: %s", e)
    return None


def get_token(token: str | None = None, use_gh_cli: bool = False) -> str | None:
    """
    Get GitHub token from various sources.

    Priority:
    1. Explicitly provided token
    2. Environment variable GH_TOKEN / GITHUB_TOKEN
    3. gh cli (`gh auth token`) - only if use_gh_cli=True
    """
    if token:
        logger.debug("Using explicitly provided token")
        return token

    env_token = os.environ.get("GH_TOKEN") or os.environ.get("GITHUB_TOKEN")
    if env_token:
        logger.info("Using token from environment variable")
        return env_token

    if use_gh_cli:
        return get_token_from_gh_cli()

    return None


class ClientConfig(BaseModel):
    """Settings identifying the repository and how to reach the API."""

    model_config = ConfigDict(frozen=True)

    owner: str
    repository: str
    api_key: str
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    logs: bool = False
    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error["loc"])
            raise ConfigurationError(f"Invalid '{field}' field: {error['msg']}") from e

    @model_validator(mode="before")
    @classmethod
    def check_required(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            raise ConfigurationError("Client configuration must be a mapping")
        for field in REQUIRED_FIELDS:
            value = data.get(field)
            if not value or not isinstance(value, str):
                raise ConfigurationError(f"Missing '{field}' field")
        # Optional settings passed explicitly as None fall back to defaults
        return {key: value for key, value in data.items() if value is not None}

    @classmethod
    def from_env(
        cls,
        token: str | None = None,
        use_gh_cli: bool = False,
        **overrides: Any,
    ) -> "ClientConfig":
        """
        Build a configuration from the environment.

        A ``.env`` file in the working directory is loaded first. Recognised
        variables are GITHUB_OWNER, GITHUB_REPOSITORY (``name`` or
        ``owner/name``), GH_TOKEN / GITHUB_TOKEN, GITHUB_API_HOST and
        GITHUB_API_PORT. Keyword overrides win over the environment.
        """
        load_dotenv(find_dotenv(usecwd=True))

        data: dict[str, Any] = {
            "owner": os.environ.get("GITHUB_OWNER"),
            "repository": os.environ.get("GITHUB_REPOSITORY"),
            "api_key": get_token(token, use_gh_cli=use_gh_cli),
            "host": os.environ.get("GITHUB_API_HOST"),
            "port": os.environ.get("GITHUB_API_PORT"),
        }
        data.update({key: value for key, value in overrides.items() if value is not None})

        repository = data["repository"]
        if isinstance(repository, str) and "/" in repository:
            repo_owner, data["repository"] = repository.split("/", 1)
            data["owner"] = data["owner"] or repo_owner

        logger.debug("Configuration loaded for %s/%s", data["owner"], data["repository"])
        return cls(**data)
