"""Tests for client configuration."""

import pytest
from pydantic import ValidationError

from gh_agent import ClientConfig, ConfigurationError, get_token
from gh_agent.config import DEFAULT_MAX_RETRIES

from conftest import API_KEY, OWNER, REPOSITORY


def test_defaults():
    config = ClientConfig(owner=OWNER, repository=REPOSITORY, api_key=API_KEY)

    assert config.owner == OWNER
    assert config.repository == REPOSITORY
    assert config.api_key == API_KEY
    assert config.host == "api.github.com"
    assert config.port == 443
    assert config.logs is False
    assert config.max_retries == DEFAULT_MAX_RETRIES


@pytest.mark.parametrize("field", ["owner", "repository", "api_key"])
@pytest.mark.parametrize("value", [None, "", 42])
def test_required_fields(field, value):
    data = {"owner": OWNER, "repository": REPOSITORY, "api_key": API_KEY, field: value}
    with pytest.raises(ConfigurationError, match=f"Missing '{field}' field"):
        ClientConfig(**data)


def test_missing_field():
    with pytest.raises(ConfigurationError, match="Missing 'api_key' field"):
        ClientConfig(owner=OWNER, repository=REPOSITORY)


def test_none_optional_uses_default():
    config = ClientConfig(owner=OWNER, repository=REPOSITORY, api_key=API_KEY, host=None, port=None)
    assert config.host == "api.github.com"
    assert config.port == 443


@pytest.mark.parametrize("field,value", [("port", "x"), ("timeout", "slow"), ("logs", "maybe")])
def test_invalid_optional_field(field, value):
    data = {"owner": OWNER, "repository": REPOSITORY, "api_key": API_KEY, field: value}
    with pytest.raises(ConfigurationError, match=f"Invalid '{field}' field"):
        ClientConfig(**data)


def test_from_env_invalid_port(monkeypatch):
    monkeypatch.setenv("GITHUB_REPOSITORY", f"{OWNER}/{REPOSITORY}")
    monkeypatch.setenv("GITHUB_TOKEN", API_KEY)
    monkeypatch.setenv("GITHUB_API_PORT", "abc")

    with pytest.raises(ConfigurationError, match="Invalid 'port' field"):
        ClientConfig.from_env()


def test_frozen():
    config = ClientConfig(owner=OWNER, repository=REPOSITORY, api_key=API_KEY)
    with pytest.raises(ValidationError):
        config.owner = "other"


def test_from_env(monkeypatch):
    monkeypatch.setenv("GITHUB_REPOSITORY", f"{OWNER}/{REPOSITORY}")
    monkeypatch.setenv("GITHUB_TOKEN", API_KEY)
    monkeypatch.setenv("GITHUB_API_HOST", "github.example.com")
    monkeypatch.setenv("GITHUB_API_PORT", "8443")

    config = ClientConfig.from_env()

    assert config.owner == OWNER
    assert config.repository == REPOSITORY
    assert config.api_key == API_KEY
    assert config.host == "github.example.com"
    assert config.port == 8443


def test_from_env_overrides(monkeypatch):
    monkeypatch.setenv("GITHUB_OWNER", "someone")
    monkeypatch.setenv("GITHUB_REPOSITORY", "elsewhere")

    config = ClientConfig.from_env(token="t0k3n", owner=OWNER, repository=REPOSITORY, logs=True)

    assert (config.owner, config.repository, config.api_key) == (OWNER, REPOSITORY, "t0k3n")
    assert config.logs is True


def test_from_dotenv_file(tmp_path):
    (tmp_path / ".env").write_text(
        f"GITHUB_OWNER={OWNER}\nGITHUB_REPOSITORY={REPOSITORY}\nGH_TOKEN={API_KEY}\n"
    )

    config = ClientConfig.from_env()

    assert (config.owner, config.repository, config.api_key) == (OWNER, REPOSITORY, API_KEY)


def test_from_env_without_token(monkeypatch):
    monkeypatch.setenv("GITHUB_REPOSITORY", f"{OWNER}/{REPOSITORY}")
    with pytest.raises(ConfigurationError, match="api_key"):
        ClientConfig.from_env()


def test_get_token_priority(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "from-env")
    assert get_token("explicit") == "explicit"
    assert get_token() == "from-env"

    monkeypatch.delenv("GITHUB_TOKEN")
    assert get_token() is None
