"""Shared fixtures: a scripted fake of the GitHub API served through httpx.MockTransport."""

import json
import threading
from typing import Any, Callable

import httpx
import pytest

from gh_agent import ClientConfig, GitHubClient, RepositoryAgent

OWNER = "Linkurious"
REPOSITORY = "github-client"
API_KEY = "apiKey"
REPO_PATH = f"/repos/{OWNER}/{REPOSITORY}/"
REPO_URL = f"https://api.github.com{REPO_PATH}"

ENV_VARS = (
    "GITHUB_OWNER",
    "GITHUB_REPOSITORY",
    "GITHUB_TOKEN",
    "GH_TOKEN",
    "GITHUB_API_HOST",
    "GITHUB_API_PORT",
    "GIT_BRANCH",
)


class FakeGitHub:
    """Routes requests by (method, path) to scripted responses and records them."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Any]] = {}
        self.requests: list[httpx.Request] = []
        self._lock = threading.Lock()

    def add(
        self,
        method: str,
        path: str,
        status: int = 200,
        json: Any = None,
        headers: dict[str, str] | None = None,
        handler: Callable[[httpx.Request], httpx.Response] | None = None,
    ) -> "FakeGitHub":
        """Queue a response; the last one queued for a route is repeated."""
        if not path.startswith("/"):
            path = REPO_PATH + path
        reply = handler or (status, json, headers)
        self.routes.setdefault((method, path), []).append(reply)
        return self

    def handle(self, request: httpx.Request) -> httpx.Response:
        request.read()
        with self._lock:
            self.requests.append(request)
            queue = self.routes.get((request.method, request.url.path))
            if not queue:
                return httpx.Response(404, json={"message": "Not Found"})
            reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(reply):
            return reply(request)
        status, body, headers = reply
        return httpx.Response(status, json=body, headers=headers)

    @property
    def calls(self) -> list[str]:
        return [f"{r.method} {r.url.path.removeprefix(REPO_PATH)}" for r in self.requests]

    def body(self, index: int) -> Any:
        return json.loads(self.requests[index].content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from the developer's environment and .env file."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(owner=OWNER, repository=REPOSITORY, api_key=API_KEY)


@pytest.fixture
def fake() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def client(config, fake) -> GitHubClient:
    return GitHubClient(config, transport=fake.transport)


@pytest.fixture
def agent(client) -> RepositoryAgent:
    return RepositoryAgent(client=client)
