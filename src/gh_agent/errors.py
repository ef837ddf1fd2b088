"""Exceptions raised by the GitHub agent."""

from typing import Any


class GitHubAgentError(Exception):
    """Base class for all agent errors."""


class ConfigurationError(GitHubAgentError):
    """Raised when a required client setting is missing or invalid."""


class GitHubAPIError(GitHubAgentError):
    """Raised when GitHub answers with an unexpected status code.

    The raw response body is kept on ``body`` so callers can inspect the
    structured error GitHub returned.
    """

    def __init__(self, message: str, status_code: int | None = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ServerError(GitHubAPIError):
    """Raised on any 5xx response."""


class ReleaseExistsError(GitHubAPIError):
    """Raised when a release for the tag already exists."""


class UploadError(GitHubAPIError):
    """Raised when a release asset upload is rejected."""


class BranchResolutionError(GitHubAgentError):
    """Raised when the current branch cannot be read from git."""
