"""GitHub repository automation client."""

from .agent import RepositoryAgent
from .client import GitHubClient
from .config import ClientConfig, get_token
from .errors import (
    BranchResolutionError,
    ConfigurationError,
    GitHubAgentError,
    GitHubAPIError,
    ReleaseExistsError,
    ServerError,
    UploadError,
)
from .models import ApiResponse, BlobFile, BlobRef, BranchHead, FileTreeEntry

__all__ = [
    "RepositoryAgent",
    "GitHubClient",
    "ClientConfig",
    "get_token",
    "ApiResponse",
    "BlobFile",
    "BlobRef",
    "BranchHead",
    "FileTreeEntry",
    "GitHubAgentError",
    "ConfigurationError",
    "GitHubAPIError",
    "ServerError",
    "ReleaseExistsError",
    "UploadError",
    "BranchResolutionError",
]
