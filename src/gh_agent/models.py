"""GitHub API data models."""

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator


class ApiResponse(BaseModel):
    """Decoded API response, with every page already accumulated."""

    body: Any = None
    status_code: int
    headers: dict[str, str] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class FileTreeEntry(BaseModel):
    """Entry of a Git tree built for a multi-file commit."""

    path: str
    content: str | None = None
    sha: str | None = None  # Blob SHA, for files pushed through create_blobs
    mode: str = "100644"
    type: Literal["blob"] = "blob"

    @model_validator(mode="after")
    def check_source(self) -> "FileTreeEntry":
        if self.content is None and self.sha is None:
            raise ValueError(f"Tree entry {self.path!r} needs content or sha")
        return self


class BlobFile(BaseModel):
    """File content to store as a Git blob."""

    path: str
    content: str
    encoding: Literal["utf-8", "base64"] = "utf-8"


class BlobRef(BaseModel):
    """Path of a file and the SHA of the blob holding its content."""

    path: str
    sha: str


class BranchHead(BaseModel):
    """Commit and tree a branch currently points to."""

    commit_sha: str
    tree_sha: str
