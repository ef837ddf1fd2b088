"""Repository automation workflows built on the GitHub client."""

import base64
import logging
import os
import subprocess
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Iterable

import httpx

from .client import GitHubClient
from .config import ClientConfig
from .errors import (
    BranchResolutionError,
    GitHubAPIError,
    ReleaseExistsError,
    UploadError,
)
from .models import ApiResponse, BlobFile, BlobRef, BranchHead, FileTreeEntry

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "master"
DEFAULT_COMMIT_MESSAGE = "Automated commit."
DEFAULT_CONCURRENCY = 8
BRANCH_ENV_VAR = "GIT_BRANCH"
UPLOAD_URL_TEMPLATE = "{?name,label}"


def expect(response: ApiResponse, *codes: int, what: str) -> Any:
    """Return the response body if its status is one of ``codes``."""
    if response.status_code not in codes:
        raise GitHubAPIError(
            f"Failed to {what}: HTTP {response.status_code}",
            status_code=response.status_code,
            body=response.body,
        )
    return response.body


def encode_content(content: str | bytes) -> str:
    if isinstance(content, str):
        content = content.encode("utf-8")
    return base64.b64encode(content).decode("ascii")


class RepositoryAgent:
    """High level repository operations: files, branches, tags, commits, releases."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        client: GitHubClient | None = None,
    ):
        """
        Initialize the agent.

        Args:
            config: Client configuration, used to build a client when none is given
            client: Pre-built GitHub client
        """
        if client is None:
            if config is None:
                raise ValueError("Either config or client is required")
            client = GitHubClient(config)
        self.client = client
        self._logs_enabled = client.config.logs

    def set_logs_enabled(self, value: bool) -> "RepositoryAgent":
        """Toggle progress messages between INFO (enabled) and DEBUG."""
        self._logs_enabled = value
        return self

    def _log(self, msg: str, *args: Any) -> None:
        logger.log(logging.INFO if self._logs_enabled else logging.DEBUG, msg, *args)

    # ============ Branches ============

    def create_branch(self, name: str, source: str = DEFAULT_BRANCH) -> ApiResponse:
        """
        Create ``refs/heads/{name}`` at the head of ``source``.

        The creation response is returned as is, so a 422 for an existing
        branch is left for the caller to interpret.
        """
        self._log('Creating branch "%s"...', name)
        ref = expect(self._get_branch_ref(source), 200, what=f"read branch {source}")
        return self.client.post(
            "git/refs",
            {"ref": f"refs/heads/{name}", "sha": ref["object"]["sha"]},
        )

    def _get_branch_ref(self, branch: str) -> ApiResponse:
        """Read the exact ref of a branch; 404 when it does not exist."""
        response = self.client.get(f"git/ref/heads/{branch}")
        if response.status_code == 200 and not isinstance(response.body, dict):
            # Prefix matches such as release/1.0 for release
            return ApiResponse(body=response.body, status_code=404, headers=response.headers)
        return response

    @staticmethod
    def get_current_branch() -> str:
        """
        Name of the branch being built.

        CI servers export it through GIT_BRANCH; otherwise git is asked.
        """
        branch = os.environ.get(BRANCH_ENV_VAR)
        if branch:
            return branch
        try:
            result = subprocess.run(
                ["git", "rev-parse", "--abbrev-ref", "HEAD"],
                capture_output=True,
                text=True,
                check=True,
            )
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            logger.error("Cannot read current branch: %s", e)
            raise BranchResolutionError(f"Cannot read current branch: {e}") from e
        return result.stdout.rstrip()

    # ============ Files ============

    def create_file(
        self,
        content: str | bytes,
        path: str,
        message: str,
        branch: str | None = None,
        sha: str | None = None,
    ) -> Any:
        """
        Create a file and commit it into the branch.

        Args:
            content: File content, base64 encoded before sending
            path: Relative file path in the repo
            message: Commit message
            branch: Branch to commit (repository default when omitted)
            sha: Blob SHA of the file being replaced

        Returns:
            The created content and commit, as returned by GitHub
        """
        self._log("Creating %s...", path)
        return self._put_file(content, path, message, branch, sha, expected=(201,))

    def update_file(
        self,
        content: str | bytes,
        path: str,
        message: str,
        branch: str | None = None,
    ) -> Any:
        """Replace an existing file; fails without writing if it does not exist."""
        self._log("Updating %s...", path)
        current = expect(
            self.client.get(f"contents/{path}", {"ref": branch}),
            200,
            what=f"read {path}",
        )
        return self._put_file(content, path, message, branch, current["sha"], expected=(200, 201))

    def _put_file(
        self,
        content: str | bytes,
        path: str,
        message: str,
        branch: str | None,
        sha: str | None,
        expected: tuple[int, ...],
    ) -> Any:
        response = self.client.put(
            f"contents/{path}",
            {
                "message": message,
                "branch": branch,
                "sha": sha,
                "content": encode_content(content),
            },
        )
        return expect(response, *expected, what=f"write {path}")

    # ============ Git data ============

    def tag_head(self, tag: str, branch: str, message: str | None = None) -> Any:
        """
        Create an annotated tag at the head of ``branch``.

        Steps: read the branch ref, read its commit, create the tag object,
        create ``refs/tags/{tag}``. A failing step stops the sequence.
        """
        self._log("Retrieving %s head sha...", branch)
        ref = expect(self._get_branch_ref(branch), 200, what=f"read branch {branch}")

        self._log("Retrieving last commit...")
        commit = expect(self.client.get(ref["object"]["url"]), 200, what="read head commit")

        self._log("Tagging commit %s on %s as %s", commit["sha"], branch, tag)
        tag_object = expect(
            self.client.post(
                "git/tags",
                {
                    "tag": tag,
                    "message": message or tag,
                    "object": commit["sha"],
                    "type": "commit",
                },
            ),
            201,
            what=f"create tag {tag}",
        )

        self._log("Linking tag object and commit...")
        return expect(
            self.client.post("git/refs", {"ref": f"refs/tags/{tag}", "sha": tag_object["sha"]}),
            201,
            what=f"create ref for tag {tag}",
        )

    def create_blobs(
        self,
        files: Iterable[BlobFile | dict[str, Any]],
        max_workers: int = DEFAULT_CONCURRENCY,
    ) -> list[BlobRef]:
        """
        Store files as Git blobs, concurrently.

        Needed for content that cannot travel inline in a tree (binary files
        sent base64 encoded). Results keep the input order; the first failure
        is raised once every request has finished.
        """
        blobs = [BlobFile.model_validate(f) for f in files]
        if not blobs:
            return []

        def create_one(blob: BlobFile) -> BlobRef:
            body = expect(
                self.client.post("git/blobs", {"content": blob.content, "encoding": blob.encoding}),
                201,
                what=f"create blob for {blob.path}",
            )
            return BlobRef(path=blob.path, sha=body["sha"])

        self._log("Creating %d blobs...", len(blobs))
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [pool.submit(create_one, blob) for blob in blobs]
        return [future.result() for future in futures]

    def push_files(
        self,
        files: Iterable[FileTreeEntry | dict[str, Any]] = (),
        branch: str = DEFAULT_BRANCH,
        message: str = DEFAULT_COMMIT_MESSAGE,
    ) -> Any:
        """
        Commit several files at once through the Git Data API.

        The branch is created from master when missing. Entries carry either
        inline ``content`` or the ``sha`` of a blob made by create_blobs.
        The branch ref is force-updated: concurrent commits on the branch
        are overwritten.

        Returns:
            The updated branch ref
        """
        tree = [FileTreeEntry.model_validate(f) for f in files]
        head = self._branch_head(branch)
        tree_sha = self._create_tree(head, tree)
        commit_sha = self._create_commit(head, tree_sha, message)

        self._log("Pushing %s to %s...", commit_sha, branch)
        ref = expect(
            self.client.patch(f"git/refs/heads/{branch}", {"sha": commit_sha, "force": True}),
            200,
            what=f"update branch {branch}",
        )
        self._log("Done!")
        return ref

    def _branch_head(self, branch: str) -> BranchHead:
        self._log('Checking branch "%s"...', branch)
        response = self._get_branch_ref(branch)
        if response.status_code == 404:
            response = self.create_branch(branch)
            ref = expect(response, 201, what=f"create branch {branch}")
        else:
            ref = expect(response, 200, what=f"read branch {branch}")

        self._log("Retrieving last commit...")
        commit = expect(self.client.get(ref["object"]["url"]), 200, what="read head commit")
        return BranchHead(commit_sha=commit["sha"], tree_sha=commit["tree"]["sha"])

    def _create_tree(self, head: BranchHead, entries: list[FileTreeEntry]) -> str:
        self._log("Creating new tree...")
        body = expect(
            self.client.post(
                "git/trees",
                {
                    "base_tree": head.tree_sha,
                    "tree": [entry.model_dump(exclude_none=True) for entry in entries],
                },
            ),
            201,
            what="create tree",
        )
        return body["sha"]

    def _create_commit(self, head: BranchHead, tree_sha: str, message: str) -> str:
        self._log("Committing tree %s...", tree_sha)
        body = expect(
            self.client.post(
                "git/commits",
                {"message": message, "tree": tree_sha, "parents": [head.commit_sha]},
            ),
            201,
            what="create commit",
        )
        return body["sha"]

    # ============ Releases ============

    def upload_release(
        self,
        tag_name: str,
        zip_path: str | Path,
        zip_name: str | None = None,
        name: str | None = None,
        body: str | None = None,
        prerelease: bool = False,
    ) -> Any:
        """
        Create a release and attach a zip archive to it.

        Args:
            tag_name: Tag the release points to
            zip_path: Local archive to upload
            zip_name: Asset name (defaults to the archive file name)
            name: Release title
            body: Release notes
            prerelease: Mark as pre-release

        Returns:
            The uploaded asset
        """
        zip_path = Path(zip_path)
        self._log("Creating release %s...", tag_name)
        response = self.client.post(
            "releases",
            {"tag_name": tag_name, "name": name, "body": body, "prerelease": prerelease},
        )
        if response.status_code == 422:
            raise ReleaseExistsError(
                f'release "{tag_name}" already exists',
                status_code=response.status_code,
                body=response.body,
            )
        release = expect(response, 201, what=f"create release {tag_name}")

        upload_url = release["upload_url"].replace(UPLOAD_URL_TEMPLATE, "")
        self._log("Uploading %s...", zip_path)
        try:
            upload = self.client.upload(upload_url, zip_path, name=zip_name or zip_path.name)
        except httpx.TransportError as e:
            raise UploadError(f"Upload failed: {e}") from e
        if upload.status_code != 201:
            raise UploadError(
                f"Upload failed with HTTP code {upload.status_code}",
                status_code=upload.status_code,
                body=upload.body,
            )
        return upload.body

    def get_releases(self) -> list[Any]:
        return self.client.get("releases").body

    # ============ Milestones & issues ============

    def get_milestones(self, state: str | None = None) -> list[Any]:
        """List milestones, optionally filtered by state (open, closed, all)."""
        self._log("Retrieving milestones...")
        return self.client.get("milestones", {"state": state}).body

    def close_milestone(self, number: int) -> Any:
        return expect(
            self.client.patch(f"milestones/{number}", {"state": "closed"}),
            200,
            what=f"close milestone {number}",
        )

    def get_issues(self, state: str | None = None, milestone: str | int | None = None) -> list[Any]:
        """List issues, optionally filtered by state and milestone number."""
        self._log("Retrieving issues...")
        return self.client.get("issues", {"state": state, "milestone": milestone}).body
