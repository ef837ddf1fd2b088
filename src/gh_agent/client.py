"""GitHub REST API client scoped to a single repository."""

import logging
from pathlib import Path
from typing import Any, Iterator

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import ClientConfig
from .errors import ServerError
from .models import ApiResponse

logger = logging.getLogger(__name__)

# Retry configuration
DEFAULT_MIN_WAIT = 1  # seconds
DEFAULT_MAX_WAIT = 10  # seconds
UPLOAD_CHUNK_SIZE = 64 * 1024

# Retryable exceptions
RETRYABLE_EXCEPTIONS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
    httpx.NetworkError,
)


def create_retry_decorator(max_retries: int):
    """Create a retry decorator with specified max attempts."""
    return retry(
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        stop=stop_after_attempt(max(max_retries, 1)),
        wait=wait_exponential(multiplier=1, min=DEFAULT_MIN_WAIT, max=DEFAULT_MAX_WAIT),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def drop_none(values: Any) -> Any:
    """Remove keys whose value is None from a mapping, leave anything else alone."""
    if isinstance(values, dict):
        return {key: value for key, value in values.items() if value is not None}
    return values


def accumulate(acc: list[Any], body: Any) -> list[Any]:
    """Append a page body to the accumulator, flattening list bodies."""
    if isinstance(body, list):
        return acc + body
    return acc + [body]


def decode_body(response: httpx.Response) -> Any:
    """Decode a JSON body, falling back to text (or None when empty)."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def iter_file(handle, chunk_size: int = UPLOAD_CHUNK_SIZE) -> Iterator[bytes]:
    while True:
        chunk = handle.read(chunk_size)
        if not chunk:
            break
        yield chunk


class GitHubClient:
    """GitHub REST API client bound to one repository."""

    USER_AGENT = "Github-Agent"
    ACCEPT = "application/vnd.github.v3+json"
    AUTH_PASSWORD = "x-oauth-basic"

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize GitHub client.

        Args:
            config: Repository, credentials and transport settings
            transport: Custom httpx transport (mostly useful in tests)
        """
        self.config = config
        self.transport = transport
        self.headers = {
            "Accept": self.ACCEPT,
            "User-Agent": self.USER_AGENT,
        }
        logger.info(
            "GitHub client ready, repo=%s/%s, host=%s, max_retries=%d",
            config.owner,
            config.repository,
            config.host,
            config.max_retries,
        )

    @property
    def owner(self) -> str:
        return self.config.owner

    @property
    def repository(self) -> str:
        return self.config.repository

    @property
    def prefix(self) -> str:
        """Base URL of every repository-scoped endpoint."""
        host = self.config.host
        if self.config.port != 443:
            host = f"{host}:{self.config.port}"
        return f"https://{host}/repos/{self.owner}/{self.repository}/"

    def repo_url(self, path: str) -> str:
        """
        Get an URL relative to the current repo.

        Absolute URLs already pointing into the repo (such as the ``url``
        fields GitHub returns, or next-page links) are returned unchanged.
        """
        if path.startswith(self.prefix):
            return path
        return self.prefix + path

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.config.timeout,
            headers=self.headers,
            auth=(self.config.api_key, self.AUTH_PASSWORD),
            transport=self.transport,
        )

    def _send(self, client: httpx.Client, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send one HTTP request, retrying transport failures when configured."""

        @create_retry_decorator(self.config.max_retries)
        def do_request() -> httpx.Response:
            logger.debug("Request: %s %s", method, url)
            return client.request(method, url, **kwargs)

        try:
            response = do_request()
        except httpx.TransportError as e:
            logger.error("Request failed: %s %s: %s", method, url, e)
            raise
        logger.debug("Response: %s %s (status=%d)", method, url, response.status_code)
        self._check_server_error(response)
        return response

    @staticmethod
    def _check_server_error(response: httpx.Response) -> None:
        if response.status_code >= 500:
            logger.error("Server error %d on %s", response.status_code, response.url)
            raise ServerError(
                f"Server error {response.status_code}",
                status_code=response.status_code,
                body=decode_body(response),
            )

    def request(
        self,
        method: str,
        url: str,
        query: dict[str, Any] | None = None,
        body: Any = None,
    ) -> ApiResponse:
        """
        Make a request to the GitHub API, following pagination.

        While the response carries a ``Link: <...>; rel="next"`` header, the
        page body is accumulated and the next URL is requested as given, with
        the same method and body. Next links already carry the full query, so
        ``query`` is only sent with the first request. A paginated call
        returns all pages concatenated in one list; a single-page call
        returns its body as is.

        Raises:
            ServerError: on any 5xx response
            httpx.TransportError: on network failures
        """
        params = drop_none(query)
        payload = drop_none(body)
        next_url: str | None = self.repo_url(url)
        acc: list[Any] | None = None

        with self._client() as client:
            while next_url:
                response = self._send(client, method.upper(), next_url, params=params, json=payload)
                params = None
                data = decode_body(response)
                next_url = response.links.get("next", {}).get("url")
                if next_url:
                    acc = accumulate(acc or [], data)
                    logger.debug("Following next page: %s", next_url)

        if acc is not None:
            data = accumulate(acc, data)

        return ApiResponse(
            body=data,
            status_code=response.status_code,
            headers=dict(response.headers),
        )

    def get(self, url: str, query: dict[str, Any] | None = None) -> ApiResponse:
        return self.request("GET", url, query=query)

    def post(self, url: str, body: Any = None) -> ApiResponse:
        return self.request("POST", url, body=body)

    def put(self, url: str, body: Any = None) -> ApiResponse:
        return self.request("PUT", url, body=body)

    def patch(self, url: str, body: Any = None) -> ApiResponse:
        return self.request("PATCH", url, body=body)

    def delete(self, url: str, body: Any = None) -> ApiResponse:
        return self.request("DELETE", url, body=body)

    def upload(
        self,
        url: str,
        file_path: str | Path,
        name: str,
        content_type: str = "application/zip",
    ) -> ApiResponse:
        """
        Stream a local file to an absolute upload URL.

        The file is sent in chunks with an explicit Content-Length. Uploads
        are never retried since the stream cannot be replayed.
        """
        path = Path(file_path)
        size = path.stat().st_size
        headers = {
            "User-Agent": f"{self.owner}-Release-Agent",
            "Content-Type": content_type,
            "Content-Length": str(size),
        }
        logger.debug("Uploading %s (%d bytes) to %s", path, size, url)

        with path.open("rb") as handle, self._client() as client:
            try:
                response = client.post(
                    url,
                    params={"name": name},
                    headers=headers,
                    content=iter_file(handle),
                )
            except httpx.TransportError as e:
                logger.error("Upload failed: %s: %s", url, e)
                raise
        self._check_server_error(response)

        return ApiResponse(
            body=decode_body(response),
            status_code=response.status_code,
            headers=dict(response.headers),
        )
