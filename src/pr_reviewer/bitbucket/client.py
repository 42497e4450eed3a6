"""Bitbucket Server REST client for pull request changes, diffs and comments."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import quote

import httpx

from pr_reviewer.config import BitbucketConfig
from pr_reviewer.errors import ConfigurationError, UpstreamError
from pr_reviewer.logging import get_logger

logger = get_logger(__name__)

API_PATH = "/rest/api/1.0"
PAGE_LIMIT = 500


class ChangeType(str, Enum):
    """Kinds of change Bitbucket reports for a file in a pull request."""

    ADD = "ADD"
    MODIFY = "MODIFY"
    DELETE = "DELETE"
    RENAME = "RENAME"
    COPY = "COPY"
    MOVE = "MOVE"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> ChangeType:
        if not value:
            return cls.MODIFY
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class ChangedFile:
    """A file changed by a pull request."""

    path: str
    change_type: ChangeType = ChangeType.MODIFY


def _auth_header(config: BitbucketConfig) -> str:
    if config.auth_token:
        return f"Bearer {config.auth_token}"
    if config.username and config.password:
        credentials = base64.b64encode(
            f"{config.username}:{config.password}".encode()
        ).decode("ascii")
        return f"Basic {credentials}"
    raise ConfigurationError(
        "No authentication method provided. Set either auth_token or "
        "username and password in the [bitbucket] configuration"
    )


def _path_of(entry: Any) -> str:
    """Extract the file path of one change entry.

    Raises:
        UpstreamError: If the entry or its path has an unexpected shape.
    """
    if not isinstance(entry, dict):
        raise UpstreamError("Invalid response from Bitbucket API", details=entry)

    path = entry.get("path") or {}
    if isinstance(path, str):
        return path
    if not isinstance(path, dict):
        raise UpstreamError("Invalid response from Bitbucket API", details=entry)
    if path.get("toString"):
        return str(path["toString"])

    components = path.get("components") or []
    if not isinstance(components, list) or not all(isinstance(c, str) for c in components):
        raise UpstreamError("Invalid response from Bitbucket API", details=entry)
    return "/".join(components)


class BitbucketClient:
    """Async client for one Bitbucket Server repository.

    The underlying httpx.AsyncClient is created lazily and must be released
    with close().
    """

    def __init__(
        self,
        config: BitbucketConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.logger = get_logger(__name__)
        self._authorization = _auth_header(config)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self.config.base_url}{API_PATH}",
                headers={"Authorization": self._authorization},
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _pull_request_path(self, pr_id: str) -> str:
        return (
            f"/projects/{quote(self.config.project_key, safe='')}"
            f"/repos/{quote(self.config.repository_slug, safe='')}"
            f"/pull-requests/{quote(pr_id, safe='')}"
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            self.logger.error("bitbucket_request_error", method=method, url=url, error=str(e))
            raise UpstreamError(f"Bitbucket request failed: {e}") from e

        if not response.is_success:
            self.logger.warning(
                "bitbucket_request_failed",
                method=method,
                url=url,
                status_code=response.status_code,
                response_text=response.text[:200],
            )
            raise UpstreamError(
                f"Bitbucket returned HTTP {response.status_code} for {method} {url}",
                status_code=response.status_code,
                details=response.text[:200],
            )
        return response

    async def list_changed_files(self, pr_id: str) -> list[ChangedFile]:
        """Return the files changed by a pull request, in Bitbucket's order.

        Follows ``nextPageStart`` until ``isLastPage`` is reported.

        Raises:
            UpstreamError: On transport errors, non-2xx responses, or a body
                without a ``values`` list.
        """
        url = f"{self._pull_request_path(pr_id)}/changes"
        files: list[ChangedFile] = []
        start = 0

        while True:
            response = await self._request(
                "GET", url, params={"start": start, "limit": PAGE_LIMIT}
            )
            try:
                body = response.json()
            except ValueError as e:
                raise UpstreamError("Invalid response from Bitbucket API") from e

            values = body.get("values") if isinstance(body, dict) else None
            if not isinstance(values, list):
                raise UpstreamError("Invalid response from Bitbucket API", details=body)

            for entry in values:
                path = _path_of(entry)
                if path:
                    files.append(ChangedFile(path=path, change_type=ChangeType.parse(entry.get("type"))))

            next_start = body.get("nextPageStart")
            if body.get("isLastPage", True) or next_start is None:
                break
            start = next_start

        self.logger.info("changed_files_listed", pr_id=pr_id, count=len(files))
        return files

    async def fetch_file_diff(self, pr_id: str, path: str) -> str:
        """Return the raw text diff of one file in a pull request."""
        encoded = "/".join(quote(segment, safe="") for segment in path.split("/"))
        response = await self._request(
            "GET",
            f"{self._pull_request_path(pr_id)}/diff/{encoded}",
            headers={"Accept": "text/plain"},
        )
        self.logger.debug("file_diff_fetched", pr_id=pr_id, file_path=path, size=len(response.text))
        return response.text or ""

    async def post_comment(self, pr_id: str, path: str, line: int, text: str) -> dict[str, Any]:
        """Add an inline comment anchored to a line of the new file version."""
        payload = {
            "text": text,
            "anchor": {
                "path": path,
                "line": line,
                "lineType": "CONTEXT",
                "fileType": "TO",
                "diffType": "EFFECTIVE",
            },
        }
        response = await self._request(
            "POST", f"{self._pull_request_path(pr_id)}/comments", json=payload
        )
        self.logger.info("comment_posted", pr_id=pr_id, file_path=path, line=line)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}
