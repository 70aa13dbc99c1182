import asyncio
import logging
import threading
from typing import Any
from urllib.parse import quote

import requests

from ..config import Config
from ..validators import validate_repo_path, validate_upload_size
from .async_utils import request_slot, run_sync
from .blob import decode_content, encode_content, git_blob_sha, to_bytes
from .errors import RateLimitError, RemoteStoreError, UnexpectedResponseError
from .models import RemoteEntry, UploadResult

logger = logging.getLogger(__name__)

INITIAL_BACKOFF_SECONDS = 1.0
MAX_SLEEP_SECONDS = 30.0


async def _backoff_sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


def _encode_path(path: str) -> str:
    return "/".join(quote(segment, safe="") for segment in path.split("/"))


def _json_or_none(response: requests.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _retry_after_seconds(response: requests.Response) -> float | None:
    raw = response.headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(int(raw.strip()))
    except ValueError:
        # HTTP-date form is not used by GitHub; fall back to backoff.
        return None


def _is_rate_limited(response: requests.Response) -> bool:
    if response.status_code == 429:
        return True
    if response.status_code == 403:
        return (
            "retry-after" in response.headers
            or response.headers.get("x-ratelimit-remaining") == "0"
        )
    return False


class GitHubClient:
    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self.base_url = self._get_base_url()

    @property
    def session(self) -> requests.Session:
        """Accessor for the current thread's session."""
        return self._get_session()

    def _get_base_url(self) -> str:
        return (
            f"{self.config.api_url.rstrip('/')}/repos/"
            f"{self.config.github_owner}/{self.config.github_repo}"
        )

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self.config.github_token}",
                "Accept": "application/vnd.github.v3+json",
                "User-Agent": "vault-publish",
            }
        )
        return session

    def _send(
        self,
        method: str,
        url: str,
        payload: dict | None = None,
        params: dict | None = None,
    ) -> requests.Response:
        """Blocking HTTP call. Never raises on non-2xx status."""
        session = self._get_session()
        return session.request(
            method,
            url,
            json=payload,
            params=params,
            timeout=(10, 60),
        )

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict | None = None,
        params: dict | None = None,
        allow_missing: bool = True,
    ) -> tuple[int, Any]:
        """
        Make a GitHub API request through the concurrency gate with retries.

        Returns (status, parsed JSON). A 404 is returned as (404, None) when
        ``allow_missing`` is set and raised otherwise. Rate-limit responses and
        transport errors share the ``max_retries`` attempt budget; the last
        observed error is raised when it runs out.
        """
        url = f"{self.base_url}{path}"
        attempts = self.config.max_retries

        async with request_slot():
            last_error: RemoteStoreError | None = None
            backoff = INITIAL_BACKOFF_SECONDS

            for attempt in range(1, attempts + 1):
                has_next = attempt < attempts
                try:
                    response = await run_sync(
                        self._send, method, url, payload, params
                    )
                except requests.RequestException as exc:
                    last_error = RemoteStoreError(
                        f"Request {method} {path} failed: {exc}", path=path
                    )
                    logger.warning(
                        "Request failed, retrying (attempt %d/%d): %s",
                        attempt,
                        attempts,
                        exc,
                    )
                    if has_next:
                        await _backoff_sleep(backoff)
                    backoff *= 2
                    continue

                status = response.status_code

                if 200 <= status < 300:
                    return status, _json_or_none(response)

                if status == 404:
                    if allow_missing:
                        return status, None
                    raise RemoteStoreError(
                        f"GitHub API error: 404 - {method} {path} not found",
                        status=status,
                        path=path,
                    )

                if _is_rate_limited(response):
                    hint = _retry_after_seconds(response)
                    wait = min(
                        hint if hint is not None else backoff,
                        MAX_SLEEP_SECONDS,
                    )
                    last_error = RateLimitError(
                        f"GitHub rate limit hit for {method} {path}",
                        status=status,
                        path=path,
                    )
                    logger.warning(
                        "GitHub rate limit hit, waiting %.1fs before retry (attempt %d/%d)",
                        wait,
                        attempt,
                        attempts,
                    )
                    if has_next:
                        await _backoff_sleep(wait)
                    backoff *= 2
                    continue

                last_error = RemoteStoreError(
                    f"GitHub API error: {status} - {response.text}",
                    status=status,
                    path=path,
                )
                logger.warning(
                    "GitHub API error %d for %s %s (attempt %d/%d)",
                    status,
                    method,
                    path,
                    attempt,
                    attempts,
                )

            if last_error is None:
                last_error = RemoteStoreError(
                    f"Request {method} {path} failed after retries",
                    path=path,
                )
            raise last_error

    def _contents_path(self, path: str) -> str:
        return f"/contents/{_encode_path(path)}"

    def _ref_params(self) -> dict:
        return {"ref": self.config.github_branch}

    async def validate_connection(self) -> str:
        """
        Validate that the repository is reachable with the configured token.
        Returns the repository's full name.

        Raises:
            RemoteStoreError: If the repository does not exist or is not visible
        """
        _, data = await self._request("GET", "", allow_missing=False)
        if not isinstance(data, dict):
            raise UnexpectedResponseError(
                "Repository metadata response was not an object"
            )
        return str(data.get("full_name", ""))

    async def get_file_sha(self, path: str) -> str | None:
        """
        Get the blob SHA of a file in the repository.
        Returns None if the file doesn't exist.
        """
        _, data = await self._request(
            "GET", self._contents_path(path), params=self._ref_params()
        )
        if not isinstance(data, dict):
            # Missing, or the path is a directory listing
            return None
        return data.get("sha")

    async def read_file(self, path: str) -> str | None:
        """
        Get the text content of a file in the repository.
        Returns None if the file doesn't exist or is not base64 encoded.
        """
        _, data = await self._request(
            "GET", self._contents_path(path), params=self._ref_params()
        )
        if not isinstance(data, dict):
            return None
        if data.get("encoding") != "base64":
            return None
        return decode_content(data.get("content", "")).decode("utf-8")

    async def write_file(
        self, path: str, content: str | bytes, message: str
    ) -> UploadResult:
        """
        Create or update a file, skipping the transfer when the remote
        already holds identical bytes.

        Args:
            path: Repository-relative path
            content: Text (UTF-8 encoded before upload) or raw bytes
            message: Commit message

        Returns:
            UploadResult with the stored blob SHA and whether bytes moved

        Raises:
            ValueError: If the path or payload fails validation
            UnexpectedResponseError: If the write succeeded without a content sha
            RemoteStoreError: If the request failed after retries
        """
        is_valid, error_msg = validate_repo_path(path)
        if not is_valid:
            raise ValueError(f"Invalid path: {error_msg}")

        raw = to_bytes(content)
        is_valid, error_msg = validate_upload_size(raw)
        if not is_valid:
            raise ValueError(f"Invalid content for {path}: {error_msg}")

        existing_sha = await self.get_file_sha(path)
        local_sha = git_blob_sha(raw)

        if existing_sha and existing_sha == local_sha:
            logger.debug("Skipping upload of %s (content unchanged)", path)
            return UploadResult(uploaded=False, sha=existing_sha, path=path)

        payload: dict[str, Any] = {
            "message": message,
            "content": encode_content(raw),
            "branch": self.config.github_branch,
        }
        # Optimistic concurrency token when updating
        if existing_sha:
            payload["sha"] = existing_sha

        _, data = await self._request(
            "PUT", self._contents_path(path), payload, allow_missing=False
        )

        sha = None
        if isinstance(data, dict) and isinstance(data.get("content"), dict):
            sha = data["content"].get("sha")
        if not sha:
            raise UnexpectedResponseError(
                f"Failed to upload file: {path} (response had no content sha)",
                path=path,
            )

        logger.debug("Uploaded %s (%s)", path, sha)
        return UploadResult(uploaded=True, sha=sha, path=path)

    async def delete_file(self, path: str, sha: str, message: str) -> None:
        """
        Delete a file from the repository.

        Args:
            path: Repository-relative path
            sha: Current blob SHA of the file, fetched just before the call
            message: Commit message

        Raises:
            ValueError: If the path fails validation or sha is empty
            RemoteStoreError: If the file is gone or the request failed after retries
        """
        is_valid, error_msg = validate_repo_path(path)
        if not is_valid:
            raise ValueError(f"Invalid path: {error_msg}")
        if not sha:
            raise ValueError(f"Deleting {path} requires its current sha")

        await self._request(
            "DELETE",
            self._contents_path(path),
            {
                "message": message,
                "sha": sha,
                "branch": self.config.github_branch,
            },
            allow_missing=False,
        )

    async def list_directory(self, path: str) -> list[RemoteEntry]:
        """
        List the contents of a repository directory.
        Returns an empty list if the directory doesn't exist or path is a file.
        """
        _, data = await self._request(
            "GET", self._contents_path(path), params=self._ref_params()
        )
        if not isinstance(data, list):
            return []
        return [
            RemoteEntry(
                name=item["name"],
                path=item["path"],
                sha=item["sha"],
                type="dir" if item.get("type") == "dir" else "file",
            )
            for item in data
        ]

    def is_configured(self) -> bool:
        """
        Check if owner, repository, token and branch are all set.
        """
        return bool(
            self.config.github_owner
            and self.config.github_repo
            and self.config.github_token
            and self.config.github_branch
        )
