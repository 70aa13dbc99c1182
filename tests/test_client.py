"""
Tests for GitHubClient.

Covers the content-addressed write, the retry/backoff policy, 404 handling,
structural response errors, deletes and directory listings.  HTTP is mocked
at ``GitHubClient._send`` and backoff sleeps at ``_backoff_sleep``.
"""

import base64
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import requests

from vault_publish.config import Config
from vault_publish.core.blob import git_blob_sha
from vault_publish.core.client import GitHubClient
from vault_publish.core.errors import (
    RateLimitError,
    RemoteStoreError,
    UnexpectedResponseError,
)

BASE = "https://api.github.com/repos/octo/site"


def _make_client(**overrides) -> GitHubClient:
    fields = {
        "github_owner": "octo",
        "github_repo": "site",
        "github_token": "ghp_test",
    }
    fields.update(overrides)
    return GitHubClient(Config(**fields))


@pytest.fixture
def sleeps():
    """Patch backoff sleeps and expose the recorded durations."""
    with patch(
        "vault_publish.core.client._backoff_sleep", new_callable=AsyncMock
    ) as mock_sleep:
        yield mock_sleep


def _slept(mock_sleep) -> list[float]:
    return [c.args[0] for c in mock_sleep.await_args_list]


class TestSession:
    """Tests for session setup."""

    def test_base_url(self):
        client = _make_client()
        assert client.base_url == BASE

    def test_base_url_custom_api(self):
        client = _make_client(api_url="https://ghe.example.com/api/v3/")
        assert client.base_url == "https://ghe.example.com/api/v3/repos/octo/site"

    def test_session_headers(self):
        client = _make_client()
        headers = client.session.headers
        assert headers["Authorization"] == "Bearer ghp_test"
        assert headers["Accept"] == "application/vnd.github.v3+json"

    def test_session_is_reused_within_thread(self):
        client = _make_client()
        assert client.session is client.session

    def test_is_configured(self):
        assert _make_client().is_configured()
        assert not _make_client(github_token="").is_configured()


class TestWriteFile:
    """Tests for the idempotent write."""

    async def test_identical_content_is_not_uploaded(self, make_response):
        client = _make_client()
        sha = git_blob_sha("hello")
        client._send = MagicMock(return_value=make_response(200, {"sha": sha}))

        result = await client.write_file("posts/a/index.md", "hello", "msg")

        assert result.uploaded is False
        assert result.sha == sha
        client._send.assert_called_once()
        assert client._send.call_args.args[0] == "GET"

    async def test_changed_content_is_uploaded_with_previous_sha(
        self, make_response
    ):
        client = _make_client()
        client._send = MagicMock(
            side_effect=[
                make_response(200, {"sha": "old"}),
                make_response(200, {"content": {"sha": "new"}}),
            ]
        )

        result = await client.write_file("posts/a/index.md", "hello", "Publish: a")

        assert result.uploaded is True
        assert result.sha == "new"
        method, url, payload, params = client._send.call_args.args
        assert method == "PUT"
        assert url == f"{BASE}/contents/posts/a/index.md"
        assert payload["sha"] == "old"
        assert payload["branch"] == "main"
        assert payload["message"] == "Publish: a"
        assert base64.b64decode(payload["content"]) == b"hello"

    async def test_new_file_is_created_without_sha(self, make_response):
        client = _make_client()
        client._send = MagicMock(
            side_effect=[
                make_response(404, {"message": "Not Found"}),
                make_response(201, {"content": {"sha": "abc"}}),
            ]
        )

        result = await client.write_file("posts/a/img.png", b"\x89PNG", "msg")

        assert result.uploaded is True
        payload = client._send.call_args.args[2]
        assert "sha" not in payload
        assert base64.b64decode(payload["content"]) == b"\x89PNG"

    async def test_get_uses_branch_ref(self, make_response):
        client = _make_client(github_branch="preview")
        client._send = MagicMock(
            return_value=make_response(200, {"sha": git_blob_sha("x")})
        )

        await client.write_file("a.md", "x", "msg")

        assert client._send.call_args.args[3] == {"ref": "preview"}

    async def test_path_segments_are_url_encoded(self, make_response):
        client = _make_client()
        client._send = MagicMock(
            return_value=make_response(200, {"sha": git_blob_sha("x")})
        )

        await client.write_file("posts/my post/a#1.png", "x", "msg")

        url = client._send.call_args.args[1]
        assert url == f"{BASE}/contents/posts/my%20post/a%231.png"

    async def test_missing_content_sha_raises(self, make_response):
        client = _make_client()
        client._send = MagicMock(
            side_effect=[
                make_response(404),
                make_response(200, {"commit": {}}),
            ]
        )

        with pytest.raises(UnexpectedResponseError):
            await client.write_file("a.md", "x", "msg")

    async def test_put_404_raises_immediately(self, make_response, sleeps):
        client = _make_client()
        client._send = MagicMock(
            side_effect=[make_response(404), make_response(404)]
        )

        with pytest.raises(RemoteStoreError) as exc_info:
            await client.write_file("a.md", "x", "msg")

        assert exc_info.value.status == 404
        assert client._send.call_count == 2
        sleeps.assert_not_awaited()

    @pytest.mark.parametrize(
        "path", ["", "/abs.md", "posts/../x.md", "posts//x.md", "posts/"]
    )
    async def test_invalid_path_rejected_before_request(self, path):
        client = _make_client()
        client._send = MagicMock()

        with pytest.raises(ValueError, match="Invalid path"):
            await client.write_file(path, "x", "msg")

        client._send.assert_not_called()


class TestRetryPolicy:
    """Tests for rate limiting, transport errors and the attempt budget."""

    async def test_rate_limit_retries_with_doubling_backoff(
        self, make_response, sleeps
    ):
        client = _make_client()
        client._send = MagicMock(return_value=make_response(429))

        with pytest.raises(RateLimitError):
            await client.get_file_sha("a.md")

        assert client._send.call_count == 3
        assert _slept(sleeps) == [1.0, 2.0]

    async def test_backoff_sleep_is_capped(self, make_response, sleeps):
        client = _make_client(max_retries=7)
        client._send = MagicMock(return_value=make_response(429))

        with pytest.raises(RateLimitError):
            await client.get_file_sha("a.md")

        assert client._send.call_count == 7
        assert _slept(sleeps) == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0]

    async def test_retry_after_header_is_honoured(self, make_response, sleeps):
        client = _make_client()
        client._send = MagicMock(
            side_effect=[
                make_response(429, headers={"Retry-After": "5"}),
                make_response(200, {"sha": "abc"}),
            ]
        )

        assert await client.get_file_sha("a.md") == "abc"
        assert _slept(sleeps) == [5.0]

    async def test_retry_after_is_capped(self, make_response, sleeps):
        client = _make_client()
        client._send = MagicMock(
            side_effect=[
                make_response(429, headers={"Retry-After": "120"}),
                make_response(200, {"sha": "abc"}),
            ]
        )

        await client.get_file_sha("a.md")
        assert _slept(sleeps) == [30.0]

    async def test_403_with_exhausted_quota_is_rate_limited(
        self, make_response, sleeps
    ):
        client = _make_client()
        client._send = MagicMock(
            side_effect=[
                make_response(403, headers={"X-RateLimit-Remaining": "0"}),
                make_response(200, {"sha": "abc"}),
            ]
        )

        assert await client.get_file_sha("a.md") == "abc"
        assert _slept(sleeps) == [1.0]

    async def test_plain_403_is_not_rate_limited(self, make_response, sleeps):
        client = _make_client()
        client._send = MagicMock(
            return_value=make_response(403, text="Resource not accessible")
        )

        with pytest.raises(RemoteStoreError) as exc_info:
            await client.get_file_sha("a.md")

        assert not isinstance(exc_info.value, RateLimitError)
        assert exc_info.value.status == 403
        assert client._send.call_count == 3
        sleeps.assert_not_awaited()

    async def test_transport_error_then_success(self, make_response, sleeps):
        client = _make_client()
        client._send = MagicMock(
            side_effect=[
                requests.ConnectionError("reset"),
                make_response(200, {"sha": "abc"}),
            ]
        )

        assert await client.get_file_sha("a.md") == "abc"
        assert _slept(sleeps) == [1.0]

    async def test_transport_errors_exhaust_budget(self, sleeps):
        client = _make_client(max_retries=2)
        client._send = MagicMock(side_effect=requests.Timeout("slow"))

        with pytest.raises(RemoteStoreError, match="slow"):
            await client.get_file_sha("a.md")

        assert client._send.call_count == 2
        assert _slept(sleeps) == [1.0]

    async def test_server_error_then_success(self, make_response, sleeps):
        client = _make_client()
        client._send = MagicMock(
            side_effect=[
                make_response(502, text="Bad Gateway"),
                make_response(200, {"sha": "abc"}),
            ]
        )

        assert await client.get_file_sha("a.md") == "abc"
        sleeps.assert_not_awaited()


class TestReads:
    """Tests for get_file_sha, read_file, list_directory and validate_connection."""

    async def test_get_file_sha_missing(self, make_response):
        client = _make_client()
        client._send = MagicMock(return_value=make_response(404))
        assert await client.get_file_sha("a.md") is None

    async def test_get_file_sha_of_directory_is_none(self, make_response):
        client = _make_client()
        client._send = MagicMock(return_value=make_response(200, []))
        assert await client.get_file_sha("posts") is None

    async def test_read_file_decodes_base64_with_newlines(self, make_response):
        client = _make_client()
        encoded = base64.b64encode("héllo wörld".encode()).decode()
        wrapped = encoded[:8] + "\n" + encoded[8:]
        client._send = MagicMock(
            return_value=make_response(
                200, {"encoding": "base64", "content": wrapped}
            )
        )

        assert await client.read_file("a.md") == "héllo wörld"

    async def test_read_file_missing(self, make_response):
        client = _make_client()
        client._send = MagicMock(return_value=make_response(404))
        assert await client.read_file("a.md") is None

    async def test_list_directory(self, make_response):
        client = _make_client()
        client._send = MagicMock(
            return_value=make_response(
                200,
                [
                    {"name": "a", "path": "posts/a", "sha": "1", "type": "dir"},
                    {"name": "x.md", "path": "posts/x.md", "sha": "2", "type": "file"},
                ],
            )
        )

        entries = await client.list_directory("posts")

        assert [(e.name, e.type) for e in entries] == [("a", "dir"), ("x.md", "file")]

    async def test_list_directory_missing_is_empty(self, make_response):
        client = _make_client()
        client._send = MagicMock(return_value=make_response(404))
        assert await client.list_directory("posts") == []

    async def test_validate_connection(self, make_response):
        client = _make_client()
        client._send = MagicMock(
            return_value=make_response(200, {"full_name": "octo/site"})
        )

        assert await client.validate_connection() == "octo/site"
        assert client._send.call_args.args[1] == BASE

    async def test_validate_connection_unknown_repo(self, make_response):
        client = _make_client()
        client._send = MagicMock(return_value=make_response(404))

        with pytest.raises(RemoteStoreError):
            await client.validate_connection()


class TestDeleteFile:
    """Tests for delete_file."""

    async def test_delete_sends_sha_and_branch(self, make_response):
        client = _make_client()
        client._send = MagicMock(return_value=make_response(200, {"commit": {}}))

        await client.delete_file("posts/a/index.md", "abc", "Remove stale file")

        method, url, payload, _ = client._send.call_args.args
        assert method == "DELETE"
        assert url == f"{BASE}/contents/posts/a/index.md"
        assert payload == {
            "message": "Remove stale file",
            "sha": "abc",
            "branch": "main",
        }

    async def test_delete_requires_sha(self):
        client = _make_client()
        client._send = MagicMock()

        with pytest.raises(ValueError):
            await client.delete_file("posts/a/index.md", "", "msg")

        client._send.assert_not_called()

    async def test_delete_missing_file_raises(self, make_response):
        client = _make_client()
        client._send = MagicMock(return_value=make_response(404))

        with pytest.raises(RemoteStoreError) as exc_info:
            await client.delete_file("posts/a/index.md", "abc", "msg")

        assert exc_info.value.status == 404


@pytest.mark.live
class TestLiveRepository:
    """Round trip against a real repository (GITHUB_* env vars)."""

    async def test_validate_connection_live(self):
        from vault_publish.config import load_config

        client = GitHubClient(load_config())
        assert "/" in await client.validate_connection()
