"""Shared pytest fixtures for vault-publish tests."""

from unittest.mock import MagicMock

import pytest
from dotenv import load_dotenv

from vault_publish.config import Config
from vault_publish.core.blob import git_blob_sha, to_bytes
from vault_publish.core.errors import RemoteStoreError
from vault_publish.core.models import RemoteEntry, UploadResult

load_dotenv()


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live GitHub repository",
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture(autouse=True)
def fresh_request_gate():
    """Give every test its own request semaphore (bound to its own loop)."""
    import vault_publish.core.async_utils as mod

    original = mod._semaphore
    mod._semaphore = None
    yield
    mod._semaphore = original


@pytest.fixture
def mock_config():
    """Create a Config instance for testing."""
    return Config(
        github_owner="octo",
        github_repo="site",
        github_token="ghp_test",
        github_branch="main",
        content_directory="src/content/posts",
    )


@pytest.fixture
def mock_github_client(mock_config):
    """Create a mock GitHubClient instance for testing."""
    from vault_publish.core.client import GitHubClient

    client = MagicMock(spec=GitHubClient)
    client.config = mock_config
    return client


class FakeRemoteStore:
    """In-memory stand-in for GitHubClient's public async API.

    Stores raw bytes per path and reports git blob SHAs, so the
    content-addressed skip behaves exactly like the real client.

    Attributes:
        files: Mapping of repository path to stored bytes.
        writes: Paths that were actually transferred, in order.
        deletes: Paths that were deleted, in order.
        fail_writes: Paths whose writes raise RemoteStoreError.
        fail_deletes: Paths whose deletes raise RemoteStoreError.
        fail_reads: When True, every read raises RemoteStoreError.
    """

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.writes: list[str] = []
        self.deletes: list[str] = []
        self.fail_writes: set[str] = set()
        self.fail_deletes: set[str] = set()
        self.fail_reads = False

    async def get_file_sha(self, path):
        if self.fail_reads:
            raise RemoteStoreError("simulated outage", status=500, path=path)
        raw = self.files.get(path)
        return git_blob_sha(raw) if raw is not None else None

    async def read_file(self, path):
        if self.fail_reads:
            raise RemoteStoreError("simulated outage", status=500, path=path)
        raw = self.files.get(path)
        return raw.decode("utf-8") if raw is not None else None

    async def write_file(self, path, content, message):
        if path in self.fail_writes:
            raise RemoteStoreError(
                f"GitHub API error: 500 - write {path}", status=500, path=path
            )
        raw = to_bytes(content)
        sha = git_blob_sha(raw)
        if path in self.files and git_blob_sha(self.files[path]) == sha:
            return UploadResult(uploaded=False, sha=sha, path=path)
        self.files[path] = raw
        self.writes.append(path)
        return UploadResult(uploaded=True, sha=sha, path=path)

    async def delete_file(self, path, sha, message):
        if path in self.fail_deletes:
            raise RemoteStoreError(
                f"GitHub API error: 409 - delete {path}", status=409, path=path
            )
        if path not in self.files:
            raise RemoteStoreError(
                f"GitHub API error: 404 - DELETE {path} not found",
                status=404,
                path=path,
            )
        del self.files[path]
        self.deletes.append(path)

    async def list_directory(self, path):
        prefix = path.rstrip("/") + "/"
        return [
            RemoteEntry(
                name=p[len(prefix):],
                path=p,
                sha=git_blob_sha(raw),
                type="file",
            )
            for p, raw in sorted(self.files.items())
            if p.startswith(prefix) and "/" not in p[len(prefix):]
        ]


@pytest.fixture
def fake_store():
    """Create an empty in-memory remote store."""
    return FakeRemoteStore()


@pytest.fixture
def make_response():
    """Factory fixture for creating requests.Response mocks."""

    def _create_response(status_code=200, json_data=None, headers=None, text=""):
        import json as _json
        from unittest.mock import Mock

        import requests
        from requests.structures import CaseInsensitiveDict

        response = Mock(spec=requests.Response)
        response.status_code = status_code
        response.headers = CaseInsensitiveDict(headers or {})
        if json_data is not None:
            body = _json.dumps(json_data)
            response.content = body.encode()
            response.text = body
            response.json.return_value = json_data
        else:
            response.content = text.encode()
            response.text = text
            response.json.side_effect = ValueError("no json")
        return response

    return _create_response
