"""Core remote-store client functionality shared between CLI and MCP server."""

from .async_utils import run_sync
from .blob import git_blob_sha
from .client import GitHubClient
from .errors import RateLimitError, RemoteStoreError, UnexpectedResponseError

__all__ = [
    "GitHubClient",
    "RateLimitError",
    "RemoteStoreError",
    "UnexpectedResponseError",
    "git_blob_sha",
    "run_sync",
]
