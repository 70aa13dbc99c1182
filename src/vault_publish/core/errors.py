"""Exceptions raised by the remote store client."""


class RemoteStoreError(Exception):
    """A remote store request failed.

    Attributes:
        status: HTTP status code, or None for transport-level failures.
        path: Repository path the request targeted, when known.
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        path: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.path = path


class RateLimitError(RemoteStoreError):
    """The remote store kept rate-limiting the request until retries ran out."""


class UnexpectedResponseError(RemoteStoreError):
    """A successful response did not have the expected shape (e.g. no content sha)."""
