"""Pydantic models returned by the remote store client."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class UploadResult(BaseModel):
    """Outcome of one idempotent write.

    Attributes:
        uploaded: False when the remote already held identical bytes.
        sha: Git blob SHA of the stored content.
        path: Repository path that was written.
    """

    uploaded: bool
    sha: str
    path: str

    model_config = {"frozen": True}


class RemoteEntry(BaseModel):
    """One item of a repository directory listing."""

    name: str
    path: str
    sha: str
    type: Literal["file", "dir"]

    model_config = {"frozen": True}
