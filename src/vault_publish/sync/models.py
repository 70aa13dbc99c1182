"""Pydantic models for the publish manifest.

Defines the data contracts used by the manifest reconciliation:

- ``ManifestPost``: Remote artifacts of one published document.
- ``PublishManifest``: Versioned record persisted in the repository.
- ``DeletionCandidate``: A remote path scheduled for deletion.
- ``SyncOperations``: Result of diffing the previous and current run.

Manifest models serialise with the camelCase keys of the persisted JSON
(``vaultPath``, ``repoPath``, ``contentSha``, ``lastPublish``).
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

MANIFEST_VERSION = 1


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class ManifestPost(BaseModel):
    """Remote artifacts belonging to one published document.

    Attributes:
        vault_path: Vault-relative path of the source document.
        repo_path: Repository path of the published document.
        assets: Repository paths of the assets uploaded with it.
        content_sha: Digest used for change detection on the next run.
    """

    vault_path: str = Field(alias="vaultPath")
    repo_path: str = Field(alias="repoPath")
    assets: list[str] = Field(default_factory=list)
    content_sha: str = Field(alias="contentSha")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class PublishManifest(BaseModel):
    """Record of everything the last successful run published.

    Attributes:
        version: Schema version; anything but ``MANIFEST_VERSION`` is ignored.
        last_publish: ISO 8601 timestamp of the run that wrote it.
        posts: Mapping of slug to ``ManifestPost``.
    """

    version: int = MANIFEST_VERSION
    last_publish: str = Field(default_factory=utc_now_iso, alias="lastPublish")
    posts: dict[str, ManifestPost] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)

    def to_json_dict(self) -> dict:
        """Dump using the persisted camelCase keys."""
        return self.model_dump(by_alias=True)


class DeletionCandidate(BaseModel):
    """A stale remote path; ``sha`` stays empty until fetched at delete time."""

    path: str
    sha: str = ""

    model_config = {"frozen": True}


class SyncOperations(BaseModel):
    """Paths to delete and the slugs that disappeared since the last run."""

    paths_to_delete: list[DeletionCandidate] = []
    removed_slugs: list[str] = []

    model_config = {"frozen": True}
