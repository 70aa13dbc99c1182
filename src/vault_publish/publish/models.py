"""Pydantic models for the publish pipeline.

- ``VaultEntry``: A file or folder of the local vault.
- ``AssetReference``: An image referenced by a document, with its target.
- ``ProcessedContent``: Output of asset extraction for one document.
- ``PublishResult``: Outcome of publishing one document remotely.
- ``PublishSummary``: Aggregate counts for a whole publish run.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class VaultEntry(BaseModel):
    """A file or folder of the vault.

    Attributes:
        path: Vault-relative POSIX path (e.g. ``"posts/hello/index.md"``).
        is_folder: True for directories.
    """

    path: str
    is_folder: bool = False

    model_config = {"frozen": True}

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def stem(self) -> str:
        name = self.name
        if self.is_folder or "." not in name.lstrip("."):
            return name
        return name.rsplit(".", 1)[0]

    @property
    def extension(self) -> str:
        """Lower-cased extension without the dot, or ``""``."""
        name = self.name
        if self.is_folder or "." not in name.lstrip("."):
            return ""
        return name.rsplit(".", 1)[1].lower()

    @property
    def parent_name(self) -> str:
        """Name of the containing folder (``""`` at the vault root)."""
        parts = self.path.split("/")
        return parts[-2] if len(parts) > 1 else ""


class AssetReference(BaseModel):
    """An image a document embeds, resolved to a vault file.

    Attributes:
        source: The resolved vault file.
        original_link: Link text exactly as matched in the document.
        target_filename: Sanitized filename used in the repository.
        target_path: ``<target_directory>/<target_filename>``.
    """

    source: VaultEntry
    original_link: str
    target_filename: str
    target_path: str

    model_config = {"frozen": True}


class ProcessedContent(BaseModel):
    """Rewritten document text plus the assets it needs uploaded."""

    rewritten: str
    assets: list[AssetReference] = []
    warnings: list[str] = []

    model_config = {"frozen": True}


class PublishResult(BaseModel):
    """Outcome of publishing one document to the remote store.

    ``repo_path``, ``content_sha`` and ``asset_paths`` are what the manifest
    records for the post; ``asset_paths`` lists only assets that were stored.
    """

    success: bool
    slug: str
    markdown_uploaded: bool = False
    assets_uploaded: int = 0
    assets_skipped: int = 0
    warnings: list[str] = []
    error: str | None = None
    repo_path: str = ""
    content_sha: str = ""
    asset_paths: list[str] = []

    model_config = {"frozen": True}


class PublishSummary(BaseModel):
    """Counts and messages accumulated over a publish run."""

    posts_published: int = 0
    assets_uploaded: int = 0
    assets_skipped: int = 0
    files_deleted: int = 0
    posts_skipped: int = 0
    posts_invalid: int = 0
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    cancelled: bool = False
