"""Publish manifest persistence and reconciliation.

The manifest is a JSON document stored in the target repository
(``.vault-publish/manifest.json``) recording every post the previous run
published, so a later run can delete the remote files of posts that no
longer exist in the vault.

Key design choices:

* **Two manifests** -- the manifest loaded at the start of a run (the
  *previous* view) is never mutated; the run accumulates a separately owned
  *current* manifest.  ``compute_deletions()`` diffs the two, so its result
  does not depend on registration order.
* **Never fatal** -- a missing, unparseable or foreign manifest is replaced
  by an empty one; a corrupt manifest must not abort a publish run.
* **Content-root fence** -- only paths under the configured content
  directory are ever scheduled for deletion, whatever the manifest says.
* **Idempotent save** -- the manifest is written through the client's
  content-addressed write, and ``lastPublish`` is only restamped when the
  posts changed, so re-saving an unchanged manifest moves no data.
"""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from vault_publish.core.client import GitHubClient
from vault_publish.core.errors import RemoteStoreError
from vault_publish.core.models import UploadResult
from vault_publish.sync.models import (
    MANIFEST_VERSION,
    DeletionCandidate,
    ManifestPost,
    PublishManifest,
    SyncOperations,
    utc_now_iso,
)
from vault_publish.validators import is_within_root

logger = logging.getLogger(__name__)

MANIFEST_PATH = ".vault-publish/manifest.json"


def create_empty_manifest() -> PublishManifest:
    """Return a fresh manifest with no posts."""
    return PublishManifest(
        version=MANIFEST_VERSION, last_publish=utc_now_iso(), posts={}
    )


def parse_manifest(content: str | None) -> PublishManifest | None:
    """Parse persisted manifest JSON.

    Returns:
        The manifest, or ``None`` if *content* is empty, not JSON, has a
        different version, or its ``posts`` field is not a mapping.  Post
        entries that fail validation are dropped with a warning; the rest
        are kept.
    """
    if not content:
        return None
    try:
        raw = json.loads(content)
    except ValueError:
        logger.warning("Publish manifest is not valid JSON, starting fresh")
        return None
    if not isinstance(raw, dict):
        return None
    if raw.get("version") != MANIFEST_VERSION:
        logger.warning(
            "Publish manifest version %r is not supported, starting fresh",
            raw.get("version"),
        )
        return None
    if not isinstance(raw.get("posts"), dict):
        return None

    posts: dict[str, ManifestPost] = {}
    for slug, entry in raw["posts"].items():
        try:
            posts[slug] = ManifestPost.model_validate(entry)
        except ValidationError as exc:
            logger.warning("Skipping malformed manifest entry %r: %s", slug, exc)

    last_publish = raw.get("lastPublish")
    return PublishManifest(
        version=MANIFEST_VERSION,
        last_publish=last_publish if isinstance(last_publish, str) else utc_now_iso(),
        posts=posts,
    )


class SyncManifest:
    """Load, diff and save the publish manifest for one repository.

    Args:
        client: Remote store client used for reads, deletes and the save.
        content_directory: Repository directory deletions must stay inside.
        manifest_path: Repository path of the manifest file.
    """

    def __init__(
        self,
        client: GitHubClient,
        content_directory: str,
        manifest_path: str = MANIFEST_PATH,
    ) -> None:
        self._client = client
        self._content_directory = content_directory
        self._manifest_path = manifest_path
        self._previous: PublishManifest | None = None
        self._current = create_empty_manifest()

    @property
    def previous(self) -> PublishManifest | None:
        """Manifest loaded from the repository (``None`` before ``load()``)."""
        return self._previous

    @property
    def current(self) -> PublishManifest:
        """Manifest being built during this run."""
        return self._current

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self) -> PublishManifest:
        """Fetch the persisted manifest.

        Transport failures and invalid content both degrade to an empty
        manifest; the reason is logged.
        """
        manifest: PublishManifest | None = None
        try:
            content = await self._client.read_file(self._manifest_path)
            manifest = parse_manifest(content)
        except (RemoteStoreError, UnicodeDecodeError, ValueError) as exc:
            logger.warning(
                "Could not load publish manifest, starting fresh: %s", exc
            )

        if manifest is None:
            manifest = create_empty_manifest()
        self._previous = manifest
        logger.info(
            "Loaded publish manifest with %d posts", len(manifest.posts)
        )
        return manifest

    async def save(self) -> UploadResult:
        """Write the current manifest back to the repository.

        Call this after all posts have been published and stale files
        deleted.
        """
        previous_posts = self._previous.posts if self._previous else None
        if previous_posts is not None and previous_posts == self._current.posts:
            self._current.last_publish = self._previous.last_publish
        else:
            self._current.last_publish = utc_now_iso()

        content = json.dumps(self._current.to_json_dict(), indent=2)
        result = await self._client.write_file(
            self._manifest_path, content, "Update publish manifest"
        )
        logger.info(
            "Publish manifest %s (%d posts)",
            "saved" if result.uploaded else "unchanged",
            len(self._current.posts),
        )
        return result

    # ------------------------------------------------------------------
    # Building the current manifest
    # ------------------------------------------------------------------

    def register_published(
        self,
        slug: str,
        vault_path: str,
        repo_path: str,
        assets: list[str],
        content_sha: str,
    ) -> None:
        """Record a successfully published post in the current manifest."""
        self._current.posts[slug] = ManifestPost(
            vault_path=vault_path,
            repo_path=repo_path,
            assets=list(assets),
            content_sha=content_sha,
        )

    def carry_forward(self, slug: str) -> bool:
        """Copy the previous entry for *slug* into the current manifest.

        Used for posts that still exist in the vault but failed to publish
        this run, so their remote files are not treated as stale.

        Returns:
            ``True`` if a previous entry existed and was copied.
        """
        if self._previous is None:
            return False
        entry = self._previous.posts.get(slug)
        if entry is None or slug in self._current.posts:
            return False
        self._current.posts[slug] = entry
        return True

    def reset(self) -> None:
        """Start a fresh current manifest for a new run."""
        self._current = create_empty_manifest()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_changed(self, slug: str, content_sha: str) -> bool:
        """Return ``True`` if *slug* should be re-published."""
        if self._previous is None:
            return True
        existing = self._previous.posts.get(slug)
        if existing is None:
            return True
        return existing.content_sha != content_sha

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def compute_deletions(self) -> SyncOperations:
        """Compute remote files belonging to posts that disappeared.

        Only the posts missing from the current manifest are considered;
        orphaned assets of posts that still exist are left alone.  Paths
        outside the content directory are never returned.
        """
        paths_to_delete: list[DeletionCandidate] = []
        removed_slugs: list[str] = []

        if self._previous is None:
            return SyncOperations()

        for slug, old_post in self._previous.posts.items():
            if slug in self._current.posts:
                continue
            removed_slugs.append(slug)

            for path in [old_post.repo_path, *old_post.assets]:
                if is_within_root(path, self._content_directory):
                    paths_to_delete.append(DeletionCandidate(path=path))
                else:
                    logger.warning(
                        "Refusing to delete %s: outside content directory %s",
                        path,
                        self._content_directory,
                    )

        return SyncOperations(
            paths_to_delete=paths_to_delete, removed_slugs=removed_slugs
        )

    async def execute_deletions(self, operations: SyncOperations) -> int:
        """Delete stale files, best-effort.

        The sha of each file is fetched immediately before deleting it;
        files that are already gone are skipped silently.  Failures are
        logged and do not stop the remaining deletions.

        Returns:
            Number of files actually deleted.
        """
        deleted = 0
        for item in operations.paths_to_delete:
            try:
                sha = await self._client.get_file_sha(item.path)
                if not sha:
                    continue
                await self._client.delete_file(
                    item.path, sha, f"Remove stale file: {item.path}"
                )
                deleted += 1
                logger.debug("Deleted stale file: %s", item.path)
            except (RemoteStoreError, ValueError) as exc:
                logger.warning(
                    "Failed to delete stale file %s: %s", item.path, exc
                )
        return deleted
