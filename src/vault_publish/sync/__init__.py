"""Manifest-based reconciliation of published content.

Each publish run records the posts it published in a manifest stored in the
target repository.  The next run diffs the previous manifest against the
posts it published itself and deletes the remote files of posts that have
disappeared from the vault.

Modules:

- ``manifest`` -- ``SyncManifest``: load, diff, delete and save.
- ``models``   -- ``ManifestPost``, ``PublishManifest``,
  ``DeletionCandidate``, ``SyncOperations``: data contracts.

Usage example
-------------
::

    from vault_publish.sync import SyncManifest

    manifest = SyncManifest(client, "src/content/posts")
    await manifest.load()
    manifest.register_published(
        "hello-world",
        "posts/hello-world.md",
        "src/content/posts/hello-world/index.md",
        ["src/content/posts/hello-world/cover.png"],
        content_sha,
    )
    operations = manifest.compute_deletions()
    deleted = await manifest.execute_deletions(operations)
    await manifest.save()
"""

from .manifest import MANIFEST_PATH, SyncManifest
from .models import (
    MANIFEST_VERSION,
    DeletionCandidate,
    ManifestPost,
    PublishManifest,
    SyncOperations,
)

__all__ = [
    "MANIFEST_PATH",
    "MANIFEST_VERSION",
    "DeletionCandidate",
    "ManifestPost",
    "PublishManifest",
    "SyncManifest",
    "SyncOperations",
]
