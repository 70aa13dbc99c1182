"""Publish orchestration.

``Publisher`` ties together the vault, asset extraction, the remote client
and the sync manifest into a complete publish run.  It:

1. Loads the previous manifest (when sync is enabled).
2. Filters documents by their frontmatter.
3. Publishes each document: assets first, then the rewritten text.
4. Records every published post in the new manifest.
5. Deletes the remote files of posts that disappeared and saves the manifest.

Error handling is per-document: a single failure does not abort the run,
and a document that fails keeps its previous manifest entry so its remote
files survive until it publishes again.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from vault_publish.config import Config
from vault_publish.core.async_utils import gather_limited, run_sync
from vault_publish.core.client import GitHubClient
from vault_publish.core.errors import RemoteStoreError
from vault_publish.core.models import UploadResult
from vault_publish.publish.assets import compute_slug, extract_assets
from vault_publish.publish.frontmatter import (
    strip_publish_flag,
    validate_frontmatter,
)
from vault_publish.publish.models import (
    AssetReference,
    PublishResult,
    PublishSummary,
    VaultEntry,
)
from vault_publish.publish.reporter import ProgressReporter
from vault_publish.sync.manifest import SyncManifest
from vault_publish.sync.models import PublishManifest

if TYPE_CHECKING:
    from vault_publish.vault import LocalVault

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.md"


class ClientCache:
    """Hold one remote client per configuration.

    The client is rebuilt whenever the fields returned by
    ``Config.cache_key()`` change, and dropped by ``invalidate()``.

    Args:
        factory: Callable building a client from a config.
    """

    def __init__(
        self, factory: Callable[[Config], GitHubClient] = GitHubClient
    ) -> None:
        self._factory = factory
        self._key: tuple | None = None
        self._client: GitHubClient | None = None

    def get(self, config: Config) -> GitHubClient | None:
        """Return the client for *config*, or None if it is incomplete."""
        if not (
            config.github_owner and config.github_repo and config.github_token
        ):
            return None
        key = config.cache_key()
        if self._client is None or key != self._key:
            self._client = self._factory(config)
            self._key = key
        return self._client

    def invalidate(self) -> None:
        self._client = None
        self._key = None


class Publisher:
    """Publish vault documents to the remote repository and/or a local folder.

    Args:
        config: Active configuration.
        vault: Source store the documents are read from.
        clients: Client cache; a private one is created when omitted.
    """

    def __init__(
        self,
        config: Config,
        vault: LocalVault,
        clients: ClientCache | None = None,
    ) -> None:
        self.config = config
        self.vault = vault
        self._clients = clients or ClientCache()

    def update_config(self, config: Config) -> None:
        """Switch to *config*; the next run builds a fresh client."""
        self.config = config
        self._clients.invalidate()

    def get_client(self) -> GitHubClient | None:
        return self._clients.get(self.config)

    def target_directory(self, slug: str) -> str:
        return f"{self.config.content_directory}/{slug}"

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    async def publish_all(
        self,
        files: list[VaultEntry] | None = None,
        reporter: ProgressReporter | None = None,
        cancel: asyncio.Event | None = None,
    ) -> PublishSummary:
        """Publish every eligible document in *files*.

        The vault listing is rebuilt at the start of every run, so documents
        and images added since the previous run are found.

        Args:
            files: Candidate documents; every Markdown document in the vault
                when omitted.
            reporter: Progress sink; a logging-only reporter when omitted.
            cancel: Checked between documents.  Once set, the remaining
                documents are skipped, no stale file is deleted and the
                manifest is not saved.

        Returns:
            Summary of the run.
        """
        self.vault.refresh()
        if files is None:
            files = await run_sync(self.vault.iter_markdown)

        reporter = reporter or ProgressReporter()
        summary = PublishSummary()
        client = self.get_client()

        manifest: SyncManifest | None = None
        if client is not None and self.config.enable_sync:
            manifest = SyncManifest(client, self.config.content_directory)
            await manifest.load()

        eligible = await self._filter_eligible(files, summary)
        reporter.start(len(eligible), f"Publishing {len(eligible)} posts...")

        seen_slugs: dict[str, str] = {}
        for entry in eligible:
            if cancel is not None and cancel.is_set():
                summary.cancelled = True
                logger.warning(
                    "Publish cancelled with %d posts remaining",
                    reporter.total - reporter.current,
                )
                break

            slug = compute_slug(entry)
            if slug in seen_slugs:
                summary.warnings.append(
                    f"{entry.name}: slug '{slug}' is also used by "
                    f"{seen_slugs[slug]}"
                )
            seen_slugs[slug] = entry.path
            reporter.status(f"Publishing: {entry.stem}")

            try:
                await self._publish_entry(entry, slug, client, manifest, summary)
            except (RemoteStoreError, OSError, ValueError) as exc:
                logger.error("Error publishing %s: %s", entry.path, exc)
                summary.errors.append(f"{entry.name}: {exc}")
                if manifest is not None:
                    manifest.carry_forward(slug)

            reporter.increment()

        if manifest is not None and not summary.cancelled:
            await self._reconcile(manifest, reporter, summary)

        reporter.complete(summary)
        return summary

    async def _filter_eligible(
        self, files: list[VaultEntry], summary: PublishSummary
    ) -> list[VaultEntry]:
        eligible: list[VaultEntry] = []
        for entry in files:
            try:
                content = await run_sync(self.vault.read_text, entry)
            except OSError as exc:
                summary.errors.append(f"{entry.name}: {exc}")
                continue

            validation = validate_frontmatter(content)
            if validation.ignore:
                summary.posts_skipped += 1
                continue
            if not validation.is_valid:
                summary.posts_invalid += 1
                for error in validation.errors:
                    summary.warnings.append(f"{entry.name}: {error}")
                continue
            eligible.append(entry)
        return eligible

    async def _publish_entry(
        self,
        entry: VaultEntry,
        slug: str,
        client: GitHubClient | None,
        manifest: SyncManifest | None,
        summary: PublishSummary,
    ) -> None:
        local_enabled = bool(self.config.local_output_path)
        local_ok = False
        if local_enabled:
            local_ok = await run_sync(self.publish_to_local, entry)
            if not local_ok:
                summary.errors.append(f"Local publish failed: {entry.name}")

        if client is None:
            if local_ok:
                summary.posts_published += 1
            elif not local_enabled:
                summary.warnings.append(
                    f"{entry.name}: No publish destination configured"
                )
            return

        result = await self.publish_document(entry, client)
        if result.success:
            summary.posts_published += 1
            summary.assets_uploaded += result.assets_uploaded
            summary.assets_skipped += result.assets_skipped
            if manifest is not None:
                manifest.register_published(
                    slug,
                    entry.path,
                    result.repo_path,
                    result.asset_paths,
                    result.content_sha,
                )
        else:
            summary.errors.append(
                f"Remote publish failed: {entry.name} - "
                f"{result.error or 'Unknown error'}"
            )
            if manifest is not None:
                manifest.carry_forward(slug)

        for warning in result.warnings:
            summary.warnings.append(f"{entry.name}: {warning}")

    async def _reconcile(
        self,
        manifest: SyncManifest,
        reporter: ProgressReporter,
        summary: PublishSummary,
    ) -> None:
        try:
            reporter.status("Checking for stale content...")
            operations = manifest.compute_deletions()
            if operations.paths_to_delete:
                reporter.status(
                    f"Deleting {len(operations.paths_to_delete)} stale files..."
                )
                summary.files_deleted = await manifest.execute_deletions(
                    operations
                )
            await manifest.save()
        except (RemoteStoreError, ValueError) as exc:
            logger.error("Sync error: %s", exc)
            summary.warnings.append(f"Sync error: {exc}")

    # ------------------------------------------------------------------
    # Single document
    # ------------------------------------------------------------------

    async def publish(self, entry: VaultEntry) -> bool:
        """Publish one document to every configured destination.

        The manifest is not touched; the next full run records the post.

        Returns:
            True if every destination succeeded.
        """
        self.vault.refresh()
        success = True

        if self.config.local_output_path:
            if not await run_sync(self.publish_to_local, entry):
                success = False

        client = self.get_client()
        if client is not None:
            result = await self.publish_document(entry, client)
            if not result.success:
                logger.error(
                    "Remote publish failed for %s: %s", entry.path, result.error
                )
                success = False

        return success

    async def publish_document(
        self, entry: VaultEntry, client: GitHubClient
    ) -> PublishResult:
        """Publish one document and its assets to the remote repository.

        Assets are uploaded concurrently (bounded by the client's request
        gate) and all of them finish before the document text is written.
        A failed asset becomes a warning; only a failure to read the
        document or to write its text fails the result.
        """
        slug = compute_slug(entry)
        target_dir = self.target_directory(slug)
        repo_path = f"{target_dir}/{INDEX_FILENAME}"
        warnings: list[str] = []
        assets_uploaded = 0
        assets_skipped = 0
        asset_paths: list[str] = []

        try:
            content = await run_sync(self.vault.read_text, entry)

            processed = extract_assets(content, entry, self.vault, target_dir)
            warnings.extend(processed.warnings)

            results = await gather_limited(
                [self._upload_asset(a, client) for a in processed.assets],
                return_exceptions=True,
            )
            for asset, result in zip(processed.assets, results):
                if isinstance(result, BaseException):
                    if not isinstance(result, Exception):
                        raise result
                    logger.warning(
                        "Asset upload failed for %s: %s", asset.target_path, result
                    )
                    warnings.append(
                        f"Asset upload failed ({asset.target_filename}): {result}"
                    )
                    continue
                asset_paths.append(asset.target_path)
                if result.uploaded:
                    assets_uploaded += 1
                else:
                    assets_skipped += 1

            final_text = strip_publish_flag(processed.rewritten)
            md_result = await client.write_file(
                repo_path, final_text, f"Publish: {entry.stem}"
            )
        except (RemoteStoreError, OSError, ValueError) as exc:
            logger.error("Failed to publish %s: %s", entry.path, exc)
            return PublishResult(
                success=False,
                slug=slug,
                assets_uploaded=assets_uploaded,
                assets_skipped=assets_skipped,
                warnings=warnings,
                error=str(exc),
                repo_path=repo_path,
            )

        logger.info(
            "Published %s -> %s (%s, %d assets uploaded, %d unchanged)",
            entry.path,
            repo_path,
            "uploaded" if md_result.uploaded else "unchanged",
            assets_uploaded,
            assets_skipped,
        )
        return PublishResult(
            success=True,
            slug=slug,
            markdown_uploaded=md_result.uploaded,
            assets_uploaded=assets_uploaded,
            assets_skipped=assets_skipped,
            warnings=warnings,
            repo_path=repo_path,
            content_sha=md_result.sha,
            asset_paths=asset_paths,
        )

    async def _upload_asset(
        self, asset: AssetReference, client: GitHubClient
    ) -> UploadResult:
        raw = await run_sync(self.vault.read_binary, asset.source)
        return await client.write_file(
            asset.target_path, raw, f"Add asset: {asset.target_filename}"
        )

    # ------------------------------------------------------------------
    # Local output
    # ------------------------------------------------------------------

    def publish_to_local(self, entry: VaultEntry) -> bool:
        """Write ``<local_output_path>/<slug>/index.md`` plus its assets.

        Blocking; ``publish_all`` runs it in a worker thread.

        Returns:
            False if no output folder is configured, it does not exist, or
            writing failed.
        """
        destination = self.config.local_output_path
        if not destination:
            return False

        root = Path(destination).expanduser()
        if not root.is_dir():
            logger.error("Destination folder does not exist: %s", root)
            return False

        slug = compute_slug(entry)
        try:
            post_folder = root / slug
            post_folder.mkdir(parents=True, exist_ok=True)

            content = self.vault.read_text(entry)
            processed = extract_assets(content, entry, self.vault, slug)
            for warning in processed.warnings:
                logger.warning("%s: %s", entry.name, warning)

            for asset in processed.assets:
                if not asset.target_filename:
                    logger.warning(
                        "%s: asset %s has no usable filename",
                        entry.name,
                        asset.source.path,
                    )
                    continue
                target = post_folder / asset.target_filename
                target.write_bytes(self.vault.read_binary(asset.source))

            (post_folder / INDEX_FILENAME).write_text(
                strip_publish_flag(processed.rewritten), encoding="utf-8"
            )
        except (OSError, ValueError) as exc:
            logger.error("Failed to publish %s locally: %s", entry.path, exc)
            return False

        logger.info("Published %s locally to %s", entry.path, post_folder)
        return True

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def publish_status(self) -> PublishManifest | None:
        """Load the remote manifest, or None if no client is configured."""
        client = self.get_client()
        if client is None:
            return None
        manifest = SyncManifest(client, self.config.content_directory)
        return await manifest.load()
