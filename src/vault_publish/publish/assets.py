"""Image asset extraction and link rewriting.

Finds the images a Markdown document embeds, resolves them to vault files
and rewrites each reference to a relative link pointing at a co-located,
sanitized copy of the file.

Two reference syntaxes are recognised:

- bracketed references: ``![[name]]`` and ``![[name|caption]]``
- standard Markdown images: ``![alt](path)``

Both are matched by a single left-to-right pass over the original text, so
a rewritten link is never scanned again.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol
from urllib.parse import unquote

from .models import AssetReference, ProcessedContent, VaultEntry

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset(
    {"png", "jpg", "jpeg", "gif", "svg", "webp", "avif", "bmp", "ico"}
)

PASS_THROUGH_PREFIXES = ("http://", "https://", "data:")

_IMAGE_LINK_RE = re.compile(
    r"(?P<wiki>!\[\[(?P<target>[^\]|]+)(?:\|[^\]]*)?\]\])"
    r"|(?P<markdown>!\[(?P<alt>[^\]]*)\]\((?P<path>[^)]+)\))"
)

_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9._-]")
_UNSAFE_SLUG_RE = re.compile(r'[\\/:*?"<>|]')
_WHITESPACE_RE = re.compile(r"\s+")


class LinkResolver(Protocol):
    """Lookup interface the extractor needs from the source store."""

    def resolve_link(
        self, link_text: str, from_path: str
    ) -> VaultEntry | None: ...

    def list_files(self) -> list[VaultEntry]: ...


def is_image_file(entry: VaultEntry) -> bool:
    """Return True if *entry* has an image extension."""
    return not entry.is_folder and entry.extension in IMAGE_EXTENSIONS


def sanitize_filename(filename: str) -> str:
    """Make *filename* safe for URLs and file systems.

    Whitespace runs become a single ``-``; every other character outside
    ``[A-Za-z0-9._-]`` is dropped.  The result may be empty.
    """
    return _UNSAFE_FILENAME_RE.sub("", _WHITESPACE_RE.sub("-", filename))


def compute_slug(entry: VaultEntry) -> str:
    """Derive the URL slug of a document.

    ``posts/hello.md`` gives ``hello``; ``posts/hello/index.md`` gives the
    folder name ``hello``.
    """
    slug = entry.stem
    if slug.lower() == "index" and entry.parent_name:
        slug = entry.parent_name
    return _WHITESPACE_RE.sub("-", _UNSAFE_SLUG_RE.sub("-", slug))


def _find_by_name(resolver: LinkResolver, link: str) -> VaultEntry | None:
    name = unquote(link.rsplit("/", 1)[-1])
    if not name:
        return None
    for entry in resolver.list_files():
        if entry.name == name:
            return entry
    return None


def extract_assets(
    content: str,
    source: VaultEntry,
    resolver: LinkResolver,
    target_directory: str,
) -> ProcessedContent:
    """Extract image assets from *content* and rewrite their links.

    Args:
        content: Raw Markdown text of the document.
        source: The document being processed; links resolve relative to it.
        resolver: Source store used to resolve link targets.
        target_directory: Repository (or local) directory the assets are
            copied into, without a trailing slash.  May be empty.

    Returns:
        ``ProcessedContent`` with the rewritten text, one ``AssetReference``
        per distinct resolved image (in first-seen order) and warnings for
        links that could not be resolved.
    """
    assets: dict[str, AssetReference] = {}
    warnings: list[str] = []

    def warn(message: str) -> None:
        if message not in warnings:
            warnings.append(message)

    def rewrite(match: re.Match[str]) -> str:
        original = match.group(0)
        if match.group("wiki") is not None:
            link = match.group("target")
            lookup = link
            unresolved = f"Could not resolve wikilink: {link}"
        else:
            link = match.group("path")
            lookup = unquote(link)
            unresolved = f"Could not resolve image link: {link}"

        if link.startswith(PASS_THROUGH_PREFIXES):
            return original

        entry = resolver.resolve_link(lookup, source.path)
        if entry is None:
            entry = _find_by_name(resolver, link)
        if entry is None:
            warn(unresolved)
            return original

        if entry.is_folder:
            warn(f"Link resolves to folder, not file: {link}")
            return original

        if not is_image_file(entry):
            # Non-image embeds (notes, PDFs) stay as they are
            return original

        asset = assets.get(entry.path)
        if asset is None:
            filename = sanitize_filename(entry.name)
            target_path = (
                f"{target_directory}/{filename}"
                if target_directory
                else filename
            )
            asset = AssetReference(
                source=entry,
                original_link=original,
                target_filename=filename,
                target_path=target_path,
            )
            assets[entry.path] = asset

        if match.group("wiki") is not None:
            caption = entry.stem
        else:
            caption = match.group("alt")
        return f"![{caption}]({asset.target_filename})"

    rewritten = _IMAGE_LINK_RE.sub(rewrite, content)

    logger.debug(
        "Extracted %d assets from %s (%d warnings)",
        len(assets),
        source.path,
        len(warnings),
    )
    return ProcessedContent(
        rewritten=rewritten,
        assets=list(assets.values()),
        warnings=warnings,
    )
