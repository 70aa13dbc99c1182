"""Local vault access: link resolution, discovery, encoding-aware reads.

``LocalVault`` is the source store of a publish run.  It implements the
``LinkResolver`` protocol used by asset extraction, lists Markdown
documents and creates new posts.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from pathlib import Path

import yaml
from charset_normalizer import from_bytes

from vault_publish.publish.models import VaultEntry

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = (".md", ".markdown")

_UNSAFE_TITLE_RE = re.compile(r'[\\/:*?"<>|]')


def read_text_with_encoding(path: Path) -> tuple[str, str]:
    """Read a text file with automatic encoding detection.

    Defaults to UTF-8 for empty files or when detection fails.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


class LocalVault:
    """A directory of Markdown documents and their attachments.

    Hidden files and folders (``.obsidian``, ``.git``, ...) are never listed
    or resolved.

    Args:
        root: Vault root directory.

    Raises:
        ValueError: If *root* is not an existing directory.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser().resolve()
        if not self.root.is_dir():
            raise ValueError(f"Vault directory not found: {root}")
        self._files: list[VaultEntry] | None = None

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _entry_for(self, path: Path) -> VaultEntry | None:
        """Map an absolute path to a vault entry, or None if outside/hidden."""
        try:
            relative = path.resolve().relative_to(self.root)
        except ValueError:
            return None
        if not relative.parts or any(p.startswith(".") for p in relative.parts):
            return None
        if not path.exists():
            return None
        return VaultEntry(path=relative.as_posix(), is_folder=path.is_dir())

    def absolute_path(self, entry: VaultEntry) -> Path:
        return self.root / entry.path

    # ------------------------------------------------------------------
    # LinkResolver protocol
    # ------------------------------------------------------------------

    def resolve_link(
        self, link_text: str, from_path: str
    ) -> VaultEntry | None:
        """Resolve *link_text* as seen from the document at *from_path*.

        Tries, in order: relative to the document's folder, relative to the
        vault root, then the shortest vault path ending in *link_text*.
        """
        link = link_text.strip().split("#", 1)[0].strip()
        if not link:
            return None

        source_dir = (self.root / from_path).parent
        for candidate in (source_dir / link, self.root / link.lstrip("/")):
            entry = self._entry_for(candidate)
            if entry is not None:
                return entry

        suffix = "/" + link.lstrip("/")
        matches = [
            e
            for e in self.list_files()
            if e.path == link or e.path.endswith(suffix)
        ]
        if not matches:
            return None
        return min(matches, key=lambda e: (e.path.count("/"), e.path))

    def list_files(self) -> list[VaultEntry]:
        """All non-hidden files in the vault, sorted by path."""
        if self._files is None:
            entries = []
            for path in self.root.rglob("*"):
                if not path.is_file():
                    continue
                entry = self._entry_for(path)
                if entry is not None:
                    entries.append(entry)
            self._files = sorted(entries, key=lambda e: e.path)
        return list(self._files)

    def refresh(self) -> None:
        """Forget the cached file listing."""
        self._files = None

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def iter_markdown(self) -> list[VaultEntry]:
        """All Markdown documents in the vault, sorted by path."""
        return [
            e
            for e in self.list_files()
            if e.path.lower().endswith(MARKDOWN_EXTENSIONS)
        ]

    def get_entry(self, path: str) -> VaultEntry | None:
        """Look up a vault-relative (or absolute) path."""
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / path
        return self._entry_for(candidate)

    def read_text(self, entry: VaultEntry) -> str:
        content, encoding = read_text_with_encoding(self.absolute_path(entry))
        if encoding != "utf-8":
            logger.debug("Read %s as %s", entry.path, encoding)
        return content

    def read_binary(self, entry: VaultEntry) -> bytes:
        return self.absolute_path(entry).read_bytes()

    # ------------------------------------------------------------------
    # New posts
    # ------------------------------------------------------------------

    def create_post(self, title: str, today: date | None = None) -> VaultEntry:
        """Create ``<slug>/index.md`` with publishable frontmatter.

        Args:
            title: Post title; path-unsafe characters become ``-`` in the
                folder name.
            today: Date written to the ``date`` property (default: today).

        Returns:
            The entry of the created document.

        Raises:
            ValueError: If the title is empty or starts with a dot.
            FileExistsError: If the post folder already exists.
        """
        title = title.strip()
        if not title:
            raise ValueError("Post title is required")

        folder_name = _UNSAFE_TITLE_RE.sub("-", title)
        if folder_name.startswith("."):
            raise ValueError(f"Invalid post title: {title}")
        folder = self.root / folder_name
        if folder.exists():
            raise FileExistsError(f"Post already exists: {folder_name}")

        frontmatter = yaml.safe_dump(
            {
                "title": title,
                "date": today or date.today(),
                "publish": True,
            },
            sort_keys=False,
            allow_unicode=True,
        )
        folder.mkdir(parents=True)
        target = folder / "index.md"
        target.write_text(f"---\n{frontmatter}---\n\n", encoding="utf-8")
        self.refresh()

        logger.info("Created new post: %s", target)
        return VaultEntry(path=f"{folder_name}/index.md")
