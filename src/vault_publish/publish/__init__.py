"""Publish pipeline: frontmatter checks, asset extraction, orchestration.

Modules:

- ``assets``      -- ``extract_assets``, ``compute_slug``,
  ``sanitize_filename``: image discovery and link rewriting.
- ``frontmatter`` -- ``validate_frontmatter``, ``strip_publish_flag``.
- ``models``      -- ``VaultEntry``, ``AssetReference``,
  ``ProcessedContent``, ``PublishResult``, ``PublishSummary``.
- ``publisher``   -- ``Publisher``: runs a full publish.
- ``reporter``    -- ``ProgressReporter`` and summary formatting.
"""

from .assets import compute_slug, extract_assets, sanitize_filename
from .frontmatter import strip_publish_flag, validate_frontmatter
from .models import (
    AssetReference,
    ProcessedContent,
    PublishResult,
    PublishSummary,
    VaultEntry,
)
from .publisher import ClientCache, Publisher
from .reporter import (
    ProgressReporter,
    format_publish_summary,
    summary_to_json,
)

__all__ = [
    "AssetReference",
    "ClientCache",
    "ProcessedContent",
    "ProgressReporter",
    "PublishResult",
    "PublishSummary",
    "Publisher",
    "VaultEntry",
    "compute_slug",
    "extract_assets",
    "format_publish_summary",
    "sanitize_filename",
    "strip_publish_flag",
    "summary_to_json",
    "validate_frontmatter",
]
