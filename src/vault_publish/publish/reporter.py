"""Progress reporting and publish summary formatting.

- ``ProgressReporter`` -- throttled progress messages during a run.
- ``format_publish_summary`` -- human-readable post-run summary.
- ``summary_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from .models import PublishSummary

logger = logging.getLogger(__name__)

THROTTLE_SECONDS = 0.5

ProgressCallback = Callable[[str], None]


class ProgressReporter:
    """Report progress of a publish run.

    Messages go to the module logger and, when given, to *callback* (the
    CLI prints them, the MCP server forwards them to its log).  ``status``
    messages are throttled to one every ``THROTTLE_SECONDS``.

    Args:
        callback: Optional sink for progress messages.
        clock: Monotonic time source, replaceable in tests.
    """

    def __init__(
        self,
        callback: ProgressCallback | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._callback = callback
        self._clock = clock
        self.total = 0
        self.current = 0
        self._last_update: float | None = None

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 0
        return round(self.current / self.total * 100)

    def _emit(self, message: str) -> None:
        logger.info(message)
        if self._callback is not None:
            self._callback(message)

    def start(self, total: int, message: str | None = None) -> None:
        """Begin tracking a batch of *total* items."""
        self.total = total
        self.current = 0
        self._last_update = None
        self._emit(message or f"Publishing {total} files...")

    def status(self, message: str) -> bool:
        """Emit a throttled progress message.

        Returns:
            True if the message was emitted, False if it was throttled.
        """
        now = self._clock()
        if (
            self._last_update is not None
            and now - self._last_update < THROTTLE_SECONDS
        ):
            return False
        self._last_update = now
        self._emit(f"[{self.percent}%] {message}")
        return True

    def increment(self) -> None:
        """Count one finished item without emitting anything."""
        self.current += 1

    def warn(self, message: str) -> None:
        logger.warning("Publish warning: %s", message)

    def error(self, message: str) -> None:
        logger.error("Publish error: %s", message)
        if self._callback is not None:
            self._callback(f"Error: {message}")

    def complete(self, summary: PublishSummary) -> None:
        """Emit the one-line completion message and log all messages."""
        self._emit(summary_headline(summary))
        for warning in summary.warnings:
            logger.warning("Publish warning: %s", warning)
        for error in summary.errors:
            logger.error("Publish error: %s", error)


# ------------------------------------------------------------------
# Human-readable summary
# ------------------------------------------------------------------


def summary_headline(summary: PublishSummary) -> str:
    """One-line summary listing only the non-zero counts."""
    parts: list[str] = []
    if summary.posts_published:
        parts.append(f"{summary.posts_published} published")
    if summary.assets_uploaded:
        parts.append(f"{summary.assets_uploaded} assets")
    if summary.assets_skipped:
        parts.append(f"{summary.assets_skipped} unchanged")
    if summary.files_deleted:
        parts.append(f"{summary.files_deleted} deleted")
    if summary.posts_skipped:
        parts.append(f"{summary.posts_skipped} skipped")
    if summary.posts_invalid:
        parts.append(f"{summary.posts_invalid} invalid")

    prefix = "Publish cancelled" if summary.cancelled else "Publish complete"
    if not parts:
        return f"{prefix}: no changes"
    return f"{prefix}: {', '.join(parts)}"


def format_publish_summary(summary: PublishSummary) -> str:
    """Format a publish summary as multi-line text.

    Warning and error sections are only included when non-empty.

    Args:
        summary: The completed publish summary.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = [summary_headline(summary), ""]

    if summary.cancelled:
        lines.append("Run was cancelled: stale files were not deleted.")
        lines.append("")

    if summary.warnings:
        lines.append(f"Warnings ({len(summary.warnings)}):")
        for warning in summary.warnings:
            lines.append(f"  {warning}")
        lines.append("")

    if summary.errors:
        lines.append(f"Errors ({len(summary.errors)}):")
        for error in summary.errors:
            lines.append(f"  {error}")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def summary_to_json(summary: PublishSummary) -> dict:
    """Convert a publish summary to a dict for MCP ``structuredContent``."""
    return {
        "cancelled": summary.cancelled,
        "counts": {
            "published": summary.posts_published,
            "assets_uploaded": summary.assets_uploaded,
            "assets_unchanged": summary.assets_skipped,
            "deleted": summary.files_deleted,
            "skipped": summary.posts_skipped,
            "invalid": summary.posts_invalid,
        },
        "warnings": list(summary.warnings),
        "errors": list(summary.errors),
    }
