"""YAML frontmatter checks that decide whether a document is published.

A document is published when its frontmatter says ``publish: true`` or
``draft: false`` and it carries both ``title`` and ``date``.  ``draft: true``
always wins and the document is ignored.
"""

from __future__ import annotations

import logging
import re

import yaml
from pydantic import BaseModel

logger = logging.getLogger(__name__)

_FRONTMATTER_RE = re.compile(r"\A---\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_PUBLISH_FLAG_RE = re.compile(
    r"^publish:[ \t]*(?:true|false)[ \t]*(?:\r?\n|\Z)", re.MULTILINE
)


class ValidationResult(BaseModel):
    """Outcome of checking one document's frontmatter.

    Attributes:
        is_valid: True when the document should be published.
        ignore: True when the document is not meant to be published at all
            (counted as skipped, not as invalid).
        errors: Reasons for ``ignore`` or for an invalid document.
    """

    is_valid: bool
    ignore: bool
    errors: list[str] = []

    model_config = {"frozen": True}


def parse_frontmatter(content: str) -> dict | None:
    """Return the frontmatter mapping of *content*, or None if it has none.

    Unparseable YAML and non-mapping frontmatter are treated as absent.
    """
    m = _FRONTMATTER_RE.match(content)
    if not m:
        return None
    try:
        data = yaml.safe_load(m.group(1))
    except yaml.YAMLError as exc:
        logger.warning("Invalid YAML frontmatter: %s", exc)
        return None
    if not isinstance(data, dict):
        return None
    return data


def validate_frontmatter(content: str) -> ValidationResult:
    """Decide whether the document *content* should be published."""
    metadata = parse_frontmatter(content)
    if metadata is None:
        return ValidationResult(
            is_valid=False, ignore=True, errors=["No frontmatter found"]
        )

    draft = metadata.get("draft")
    publish = metadata.get("publish")

    if draft is True:
        return ValidationResult(
            is_valid=False, ignore=True, errors=["Marked as draft"]
        )

    if publish is not True and draft is not False:
        return ValidationResult(
            is_valid=False, ignore=True, errors=["Not marked for publishing"]
        )

    errors: list[str] = []
    if not metadata.get("title"):
        errors.append("Missing 'title' property")
    if not metadata.get("date"):
        errors.append("Missing 'date' property")

    return ValidationResult(is_valid=not errors, ignore=False, errors=errors)


def strip_publish_flag(content: str) -> str:
    """Remove the ``publish: true|false`` line from the frontmatter block.

    Site generators with strict content schemas reject the unknown key.
    Content without frontmatter is returned unchanged.
    """
    m = _FRONTMATTER_RE.match(content)
    if not m:
        return content
    block = _PUBLISH_FLAG_RE.sub("", m.group(1) + "\n", count=1).rstrip("\r\n")
    head = content[: m.start(1)]
    tail = content[m.end(1) :]
    return f"{head}{block}{tail}"
