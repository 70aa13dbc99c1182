"""MCP tool handlers for vault publishing.

This package wraps the ``Publisher`` with async tool handlers and
structured error responses.
"""

from .errors import build_error_response, translate_remote_error
from .publish import PUBLISH_SPECS, PUBLISH_TOOLS
from .registry import (
    ALL_CAPABILITIES,
    READ_ONLY_CAPABILITIES,
    ToolRegistry,
    ToolSpec,
)

ALL_SPECS: list[ToolSpec] = list(PUBLISH_SPECS)

__all__ = [
    "build_error_response",
    "translate_remote_error",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    "ALL_CAPABILITIES",
    "READ_ONLY_CAPABILITIES",
    # Spec lists
    "ALL_SPECS",
    "PUBLISH_SPECS",
    "PUBLISH_TOOLS",
]
