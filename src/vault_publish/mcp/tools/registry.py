"""ToolSpec and ToolRegistry for capability-based tool filtering.

Operators can restrict which tools an agent sees: every tool declares the
capabilities it needs (``read`` for tools that only inspect the vault or
the repository, ``write`` for tools that change either), and the registry
drops tools whose capabilities are not allowed.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition, required
  capabilities, and an async handler ``(publisher, args) -> CallToolResult``.
- ToolRegistry: Filters specs at construction time, then provides
  list_tools() and call_tool() dispatch with error translation.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import mcp.types as types

from ...core.errors import RateLimitError, RemoteStoreError
from ...publish.publisher import Publisher

logger = logging.getLogger(__name__)

READ = "read"
WRITE = "write"
ALL_CAPABILITIES = frozenset({READ, WRITE})
READ_ONLY_CAPABILITIES = frozenset({READ})


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        capabilities: Capabilities required to use this tool.
            Empty frozenset means the tool is always available.
        handler: Async handler with signature (publisher, args) -> CallToolResult.
    """

    tool: types.Tool
    capabilities: frozenset[str]
    handler: Callable[[Publisher, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Registry of ToolSpecs with optional capability filtering.

    If allowed_capabilities is None, all specs are included.  Otherwise a
    spec is included only if its capabilities are empty or a subset of
    allowed_capabilities.
    """

    def __init__(
        self,
        specs: list[ToolSpec],
        allowed_capabilities: frozenset[str] | None = None,
    ):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if (
                allowed_capabilities is None
                or not spec.capabilities
                or spec.capabilities <= allowed_capabilities
            ):
                self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        """Return the Tool definitions of all registered specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        publisher: Publisher,
    ) -> types.CallToolResult:
        """Dispatch a tool call to its handler.

        Remote store failures, validation errors and unexpected exceptions
        are translated into error results with a corrective action.

        Raises:
            ValueError: If the tool name is not registered (unknown or filtered out).
        """
        from .errors import build_error_response, translate_remote_error

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(publisher, args)
        except (RateLimitError, RemoteStoreError) as e:
            logger.warning("Remote store error in %s: %s", name, e)
            return translate_remote_error(e)
        except (ValueError, FileExistsError) as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log and retry later.",
            )
