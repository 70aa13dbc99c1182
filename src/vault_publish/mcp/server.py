"""MCP server for vault publishing using stdio transport.

Lets AI agents publish the vault, inspect what is published and create
new posts through standardized tools.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..core.errors import RemoteStoreError
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from ..publish.publisher import Publisher
from ..version import check_version_consistency
from .lifespan import server_lifespan
from .tools import (
    ALL_SPECS,
    READ_ONLY_CAPABILITIES,
    ToolRegistry,
    build_error_response,
)
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

server = Server("vault-publish")

# Initialized in lifespan
_publisher: Publisher | None = None

# Initialized in main
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available)
# ---------------------------------------------------------------------------


async def _handle_ping(
    publisher: Publisher, args: dict
) -> types.CallToolResult:
    """Handle ping tool -- test repository connectivity."""
    client = publisher.get_client()
    if client is None:
        return build_error_response(
            "validation_error",
            "GitHub is not configured",
            "Set GITHUB_OWNER, GITHUB_REPO and GITHUB_TOKEN.",
        )
    try:
        full_name = await client.validate_connection()
    except RemoteStoreError as e:
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"Repository access failed: {e}. Check GITHUB_OWNER, GITHUB_REPO, GITHUB_TOKEN.",
                )
            ],
            isError=True,
        )
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=f"vault-publish connected successfully. Repository: {full_name} "
                f"(branch {publisher.config.github_branch})",
            )
        ]
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test vault-publish connectivity and return the target repository",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    capabilities=frozenset(),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_publisher() -> Publisher:
    """Get the global Publisher instance.

    Raises:
        RuntimeError: If the publisher is not initialized
    """
    if _publisher is None:
        raise RuntimeError(
            "Publisher not initialized. Server lifespan not started."
        )
    return _publisher


def set_publisher(publisher: Publisher | None) -> None:
    global _publisher
    _publisher = publisher


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


def build_registry(read_only: bool = False) -> ToolRegistry:
    """Build the registry; *read_only* hides every tool that writes."""
    allowed = READ_ONLY_CAPABILITIES if read_only else None
    return ToolRegistry([PING_SPEC] + ALL_SPECS, allowed)


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List the registered (and permitted) tools."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    publisher = get_publisher()
    try:
        return await get_registry().call_tool(name, arguments, publisher)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Logging is set up for MCP mode (file only, never stdout) before the
    stdio transport starts.

    Args:
        config_overrides: Optional dict of CLI values (owner, repo, branch,
            vault_path, content_directory, log_file, read_only)
    """
    overrides = dict(config_overrides or {})
    log_file = overrides.pop("log_file", None)
    read_only = overrides.pop("read_only", False)

    setup_logging(mode="mcp", log_file=log_file)

    is_consistent, message = check_version_consistency()
    if not is_consistent:
        logger.warning(message)
        sys.stderr.write(f"Warning: {message}\n")
    else:
        logger.info(message)

    registry = build_registry(read_only)
    total = len(ALL_SPECS) + 1
    logger.info("Registered %d tools (of %d total)", registry.tool_count(), total)
    if read_only:
        print(
            f"Read-only mode ({registry.tool_count()} of {total} tools enabled)",
            file=sys.stderr,
        )
    set_registry(registry)

    # set_publisher() is called here rather than in the lifespan so that
    # running this file as __main__ does not install it on a second copy
    # of the module.
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_publisher(ctx["publisher"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="vault-publish",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_publisher(None)
            set_registry(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="vault-publish MCP server - publish a Markdown vault to GitHub",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .vault_publish/config.yml)
  vault-publish-mcp

  # Publish to another repository and branch
  vault-publish-mcp --owner me --repo my-site --branch preview

  # Only expose tools that do not write anywhere
  vault-publish-mcp --read-only

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr.
        """,
    )

    parser.add_argument("--owner", help="Override repository owner (GITHUB_OWNER)")
    parser.add_argument("--repo", help="Override repository name (GITHUB_REPO)")
    parser.add_argument("--branch", help="Override target branch (GITHUB_BRANCH)")
    parser.add_argument("--vault", help="Override vault root directory (VAULT_PATH)")
    parser.add_argument(
        "--content-dir",
        help="Override repository content directory (VAULT_PUBLISH_CONTENT_DIR)",
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_MCP_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Hide tools that publish, delete or create files",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"vault-publish version {__version__}",
    )

    args = parser.parse_args()

    config_overrides: dict = {}
    if args.owner:
        config_overrides["owner"] = args.owner
    if args.repo:
        config_overrides["repo"] = args.repo
    if args.branch:
        config_overrides["branch"] = args.branch
    if args.vault:
        config_overrides["vault_path"] = args.vault
    if args.content_dir:
        config_overrides["content_directory"] = args.content_dir
    if args.log_file:
        config_overrides["log_file"] = args.log_file
    if args.read_only:
        config_overrides["read_only"] = True

    if config_overrides:
        print(
            f"Config overrides from CLI: {', '.join(config_overrides)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
