"""MCP tool handlers for publishing the vault.

Defines four tools:

- ``publish_all`` -- publish every eligible document and reconcile.
- ``publish_file`` -- publish a single document.
- ``publish_status`` -- list the posts tracked by the remote manifest.
- ``new_post`` -- create a new post skeleton in the vault.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...publish.publisher import Publisher
from ...publish.reporter import (
    ProgressReporter,
    format_publish_summary,
    summary_to_json,
)
from .registry import READ, WRITE, ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


PUBLISH_ALL_TOOL = types.Tool(
    name="publish_all",
    description=(
        "Publish every vault document marked for publishing, with its "
        "images, to the configured GitHub repository. Unchanged files are "
        "not re-uploaded; posts removed from the vault are deleted remotely."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=True,
        idempotentHint=True,
        openWorldHint=True,
    ),
    inputSchema={"type": "object", "properties": {}, "required": []},
)

PUBLISH_FILE_TOOL = types.Tool(
    name="publish_file",
    description=(
        "Publish a single vault document and its images. Does not delete "
        "anything and does not update the publish manifest."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=True,
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Vault-relative path of the document (e.g. 'hello/index.md')",
            },
        },
        "required": ["path"],
    },
)

PUBLISH_STATUS_TOOL = types.Tool(
    name="publish_status",
    description=(
        "Show the posts recorded by the last publish run: slug, source "
        "document, repository path and asset count."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=True,
    ),
    inputSchema={"type": "object", "properties": {}, "required": []},
)

NEW_POST_TOOL = types.Tool(
    name="new_post",
    description=(
        "Create '<title>/index.md' in the vault with title, date and "
        "publish: true frontmatter. Fails if the post folder already exists."
    ),
    annotations=types.ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=False,
        openWorldHint=False,
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "title": {"type": "string", "description": "Post title"},
            "date": {
                "type": "string",
                "description": "Post date as YYYY-MM-DD (default: today)",
            },
        },
        "required": ["title"],
    },
)


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_publish_all(
    publisher: Publisher, args: dict[str, Any]
) -> types.CallToolResult:
    summary = await publisher.publish_all(reporter=ProgressReporter())
    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_publish_summary(summary))
        ],
        structuredContent=summary_to_json(summary),
        isError=bool(summary.errors) and summary.posts_published == 0,
    )


async def _handle_publish_file(
    publisher: Publisher, args: dict[str, Any]
) -> types.CallToolResult:
    path = args.get("path")
    if not path:
        raise ValueError("path is required")

    entry = publisher.vault.get_entry(path)
    if entry is None or entry.is_folder:
        raise ValueError(f"Document not found in vault: {path}")

    ok = await publisher.publish(entry)
    if ok:
        text = f"Published {entry.path}"
    else:
        text = f"Publishing {entry.path} failed; see the server log for details."
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={"path": entry.path, "success": ok},
        isError=not ok,
    )


async def _handle_publish_status(
    publisher: Publisher, args: dict[str, Any]
) -> types.CallToolResult:
    manifest = await publisher.publish_status()
    if manifest is None:
        raise ValueError(
            "GitHub is not configured. Set GITHUB_OWNER, GITHUB_REPO and GITHUB_TOKEN."
        )

    lines = [
        f"Tracked posts: {len(manifest.posts)}",
        f"Last publish: {manifest.last_publish}",
    ]
    posts = []
    for slug, post in sorted(manifest.posts.items()):
        lines.append(
            f"  {slug}: {post.vault_path} -> {post.repo_path} "
            f"({len(post.assets)} assets)"
        )
        posts.append(
            {
                "slug": slug,
                "vault_path": post.vault_path,
                "repo_path": post.repo_path,
                "assets": list(post.assets),
            }
        )

    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent={
            "last_publish": manifest.last_publish,
            "count": len(posts),
            "posts": posts,
        },
    )


async def _handle_new_post(
    publisher: Publisher, args: dict[str, Any]
) -> types.CallToolResult:
    title = args.get("title") or ""
    raw_date = args.get("date")
    post_date = date.fromisoformat(raw_date) if raw_date else None

    entry = await run_sync(publisher.vault.create_post, title, post_date)
    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=f"Created new post: {entry.path}")
        ],
        structuredContent={"path": entry.path},
    )


# ---------------------------------------------------------------------------
# Spec list
# ---------------------------------------------------------------------------


PUBLISH_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=PUBLISH_ALL_TOOL,
        capabilities=frozenset({READ, WRITE}),
        handler=_handle_publish_all,
    ),
    ToolSpec(
        tool=PUBLISH_FILE_TOOL,
        capabilities=frozenset({READ, WRITE}),
        handler=_handle_publish_file,
    ),
    ToolSpec(
        tool=PUBLISH_STATUS_TOOL,
        capabilities=frozenset({READ}),
        handler=_handle_publish_status,
    ),
    ToolSpec(
        tool=NEW_POST_TOOL,
        capabilities=frozenset({WRITE}),
        handler=_handle_new_post,
    ),
]

PUBLISH_TOOLS: list[types.Tool] = [spec.tool for spec in PUBLISH_SPECS]
