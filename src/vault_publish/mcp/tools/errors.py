"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so an agent can
recover without human intervention.
"""

import mcp.types as types

from ...core.errors import RateLimitError, RemoteStoreError


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, permission_denied,
            rate_limited, validation_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "No such document", "Use publish_status to list posts.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_remote_error(error: RemoteStoreError) -> types.CallToolResult:
    """Translate a remote store failure into a structured error response."""
    message = str(error)

    match error:
        case RateLimitError():
            return build_error_response(
                "rate_limited",
                message,
                "Wait a few minutes for the GitHub rate limit to reset, then retry.",
            )
        case RemoteStoreError(status=401):
            return build_error_response(
                "permission_denied",
                message,
                "Check that GITHUB_TOKEN is valid and not expired.",
            )
        case RemoteStoreError(status=403):
            return build_error_response(
                "permission_denied",
                message,
                "Grant the token contents:write access to the repository.",
            )
        case RemoteStoreError(status=404):
            return build_error_response(
                "not_found",
                message,
                "Check GITHUB_OWNER, GITHUB_REPO and GITHUB_BRANCH.",
            )
        case RemoteStoreError(status=409) | RemoteStoreError(status=422):
            return build_error_response(
                "version_conflict",
                message,
                "The file changed remotely during the run; retry the publish.",
            )
        case _:
            return build_error_response(
                "server_error",
                message,
                "Check network connectivity and retry later.",
            )
