"""
Input validation functions for vault-publish.

Provides validation for repository paths, upload payloads and the content
root safety check before any request reaches the remote store.
"""


# GitHub's contents API rejects files above 100 MB.
MAX_UPLOAD_BYTES = 100 * 1024 * 1024


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Repository path")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_repo_path(path: str) -> tuple[bool, str]:
    """
    Validate a path inside the target repository.

    Args:
        path: Repository-relative POSIX path (e.g. "src/content/posts/a/index.md")

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot be absolute (leading '/')
        - Cannot contain a '..' segment (path traversal protection)
        - Cannot have empty path segments (e.g., 'posts//a.md')
        - Cannot end with '/' (must name a file)
    """
    if not path or not path.strip():
        return (
            False,
            format_validation_error("Repository path", "cannot be empty"),
        )

    if path.startswith("/"):
        return (
            False,
            format_validation_error(
                "Repository path", "must be relative to the repository root"
            ),
        )

    if ".." in path.split("/"):
        return (
            False,
            format_validation_error("Repository path", "cannot contain '..'"),
        )

    if "//" in path:
        return (
            False,
            format_validation_error(
                "Repository path", "cannot have empty path segments"
            ),
        )

    if path.endswith("/"):
        return (
            False,
            format_validation_error("Repository path", "must name a file"),
        )

    return (True, "")


def validate_upload_size(
    raw: bytes, max_size: int = MAX_UPLOAD_BYTES
) -> tuple[bool, str]:
    """
    Validate the size of an upload payload.

    Args:
        raw: Exact bytes that will be stored
        max_size: Maximum size in bytes (default: 100 MB)

    Returns:
        Tuple of (is_valid, error_message).
    """
    if len(raw) > max_size:
        return (
            False,
            format_validation_error(
                "Content", f"exceeds maximum size of {max_size} bytes"
            ),
        )

    return (True, "")


def normalize_root(content_root: str) -> str:
    """Return *content_root* without surrounding slashes, plus a trailing '/'."""
    stripped = content_root.strip().strip("/")
    return f"{stripped}/" if stripped else ""


def is_within_root(path: str, content_root: str) -> bool:
    """Return True if *path* lies under *content_root* (string-prefix check).

    The root is normalized to end in '/', so "src/content/posts-old/x" is not
    considered inside "src/content/posts". An empty root never matches.
    """
    prefix = normalize_root(content_root)
    if not prefix:
        return False
    return path.startswith(prefix) and ".." not in path.split("/")
