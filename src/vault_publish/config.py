"""Publisher configuration.

Reads GitHub and vault settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    GITHUB_OWNER: Repository owner (user or organization)
    GITHUB_REPO: Repository name
    GITHUB_TOKEN: Personal access token with contents:write
        The three GitHub settings are required unless
        VAULT_PUBLISH_LOCAL_OUTPUT is set (local-only publishing).
    GITHUB_BRANCH: Branch to publish to (optional, default: main)
    GITHUB_API_URL: API base URL (optional, default: https://api.github.com)
    VAULT_PATH: Local vault root directory (optional, default: .)
    VAULT_PUBLISH_CONTENT_DIR: Repository directory posts are published under
        (optional, default: src/content/posts)
    VAULT_PUBLISH_LOCAL_OUTPUT: Also publish into this local directory (optional)
    VAULT_PUBLISH_ENABLE_SYNC: Track a manifest and delete stale posts (optional, default: true)
    VAULT_PUBLISH_MAX_PARALLEL_REQUESTS: Max in-flight API requests (optional, default: 5)
    VAULT_PUBLISH_MAX_RETRIES: Attempts per API request (optional, default: 3)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_CONTENT_DIRECTORY = "src/content/posts"


@dataclass
class Config:
    github_owner: str
    github_repo: str
    github_token: str
    github_branch: str = "main"
    api_url: str = DEFAULT_API_URL
    vault_path: str = "."
    content_directory: str = DEFAULT_CONTENT_DIRECTORY
    local_output_path: str | None = None
    enable_sync: bool = True
    debug: bool = False
    max_parallel_requests: int = 5
    max_retries: int = 3

    def cache_key(self) -> tuple:
        """Fields that require a new remote client when they change."""
        return (
            self.api_url,
            self.github_owner,
            self.github_repo,
            self.github_branch,
            self.github_token,
            self.max_retries,
        )


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the API URL is malformed, credentials are empty
            while no local output folder is set, or the content directory
            could escape the repository.
    """
    config.api_url = config.api_url.strip()

    if not config.api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid API URL '{config.api_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.api_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid API URL '{config.api_url}': URL must include a hostname"
        )

    config.api_url = config.api_url.removesuffix("/")

    if not config.local_output_path:
        if not config.github_owner.strip():
            raise ValueError(
                "GitHub owner cannot be empty. Set GITHUB_OWNER environment variable."
            )

        if not config.github_repo.strip():
            raise ValueError(
                "GitHub repository cannot be empty. Set GITHUB_REPO environment variable."
            )

        if not config.github_token.strip():
            raise ValueError(
                "GitHub token cannot be empty. Set GITHUB_TOKEN environment variable."
            )

    if not config.github_branch.strip():
        config.github_branch = "main"

    content_dir = config.content_directory.strip()
    if not content_dir.strip("/"):
        raise ValueError(
            "Content directory cannot be empty: stale-file deletion needs a root to stay inside."
        )
    if content_dir.startswith("/") or ".." in content_dir.split("/"):
        raise ValueError(
            f"Invalid content directory '{content_dir}': must be relative and cannot contain '..'"
        )
    config.content_directory = content_dir.rstrip("/")


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_int_env(
    key: str, fallback: dict, fb_key: str, default: int, low: int, high: int
) -> int:
    """Resolve a bounded integer setting: env > YAML > default."""
    raw = os.getenv(key)
    if raw is not None:
        try:
            value = int(raw)
        except ValueError:
            raise ValueError(
                f"Invalid {key} '{raw}': must be a number between {low} and {high}"
            ) from None
        if not (low <= value <= high):
            raise ValueError(
                f"Invalid {key} '{raw}': must be a number between {low} and {high}"
            )
        return value
    if fb_key in fallback:
        return int(fallback[fb_key])
    return default


def load_config(
    owner: str | None = None,
    repo: str | None = None,
    token: str | None = None,
    branch: str | None = None,
    vault_path: str | None = None,
    content_directory: str | None = None,
    local_output_path: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        owner: Override repository owner.
        repo: Override repository name.
        token: Override access token.
        branch: Override target branch.
        vault_path: Override local vault root.
        content_directory: Override repository content directory.
        local_output_path: Override local output directory.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flat dict of values from the YAML ``github`` and
            ``publish`` sections. Used when CLI arg and env var are unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If owner, repo or token is missing after checking all
            sources while no local output folder is configured, or any value
            is invalid.
    """
    fb = yaml_fallbacks or {}

    final_local_output = (
        local_output_path
        or os.getenv("VAULT_PUBLISH_LOCAL_OUTPUT")
        or fb.get("local_output_path")
        or None
    )

    # --- GitHub fields: CLI > env > YAML > error ---
    # Optional when a local output folder is configured; without them
    # only the local destination is published to.

    github_owner = owner or os.getenv("GITHUB_OWNER") or fb.get("owner") or ""
    github_repo = repo or os.getenv("GITHUB_REPO") or fb.get("repo") or ""
    github_token = token or os.getenv("GITHUB_TOKEN") or fb.get("token") or ""

    if not github_owner and not final_local_output:
        raise ValueError(
            "GitHub owner not found. Set GITHUB_OWNER environment variable, "
            "pass --owner CLI argument, or add 'owner' to config.yml."
        )

    if not github_repo and not final_local_output:
        raise ValueError(
            "GitHub repository not found. Set GITHUB_REPO environment variable, "
            "pass --repo CLI argument, or add 'repo' to config.yml."
        )

    if not github_token and not final_local_output:
        raise ValueError(
            "GitHub token not found. Set GITHUB_TOKEN environment variable "
            "or add 'token' to config.yml."
        )

    # --- Optional string fields: CLI > env > YAML > default ---

    final_branch = (
        branch or os.getenv("GITHUB_BRANCH") or fb.get("branch") or "main"
    )
    final_api_url = (
        os.getenv("GITHUB_API_URL") or fb.get("api_url") or DEFAULT_API_URL
    )
    final_vault = (
        vault_path or os.getenv("VAULT_PATH") or fb.get("vault_path") or "."
    )
    final_content_dir = (
        content_directory
        or os.getenv("VAULT_PUBLISH_CONTENT_DIR")
        or fb.get("content_directory")
        or DEFAULT_CONTENT_DIRECTORY
    )
    # --- Boolean fields: CLI > env > YAML > default ---

    env_sync = _get_bool_env("VAULT_PUBLISH_ENABLE_SYNC")
    if env_sync is not None:
        final_sync = env_sync
    else:
        final_sync = bool(fb.get("enable_sync", True))

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("VAULT_PUBLISH_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    # --- Numeric fields: env > YAML > default ---

    final_max_parallel = _get_int_env(
        "VAULT_PUBLISH_MAX_PARALLEL_REQUESTS",
        fb,
        "max_parallel_requests",
        5,
        1,
        100,
    )
    final_max_retries = _get_int_env(
        "VAULT_PUBLISH_MAX_RETRIES", fb, "max_retries", 3, 1, 10
    )

    config = Config(
        github_owner=github_owner.strip(),
        github_repo=github_repo.strip(),
        github_token=github_token.strip(),
        github_branch=final_branch.strip(),
        api_url=final_api_url,
        vault_path=final_vault,
        content_directory=final_content_dir,
        local_output_path=final_local_output,
        enable_sync=final_sync,
        debug=final_debug,
        max_parallel_requests=final_max_parallel,
        max_retries=final_max_retries,
    )

    validate_config(config)

    return config


def load_config_from_sources(
    overrides: dict | None = None,
) -> tuple[Config, list[str]]:
    """Resolve the configuration from every source.

    Loads ``.env`` first so ``${VAR}`` interpolation in YAML can use its
    values, then the YAML config files as fallbacks, then calls
    ``load_config()`` with the CLI *overrides*.

    Args:
        overrides: CLI values (owner, repo, token, branch, vault_path,
            content_directory, local_output_path, debug).

    Returns:
        Tuple of (validated Config, descriptions of contributing sources).

    Raises:
        ValueError: If the configuration is incomplete or invalid.
    """
    import yaml
    from dotenv import load_dotenv
    from pydantic import ValidationError

    from .config_loader import discover_config_files, load_hierarchical_config
    from .config_schema import build_config

    load_dotenv()

    sources: list[str] = []
    yaml_fallbacks: dict | None = None
    config_files = discover_config_files()
    if config_files:
        try:
            unified = build_config(load_hierarchical_config())
        except (ValidationError, OSError, yaml.YAMLError) as exc:
            raise ValueError(
                f"Invalid config file {config_files[0]}: {exc}"
            ) from exc
        yaml_fallbacks = unified.yaml_fallbacks()
        sources.append(f"config file: {config_files[0]}")

    overrides = overrides or {}
    config = load_config(
        owner=overrides.get("owner"),
        repo=overrides.get("repo"),
        token=overrides.get("token"),
        branch=overrides.get("branch"),
        vault_path=overrides.get("vault_path"),
        content_directory=overrides.get("content_directory"),
        local_output_path=overrides.get("local_output_path"),
        debug=overrides.get("debug", False),
        yaml_fallbacks=yaml_fallbacks,
    )

    if any(v for v in overrides.values()):
        sources.append("CLI arguments")
    sources.append("environment variables")
    logger.info("Configuration loaded from: %s", ", ".join(sources))
    return config, sources
