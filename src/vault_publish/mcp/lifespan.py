"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from ..config import load_config_from_sources
from ..core.async_utils import init_semaphore
from ..core.errors import RemoteStoreError
from ..publish.publisher import Publisher
from ..vault import LocalVault

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Resolve configuration: CLI > env vars > .env > YAML > defaults
    - Size the request gate from ``max_parallel_requests``
    - Open the vault and check the repository is reachable, when one is
      configured
    - Fail fast on bad configuration or an unreachable repository

    Args:
        config_overrides: Optional dict with config values from CLI

    Yields:
        Dict with 'publisher' key containing the initialized Publisher

    Raises:
        RuntimeError: If configuration is invalid or the repository is unreachable.
    """
    logger.info("MCP server starting...")
    _stderr_print("vault-publish MCP server starting...")

    try:
        config, sources = load_config_from_sources(config_overrides)
        source_desc = ", ".join(sources)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        if config.github_owner and config.github_repo:
            _stderr_print(
                f"  Repository: {config.github_owner}/{config.github_repo} "
                f"({config.github_branch})"
            )
        if config.local_output_path:
            _stderr_print(f"  Local output: {config.local_output_path}")
        vault = LocalVault(config.vault_path)
        _stderr_print(f"  Vault: {vault.root}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print("  Ensure GITHUB_OWNER, GITHUB_REPO, GITHUB_TOKEN are set.")
        raise RuntimeError(
            f"Configuration error: {e}. Ensure GITHUB_OWNER, GITHUB_REPO, GITHUB_TOKEN are set."
        ) from e

    init_semaphore(config.max_parallel_requests)
    _stderr_print(f"  Parallel requests: {config.max_parallel_requests}")

    publisher = Publisher(config, vault)

    client = publisher.get_client()
    if client is None:
        logger.info("GitHub is not configured; publishing to the local folder only")
        _stderr_print("  GitHub not configured: remote publishing disabled")
    else:
        logger.info("Validating repository access...")
        _stderr_print("  Validating repository access...")
        try:
            full_name = await client.validate_connection()
        except RemoteStoreError as e:
            logger.error("Failed to reach repository: %s", e)
            _stderr_print("ERROR: Repository access failed.")
            _stderr_print(f"  {e}")
            _stderr_print("  Check GITHUB_OWNER, GITHUB_REPO, GITHUB_TOKEN.")
            raise RuntimeError(
                f"Repository access failed: {e}. Check GITHUB_OWNER, GITHUB_REPO, GITHUB_TOKEN."
            ) from e
        logger.info("Connected to repository %s", full_name)
        _stderr_print(f"  Connected to {full_name}")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield {"publisher": publisher}

    logger.info("MCP server shutting down")
    _stderr_print("vault-publish MCP server shutting down.")
