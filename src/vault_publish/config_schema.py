"""Unified configuration schema for vault-publish.

Defines Pydantic models for the YAML config structure with sections for
the GitHub repository and publish behaviour.  ``load_config_from_sources()``
flattens them into fallbacks for ``load_config()``.

Usage:
    from vault_publish.config_schema import build_config

    unified = build_config(load_hierarchical_config())
    fallbacks = unified.yaml_fallbacks()
"""

from __future__ import annotations

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class GitHubConfig(BaseModel):
    """Target repository settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    owner: str | None = Field(
        default=None, description="Repository owner (user or organization)"
    )
    repo: str | None = Field(default=None, description="Repository name")
    token: str | None = Field(
        default=None, description="Access token with contents:write"
    )
    branch: str = Field(default="main", description="Branch to publish to")
    api_url: str = Field(
        default="https://api.github.com", description="API base URL"
    )
    max_parallel_requests: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum concurrent API requests (1-100)",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per API request (1-10)",
    )

    model_config = {"frozen": True}


class PublishConfig(BaseModel):
    """Vault and output settings."""

    vault_path: str = Field(default=".", description="Local vault root")
    content_directory: str = Field(
        default="src/content/posts",
        description="Repository directory posts are published under",
    )
    local_output_path: str | None = Field(
        default=None, description="Also publish into this local folder"
    )
    enable_sync: bool = Field(
        default=True,
        description="Track published posts and delete stale ones",
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has defaults, so ``UnifiedConfig()`` is always valid.
    """

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)

    model_config = {"frozen": True}

    def yaml_fallbacks(self) -> dict:
        """Flatten the ``github`` and ``publish`` sections for ``load_config``.

        Unset optional values are omitted so they do not shadow defaults.
        """
        flat = {
            **self.github.model_dump(exclude_none=True),
            **self.publish.model_dump(exclude_none=True),
        }
        return flat


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.

    Raises:
        pydantic.ValidationError: If a section has invalid values.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)

