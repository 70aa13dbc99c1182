"""Idempotent publishing of a Markdown vault to a GitHub repository."""

__version__ = "0.1.0"
