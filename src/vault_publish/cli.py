"""Command-line interface: ``vault-publish publish|status|new-post|init``."""

import argparse
import asyncio
import json
import logging
import signal
import sys
from datetime import date

from . import __version__
from .config import Config, load_config_from_sources
from .config_loader import ensure_config
from .core.async_utils import init_semaphore
from .core.errors import RemoteStoreError
from .logger import setup_logging
from .publish.publisher import Publisher
from .publish.reporter import (
    ProgressReporter,
    format_publish_summary,
    summary_to_json,
)
from .vault import LocalVault

logger = logging.getLogger(__name__)


def _overrides_from_args(args: argparse.Namespace) -> dict:
    return {
        "owner": args.owner,
        "repo": args.repo,
        "branch": args.branch,
        "vault_path": args.vault,
        "content_directory": args.content_dir,
        "local_output_path": getattr(args, "local_output", None),
        "debug": args.debug,
    }


def _build_publisher(config: Config) -> Publisher:
    init_semaphore(config.max_parallel_requests)
    return Publisher(config, LocalVault(config.vault_path))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _publish(config: Config, as_json: bool) -> int:
    publisher = _build_publisher(config)
    cancel = asyncio.Event()

    loop = asyncio.get_running_loop()

    def _request_cancel() -> None:
        print(
            "\nStopping after the current post (press Ctrl-C again to abort)...",
            file=sys.stderr,
        )
        cancel.set()
        loop.remove_signal_handler(signal.SIGINT)

    try:
        loop.add_signal_handler(signal.SIGINT, _request_cancel)
    except NotImplementedError:
        # Windows event loops have no signal handler support
        pass

    reporter = ProgressReporter(
        callback=None if as_json else lambda msg: print(msg, file=sys.stderr)
    )
    summary = await publisher.publish_all(reporter=reporter, cancel=cancel)

    if as_json:
        print(json.dumps(summary_to_json(summary), indent=2))
    else:
        print(format_publish_summary(summary))
    return 1 if summary.errors or summary.cancelled else 0


async def _status(config: Config, as_json: bool) -> int:
    publisher = _build_publisher(config)
    manifest = await publisher.publish_status()
    if manifest is None:
        print("GitHub is not configured.", file=sys.stderr)
        return 1

    if as_json:
        print(json.dumps(manifest.to_json_dict(), indent=2))
        return 0

    print(f"Repository: {config.github_owner}/{config.github_repo} ({config.github_branch})")
    print(f"Last publish: {manifest.last_publish}")
    print(f"Tracked posts: {len(manifest.posts)}")
    for slug, post in sorted(manifest.posts.items()):
        print(f"  {slug}: {post.vault_path} ({len(post.assets)} assets)")
    return 0


def _new_post(vault_path: str, title: str, post_date: str | None) -> int:
    vault = LocalVault(vault_path)
    entry = vault.create_post(
        title, date.fromisoformat(post_date) if post_date else None
    )
    print(f"Created new post: {vault.absolute_path(entry)}")
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--owner", help="Repository owner (GITHUB_OWNER)")
    parser.add_argument("--repo", help="Repository name (GITHUB_REPO)")
    parser.add_argument("--branch", help="Target branch (GITHUB_BRANCH)")
    parser.add_argument("--vault", help="Vault root directory (VAULT_PATH)")
    parser.add_argument(
        "--content-dir",
        help="Repository content directory (VAULT_PUBLISH_CONTENT_DIR)",
    )
    parser.add_argument(
        "--json", action="store_true", help="Print machine-readable output"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vault-publish",
        description="Publish a Markdown vault and its images to a GitHub repository",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log output format (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"vault-publish version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    publish = sub.add_parser(
        "publish", help="Publish all eligible posts and delete stale ones"
    )
    _add_config_args(publish)
    publish.add_argument(
        "--local-output",
        help="Also write posts into this local folder (VAULT_PUBLISH_LOCAL_OUTPUT)",
    )

    status = sub.add_parser(
        "status", help="Show the posts recorded by the last publish"
    )
    _add_config_args(status)

    new_post = sub.add_parser("new-post", help="Create a new post in the vault")
    new_post.add_argument("title", help="Post title")
    new_post.add_argument("--date", help="Post date as YYYY-MM-DD (default: today)")
    new_post.add_argument("--vault", default=".", help="Vault root directory")

    sub.add_parser("init", help="Write a starter config file if none exists")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the CLI and return the process exit code."""
    args = build_parser().parse_args(argv)
    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file,
        debug_format=args.log_format,
    )

    try:
        if args.command == "init":
            print(f"Config file: {ensure_config()}")
            return 0
        if args.command == "new-post":
            return _new_post(args.vault, args.title, args.date)

        config, _ = load_config_from_sources(_overrides_from_args(args))
        if args.command == "publish":
            return asyncio.run(_publish(config, args.json))
        return asyncio.run(_status(config, args.json))
    except (ValueError, FileExistsError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except RemoteStoreError as e:
        logger.debug("Remote store failure", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
