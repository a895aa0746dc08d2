"""
cli.py

Responsibility: CLI entrypoint for the release publisher.

High-level flow (single command `publish`):
1) Resolve configuration (flags > env > publish.yaml > defaults)
2) Run the pipeline (`pipeline.py`)
3) Print the repo/release summary, or an error line and exit non-zero

This module should orchestrate behavior but keep concerns isolated:
- Configuration: `config.py`
- Stage sequencing: `pipeline.py`
"""

from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from typing import Any, Mapping

from rich.console import Console
from rich.logging import RichHandler

from publisher import __version__
from publisher.config import load_config
from publisher.errors import PublishError
from publisher.pipeline import Pipeline

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130
EXIT_TERMINATED = 143


def setup_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=Console(stderr=True),
                show_time=verbose,
                show_path=verbose,
                markup=False,
            )
        ],
        force=True,
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


def _raise_on_sigterm(signum: int, _frame: Any) -> None:
    raise SystemExit(EXIT_TERMINATED)


def publish_cmd(args: argparse.Namespace, env: Mapping[str, str]) -> int:
    config = load_config(
        args.project_dir,
        env=env,
        config_path=args.config,
        overrides={
            "repo_slug": args.repo,
            "tag_override": args.tag,
            "name_override": args.name,
            "app_name": args.app_name,
        },
    )
    result = Pipeline(config).run()
    for line in result.summary_lines():
        print(line)
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="release-publisher", description="Publish build artifacts as a tagged GitHub release")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="command", required=True)

    b = sub.add_parser("publish", help="Mirror the project into the target repo, tag it, and create the release")
    b.add_argument("--project-dir", default=".", help="Project directory containing dist/ and Info.plist (default: .)")
    b.add_argument("--config", default=None, help="YAML config file (default: <project-dir>/publish.yaml if present)")
    b.add_argument("--repo", default=None, help="Target repository owner/name (or set env GITHUB_REPO)")
    b.add_argument("--tag", default=None, help="Release tag, skips derivation (or set env RELEASE_TAG)")
    b.add_argument("--name", default=None, help="Release name, skips derivation (or set env RELEASE_NAME)")
    b.add_argument("--app-name", default=None, help="Application name used for artifact paths")

    verbosity = b.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Show git commands and debug output")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only show warnings and errors")

    b.set_defaults(func=publish_cmd)
    return p


def main(argv: list[str] | None = None, env: Mapping[str, str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose, quiet=args.quiet)
    signal.signal(signal.SIGTERM, _raise_on_sigterm)

    try:
        return int(args.func(args, os.environ if env is None else env))
    except PublishError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    raise SystemExit(main())
