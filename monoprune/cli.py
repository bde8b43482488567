"""CLI entry point for monoprune."""

from __future__ import annotations

import argparse
from importlib.metadata import version as pkg_version
from pathlib import Path

from monoprune.errors import PruneError
from monoprune.models import PruneRequest
from monoprune.pruner import prune
from monoprune.shell import error, fatal, set_verbosity

__version__ = pkg_version("monoprune")


def cmd_prune(args: argparse.Namespace) -> None:
    """Prepare a subset of the monorepo for one workspace."""
    if not args.scope:
        fatal("at least one target must be specified")

    repo_root = Path(args.cwd).resolve() if args.cwd else Path.cwd()
    request = PruneRequest(scope=args.scope, docker=args.docker, out_dir=args.out_dir)
    try:
        prune(repo_root, request)
    except PruneError as exc:
        error(str(exc))
        raise SystemExit(1) from exc


def cli(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="monoprune",
        description="Prune a JavaScript monorepo down to one workspace and its dependencies.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-v",
        "--verbosity",
        action="count",
        default=0,
        help="Show trace output (repeatable).",
    )
    parser.add_argument(
        "--cwd", default=None, help="Repository root. (default: current directory)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    prune_parser = subparsers.add_parser(
        "prune", help="Prepare a subset of your monorepo."
    )
    prune_parser.add_argument(
        "--scope",
        default="",
        help="Package to act as entry point for the pruned monorepo (required).",
    )
    prune_parser.add_argument(
        "--docker",
        action="store_true",
        help="Output into 'full' and 'json' directories optimized for Docker layer caching.",
    )
    prune_parser.add_argument(
        "--out-dir",
        default="out",
        help="Root directory for files output by this command. (default: %(default)s)",
    )
    prune_parser.set_defaults(func=cmd_prune)

    args = parser.parse_args(argv)
    set_verbosity(args.verbosity)
    args.func(args)
