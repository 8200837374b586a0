"""Command-line entry point for CI repository initialization."""

from __future__ import annotations

import argparse
import asyncio
import logging

from . import __version__, actions
from .config import InitSettings, WorkingDirectorySettings, load_settings
from .errors import RepoInitError
from .orchestrator import run_init, run_setup_working_directory
from .runner import CommandRunner

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging for the job."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def cmd_init(args: argparse.Namespace, runner: CommandRunner | None = None) -> None:
    overrides = {}
    if args.working_directory:
        overrides["WORKING_DIRECTORY"] = args.working_directory
    settings = load_settings(InitSettings, **overrides)
    configure_logging(settings.log_level)
    asyncio.run(run_init(settings, runner))


def cmd_setup_working_directory(args: argparse.Namespace, runner: CommandRunner | None = None) -> None:
    settings = load_settings(WorkingDirectorySettings)
    configure_logging(settings.log_level)
    run_setup_working_directory(settings, args.path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Prepare a CI job's repository checkout")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="cmd")

    p_init = sub.add_parser("init", help="Start the SSH agent and clone or update the checkout")
    p_init.add_argument(
        "--working-directory",
        help="Checkout location (defaults to WORKING_DIRECTORY)",
    )
    p_init.set_defaults(func=cmd_init)

    p_setup = sub.add_parser(
        "setup-working-directory",
        help="Create the per-branch working directory and export its path",
    )
    p_setup.add_argument("--path", help="Base path (defaults to WORKING_DIRECTORY_PREFIX)")
    p_setup.set_defaults(func=cmd_setup_working_directory)

    return parser


def main(argv: list[str] | None = None, *, runner: CommandRunner | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 2

    try:
        args.func(args, runner)
    except RepoInitError as exc:
        logger.error("Action failed: %s", exc)
        actions.set_failed(f"Action failed: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
