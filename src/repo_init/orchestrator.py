"""Job flow: acquire the SSH session, synchronise, always release."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from . import actions
from .config import InitSettings, WorkingDirectorySettings
from .errors import WorkingDirectoryError
from .git import RepositorySynchronizer
from .runner import CommandRunner
from .ssh import SSHSession, SSHSessionManager
from .workdir import DirectoryManager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def ssh_session(
    settings: InitSettings,
    runner: CommandRunner,
    *,
    session: SSHSession | None = None,
) -> AsyncIterator[SSHSessionManager]:
    """Yield an initialized SSH session and tear it down on every exit path.

    Teardown never raises, so an error from the body or from initialization
    propagates unchanged.
    """

    manager = SSHSessionManager(settings, runner=runner, session=session)
    try:
        await manager.initialize()
        logger.info("SSH configuration completed")
        yield manager
    finally:
        await manager.cleanup()
        logger.debug("SSH cleanup completed")


async def run_init(
    settings: InitSettings,
    runner: CommandRunner | None = None,
    *,
    session: SSHSession | None = None,
) -> Path:
    """Prepare the working directory checkout for this job."""

    runner = runner or CommandRunner()
    working_directory = settings.working_directory
    logger.debug("Starting repository initialization")
    try:
        working_directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise WorkingDirectoryError(
            f"Failed to create working directory {working_directory}: {exc}"
        ) from exc
    logger.info("Working directory: %s", working_directory)

    async with ssh_session(settings, runner, session=session) as manager:
        synchronizer = RepositorySynchronizer(settings, manager.git_env(), runner=runner)

        await synchronizer.configure_git()
        logger.info("Git configuration completed")

        await synchronizer.handle_cache()
        logger.info("Repository cache handled")

        await synchronizer.handle_pull_request_merge()
        logger.info("Repository initialization completed successfully")

    return working_directory


def run_setup_working_directory(settings: WorkingDirectorySettings, path: str | None = None) -> Path:
    """Create the per-branch working directory and publish its location."""

    base_path = path or settings.working_directory_prefix or ""
    manager = DirectoryManager(base_path, settings.repository, settings.ref)
    working_directory = manager.create_working_directory()

    logger.info("Setting WORKING_DIRECTORY: %s", working_directory)
    actions.export_variable("WORKING_DIRECTORY", str(working_directory))
    actions.set_output("working-directory", str(working_directory))
    return working_directory


__all__ = ["run_init", "run_setup_working_directory", "ssh_session"]
