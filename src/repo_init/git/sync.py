"""Clone-or-update decision logic for the CI working directory."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Mapping

from ..config import InitSettings
from ..errors import CacheHandlingError, CachePhase, GitConfigurationError
from ..runner import CommandError, CommandRunner
from .marker import read_marker, write_marker

NOREPLY_DOMAIN = "users.noreply.github.com"

logger = logging.getLogger(__name__)


class RepositorySynchronizer:
    """Bring the working directory to the target commit.

    Network operations receive ``git_env`` explicitly; it is never exported to
    the process environment.
    """

    def __init__(
        self,
        settings: InitSettings,
        git_env: Mapping[str, str],
        *,
        runner: CommandRunner | None = None,
    ) -> None:
        self._settings = settings
        self._git_env = dict(git_env)
        self._runner = runner or CommandRunner()

    @property
    def working_directory(self) -> Path:
        return self._settings.working_directory

    async def configure_git(self) -> None:
        """Apply the global identity and discovery settings for this job."""

        actor = self._settings.actor
        logger.debug("Configuring git globals", extra={"actor": actor})
        settings = [
            ("user.email", f"{actor}@{NOREPLY_DOMAIN}"),
            ("user.name", actor),
            ("init.defaultBranch", self._settings.branch_name),
        ]
        for key, value in settings:
            try:
                await self._runner.run("git", "config", "--global", key, value)
            except CommandError as exc:
                raise GitConfigurationError(key, str(exc)) from exc
        os.environ["GIT_DISCOVERY_ACROSS_FILESYSTEM"] = "true"

    async def handle_cache(self) -> None:
        """Clone or update the checkout, purging it first on a manual re-run.

        The marker is rewritten only after the checkout is in place.
        """

        marker_path = self._settings.marker_path
        run_id = self._settings.run_id
        previous_run_id = read_marker(marker_path)

        if previous_run_id == run_id:
            logger.info(
                "Job has been manually re-run, removing repository cache",
                extra={"run_id": run_id, "working_directory": str(self.working_directory)},
            )
            self._purge()

        if await self._has_remote_origin():
            await self._update_repository()
        else:
            await self._clone_repository()

        try:
            write_marker(marker_path, run_id)
        except OSError as exc:
            raise CacheHandlingError(CachePhase.MARKER, str(exc)) from exc

    def _purge(self) -> None:
        directory = self.working_directory
        try:
            if directory.exists():
                shutil.rmtree(directory)
            directory.mkdir(parents=True)
        except OSError as exc:
            raise CacheHandlingError(CachePhase.PURGE, str(exc)) from exc

    async def _has_remote_origin(self) -> bool:
        try:
            result = await self._runner.run("git", "remote", cwd=self.working_directory, check=False)
        except CommandError as exc:
            raise CacheHandlingError(CachePhase.PROBE, str(exc)) from exc
        return result.ok and "origin" in result.stdout.split()

    async def _clone_repository(self) -> None:
        settings = self._settings
        logger.info(
            "Cloning repository",
            extra={"repository": settings.repository, "sha": settings.sha},
        )
        try:
            await self._runner.run(
                "git",
                "clone",
                "--depth",
                "1",
                "--branch",
                settings.sha,
                settings.remote_url,
                ".",
                cwd=self.working_directory,
                env=self._git_env,
            )
            await self._runner.run(
                "git", "config", "merge.directoryRenames", "false", cwd=self.working_directory
            )
            await self._fetch_tags()
        except CommandError as exc:
            raise CacheHandlingError(CachePhase.CLONE, str(exc)) from exc

    async def _update_repository(self) -> None:
        logger.info("Updating repository", extra={"sha": self._settings.sha})
        try:
            await self._fetch_tags()
            await self._runner.run(
                "git",
                "reset",
                "--hard",
                self._settings.sha,
                cwd=self.working_directory,
                env=self._git_env,
            )
        except CommandError as exc:
            raise CacheHandlingError(CachePhase.UPDATE, str(exc)) from exc

    async def _fetch_tags(self) -> None:
        await self._runner.run(
            "git", "fetch", "--tags", "--force", cwd=self.working_directory, env=self._git_env
        )

    async def handle_pull_request_merge(self) -> None:
        """Pass-through for pull-request runs.

        Merge-result pipelines are not specified yet, so nothing is executed
        even when a base ref is present.
        """

        base_ref = self._settings.base_ref
        if not base_ref:
            logger.debug("Not a pull request, skipping merge handling")
            return

        # TODO: define merge-result semantics for pull-request runs against base_ref.
        logger.info(
            "Merge-result handling is not specified; leaving checkout at target commit",
            extra={"base_ref": base_ref, "sha": self._settings.sha},
        )


__all__ = ["NOREPLY_DOMAIN", "RepositorySynchronizer"]
