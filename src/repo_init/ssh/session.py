"""Per-job SSH agent session management."""

from __future__ import annotations

import logging
import re
import secrets
import tempfile
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Mapping

from ..config import InitSettings
from ..errors import CleanupWarning, SSHInitializationError, SSHPhase
from ..runner import CommandError, CommandRunner

GIT_SSH_COMMAND = "ssh -o StrictHostKeyChecking=yes"

_AGENT_PID_PATTERN = re.compile(r"SSH_AGENT_PID=(\d+)")

logger = logging.getLogger(__name__)


def generate_socket_path(directory: Path | None = None) -> Path:
    """Return a fresh agent socket path with a random suffix."""

    base = Path(directory) if directory is not None else Path(tempfile.gettempdir())
    return base / f"ssh-auth-sock-{secrets.token_hex(6)}"


@dataclass(slots=True)
class SSHSession:
    """Filesystem locations and process state of one SSH agent."""

    socket_path: Path
    ssh_dir: Path
    known_hosts_file: Path
    agent_pid: int | None = None

    @classmethod
    def create(cls, ssh_dir: Path | None = None) -> "SSHSession":
        directory = Path(ssh_dir) if ssh_dir is not None else Path.home() / ".ssh"
        return cls(
            socket_path=generate_socket_path(),
            ssh_dir=directory,
            known_hosts_file=directory / "known_hosts",
        )


@dataclass(frozen=True, slots=True)
class GitEnvironment(Mapping[str, str]):
    """Environment entries handed to git subprocesses that reach the remote."""

    ssh_auth_sock: str
    git_ssh_command: str = GIT_SSH_COMMAND

    def _as_dict(self) -> dict[str, str]:
        return {"SSH_AUTH_SOCK": self.ssh_auth_sock, "GIT_SSH_COMMAND": self.git_ssh_command}

    def __getitem__(self, key: str) -> str:
        return self._as_dict()[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._as_dict())

    def __len__(self) -> int:
        return 2


class SSHSessionManager:
    """Own the agent process, its single identity, and its teardown."""

    def __init__(
        self,
        settings: InitSettings,
        *,
        runner: CommandRunner | None = None,
        session: SSHSession | None = None,
    ) -> None:
        self._settings = settings
        self._runner = runner or CommandRunner()
        self.session = session or SSHSession.create()
        self._cleaned_up = False

    @property
    def socket_path(self) -> Path:
        return self.session.socket_path

    def git_env(self) -> GitEnvironment:
        return GitEnvironment(ssh_auth_sock=str(self.session.socket_path))

    def _agent_env(self) -> dict[str, str]:
        return {"SSH_AUTH_SOCK": str(self.session.socket_path)}

    async def initialize(self) -> Path:
        """Start the agent, trust the remote host, and load the identity.

        Returns the agent socket path.
        """

        private_key = self._settings.ssh_private_key
        if private_key is None:
            raise SSHInitializationError(SSHPhase.IDENTITY, "SSH_PRIVATE_KEY secret is not set")

        logger.debug("Initializing SSH configuration", extra={"socket": str(self.socket_path)})
        self._setup_ssh_dir()
        await self._start_agent()
        await self._configure_known_hosts()
        await self._add_key(private_key.get_secret_value())
        logger.debug("SSH configuration completed successfully")
        return self.session.socket_path

    def _setup_ssh_dir(self) -> None:
        ssh_dir = self.session.ssh_dir
        try:
            ssh_dir.mkdir(parents=True, exist_ok=True)
            ssh_dir.chmod(0o700)
        except OSError as exc:
            raise SSHInitializationError(SSHPhase.DIRECTORY, str(exc)) from exc

    async def _start_agent(self) -> None:
        logger.debug("Starting SSH agent", extra={"socket": str(self.socket_path)})
        try:
            result = await self._runner.run("ssh-agent", "-a", str(self.socket_path))
        except CommandError as exc:
            raise SSHInitializationError(SSHPhase.AGENT, str(exc)) from exc

        match = _AGENT_PID_PATTERN.search(result.stdout)
        if match:
            self.session.agent_pid = int(match.group(1))

    async def _configure_known_hosts(self) -> None:
        host = self._settings.ssh_host
        logger.debug("Configuring known hosts", extra={"host": host})
        try:
            result = await self._runner.run("ssh-keyscan", "-H", host)
        except CommandError as exc:
            raise SSHInitializationError(SSHPhase.KNOWN_HOSTS, str(exc)) from exc

        entries = result.stdout.strip()
        if not entries:
            raise SSHInitializationError(SSHPhase.KNOWN_HOSTS, f"ssh-keyscan returned no host keys for {host}")

        known_hosts = self.session.known_hosts_file
        try:
            with known_hosts.open("a", encoding="utf-8") as handle:
                handle.write(entries + "\n")
            known_hosts.chmod(0o600)
        except OSError as exc:
            raise SSHInitializationError(SSHPhase.KNOWN_HOSTS, str(exc)) from exc

    async def _add_key(self, key: str) -> None:
        if not key.endswith("\n"):
            key += "\n"

        logger.debug("Adding SSH key")
        try:
            await self._runner.run("ssh-add", "-", env=self._agent_env(), input=key.encode("utf-8"))
        except CommandError as exc:
            raise SSHInitializationError(SSHPhase.IDENTITY, str(exc)) from exc

    async def cleanup(self) -> None:
        """Revoke every identity and stop the agent. Never raises."""

        if self._cleaned_up:
            return
        self._cleaned_up = True

        logger.debug("Cleaning up SSH configuration", extra={"socket": str(self.socket_path)})
        try:
            await self._runner.run("ssh-add", "-D", env=self._agent_env())
        except Exception as exc:
            _warn_cleanup(f"SSH cleanup failed: {exc}")

        if self.session.agent_pid is None:
            return
        env = {**self._agent_env(), "SSH_AGENT_PID": str(self.session.agent_pid)}
        try:
            await self._runner.run("ssh-agent", "-k", env=env)
        except Exception as exc:
            _warn_cleanup(f"SSH agent shutdown failed: {exc}")


def _warn_cleanup(message: str) -> None:
    logger.warning(message)
    try:
        warnings.warn(message, CleanupWarning, stacklevel=3)
    except CleanupWarning:
        # escalated by a warnings filter; already logged above
        pass


__all__ = [
    "GIT_SSH_COMMAND",
    "GitEnvironment",
    "SSHSession",
    "SSHSessionManager",
    "generate_socket_path",
]
