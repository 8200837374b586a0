"""Error types raised by the repository initialization phases."""

from __future__ import annotations

from enum import Enum


class RepoInitError(RuntimeError):
    """Base class for errors that fail the job."""


class ConfigurationError(RepoInitError):
    """Raised when a required environment value is missing or invalid."""


class WorkingDirectoryError(RepoInitError):
    """Raised when the working directory cannot be created."""


class SSHPhase(str, Enum):
    DIRECTORY = "directory setup"
    AGENT = "agent startup"
    KNOWN_HOSTS = "known hosts configuration"
    IDENTITY = "identity loading"


class CachePhase(str, Enum):
    PURGE = "cache purge"
    PROBE = "remote probe"
    CLONE = "repository clone"
    UPDATE = "repository update"
    MARKER = "marker write"


class SSHInitializationError(RepoInitError):
    """Raised when the SSH agent session cannot be established."""

    def __init__(self, phase: SSHPhase, reason: str) -> None:
        super().__init__(f"SSH initialization failed during {phase.value}: {reason}")
        self.phase = phase
        self.reason = reason


class GitConfigurationError(RepoInitError):
    """Raised when a global git setting cannot be applied."""

    def __init__(self, setting: str, reason: str) -> None:
        super().__init__(f"Git configuration failed while setting {setting}: {reason}")
        self.setting = setting
        self.reason = reason


class CacheHandlingError(RepoInitError):
    """Raised when the checkout cannot be cloned or updated.

    The cache marker is left untouched so the next invocation can detect the
    inconsistent directory.
    """

    def __init__(self, phase: CachePhase, reason: str) -> None:
        super().__init__(f"Cache handling failed during {phase.value}: {reason}")
        self.phase = phase
        self.reason = reason


class CleanupWarning(RuntimeWarning):
    """Issued when SSH teardown fails; never fatal."""


__all__ = [
    "CacheHandlingError",
    "CachePhase",
    "CleanupWarning",
    "ConfigurationError",
    "GitConfigurationError",
    "RepoInitError",
    "SSHInitializationError",
    "SSHPhase",
    "WorkingDirectoryError",
]
