"""SSH agent session utilities."""

from .session import GIT_SSH_COMMAND, GitEnvironment, SSHSession, SSHSessionManager, generate_socket_path

__all__ = [
    "GIT_SSH_COMMAND",
    "GitEnvironment",
    "SSHSession",
    "SSHSessionManager",
    "generate_socket_path",
]
