"""Utility helpers for subprocess execution."""

from __future__ import annotations

import os
from typing import Mapping

_SANITIZED_VARS = {
    # the job's own interpreter settings must not leak into hooks git runs
    "PYTHONHOME",
    "PYTHONPATH",
    "VIRTUAL_ENV",
    "PIP_RESPECT_VIRTUALENV",
    # secret; reaches ssh-add on stdin only
    "SSH_PRIVATE_KEY",
}


def sanitize_environment(additional: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return a sanitized environment suitable for subprocess execution.

    ``PYTHONHOME``, ``PYTHONPATH``, ``VIRTUAL_ENV`` and
    ``PIP_RESPECT_VIRTUALENV`` describe the interpreter running this tool,
    not the repository being checked out, so git hooks and ssh helpers would
    otherwise pick up the wrong environment. ``SSH_PRIVATE_KEY`` is the
    deploy key secret; it is handed to ``ssh-add`` through standard input
    and must never be visible to ``ssh``, ``git`` or anything they spawn.
    """

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    if additional:
        env.update(additional)
    return env


__all__ = ["sanitize_environment"]
