"""Per-branch working directory layout."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from .errors import WorkingDirectoryError

_LEADING_PARENTS = re.compile(r"^(\.\.(/|\\|$))+")

logger = logging.getLogger(__name__)


def sanitize_path(value: str) -> str:
    """Normalise ``value`` and drop leading ``..`` segments."""

    if not value:
        return ""
    return _LEADING_PARENTS.sub("", os.path.normpath(value))


class DirectoryManager:
    """Compute and create ``<base>/<owner>/<repo>/branches/<ref>``."""

    def __init__(self, base_path: str, repository: str, ref: str) -> None:
        self._base_path = base_path
        self._repository = repository
        self._ref = ref

    def working_directory_path(self) -> Path:
        base = sanitize_path(self._base_path)
        # absolute segments must not reset the join
        tail = "/".join((self._repository, "branches", self._ref))
        tail = sanitize_path(tail.lstrip("/\\"))
        return Path(base) / tail if base else Path(tail)

    def create_working_directory(self) -> Path:
        path = self.working_directory_path()
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WorkingDirectoryError(f"Failed to create working directory {path}: {exc}") from exc
        logger.debug("Working directory ready", extra={"path": str(path)})
        return path


__all__ = ["DirectoryManager", "sanitize_path"]
