"""Persisted run-id marker for the repository cache."""

from __future__ import annotations

import logging
from pathlib import Path

MARKER_KEY = "INIT_REPOSITORY_PIPELINE_ID"

logger = logging.getLogger(__name__)


def format_marker(run_id: str) -> str:
    return f"{MARKER_KEY}={run_id}"


def parse_marker(content: str) -> str | None:
    """Return the run id stored in ``content``, or ``None`` when there is none."""

    _, separator, value = content.partition("=")
    if not separator:
        return None
    run_id = value.strip()
    return run_id or None


def read_marker(path: Path) -> str | None:
    """Read the run id that last populated the cache.

    An unreadable or missing marker means there is no previous run.
    """

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("No previous run id found", extra={"path": str(path), "error": str(exc)})
        return None

    run_id = parse_marker(content)
    logger.debug("Previous run id: %s", run_id, extra={"path": str(path)})
    return run_id


def write_marker(path: Path, run_id: str) -> None:
    path.write_text(format_marker(run_id), encoding="utf-8")


__all__ = ["MARKER_KEY", "format_marker", "parse_marker", "read_marker", "write_marker"]
