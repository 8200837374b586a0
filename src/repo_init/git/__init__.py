"""Repository synchronisation for the CI working directory."""

from .marker import MARKER_KEY, format_marker, parse_marker, read_marker, write_marker
from .sync import NOREPLY_DOMAIN, RepositorySynchronizer

__all__ = [
    "MARKER_KEY",
    "NOREPLY_DOMAIN",
    "RepositorySynchronizer",
    "format_marker",
    "parse_marker",
    "read_marker",
    "write_marker",
]
