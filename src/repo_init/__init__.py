"""Repository initialization for ephemeral CI build agents."""

__version__ = "0.1.0"

__all__ = ["__version__"]
