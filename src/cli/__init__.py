"""Intentgate admin CLI."""

from intentgate import __version__

__all__ = ["__version__"]
