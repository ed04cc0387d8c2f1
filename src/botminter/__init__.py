"""botminter package metadata.

Exports the package version resolved from build metadata or installed
distribution information.

Example:
    >>> from botminter import __version__
    >>> isinstance(__version__, str)
    True
"""

from __future__ import annotations

__all__ = ["__version__"]

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("botminter")
except PackageNotFoundError:
    __version__ = "0.0.0"
