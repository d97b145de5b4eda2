"""IntervalLog: fixed-interval work sessions with progress logs published to git."""

__version__ = "1.0.0"

from .cli import main

__all__ = ["main", "__version__"]
