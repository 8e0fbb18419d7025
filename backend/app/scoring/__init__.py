"""Scoring engines."""

from . import molkky

__all__ = [
    "molkky",
]
