"""CLI entry point and interactive candidate selection."""

from __future__ import annotations

from salio.cli.chooser import InvalidSelectionError, choose_candidate

__all__ = [
    "InvalidSelectionError",
    "choose_candidate",
]
