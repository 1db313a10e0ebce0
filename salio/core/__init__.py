"""Core salio functionality: inventory snapshot, resolution and selection."""

from __future__ import annotations

from salio.core.inventory import Instance, JumpPath, Snapshot
from salio.core.resolver import FuzzyIndex, resolve_instance_names
from salio.core.selector import select_candidates, sort_candidates

__all__ = [
    "Instance",
    "JumpPath",
    "Snapshot",
    "FuzzyIndex",
    "resolve_instance_names",
    "select_candidates",
    "sort_candidates",
]
