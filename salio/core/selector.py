"""Pick a bastion for each resolved instance and order the candidates."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Iterable
from datetime import datetime, timezone

from salio.core.inventory import JumpPath, Snapshot

logger = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)

_random = random.Random(time.time_ns())


def _launch_key(path: JumpPath) -> datetime:
    launch_time = path.instance.launch_time
    if launch_time is None:
        return _OLDEST
    if launch_time.tzinfo is None:
        return launch_time.replace(tzinfo=timezone.utc)
    return launch_time


def sort_candidates(candidates: Iterable[JumpPath]) -> list[JumpPath]:
    """Order candidates by target name, newest launch first within a name.

    Both passes are stable, so candidates with equal name and launch time
    keep their discovery order.

    Parameters
    ----------
    candidates : Iterable[JumpPath]
        Candidates in discovery order

    Returns
    -------
    list[JumpPath]
        Sorted candidates
    """
    ordered = sorted(candidates, key=_launch_key, reverse=True)
    ordered.sort(key=lambda path: path.instance.name)
    return ordered


def select_candidates(
    targets: Iterable[str],
    snapshot: Snapshot,
    rng: random.Random | None = None,
) -> list[JumpPath]:
    """Build the ordered list of jump paths for the resolved names.

    Each instance carrying a resolved name gets one bastion chosen uniformly
    at random, which spreads sessions across bastions of the same cluster.
    Instances without a bastion are reported and skipped.

    Parameters
    ----------
    targets : Iterable[str]
        Resolved display names
    snapshot : Snapshot
        Inventory the names were resolved against
    rng : random.Random | None
        Random source for bastion choice (default: process-wide source seeded
        once at import)

    Returns
    -------
    list[JumpPath]
        Candidates sorted by ``sort_candidates``
    """
    rng = rng or _random
    candidates = []

    for target in sorted(targets):
        for instance in snapshot.named(target):
            bastions = snapshot.bastions_for(instance)

            if not bastions:
                logger.info("No bastion servers found for %s", instance.name)
                continue

            candidates.append(JumpPath(bastion=rng.choice(bastions), instance=instance))

    return sort_candidates(candidates)
