"""Interactive candidate selection."""

from __future__ import annotations

import sys
from collections.abc import Callable, Sequence
from typing import TextIO

from salio.constants import INVALID_SELECTION_MESSAGE
from salio.core.inventory import JumpPath
from salio.utils import format_launch_time, pad_to_len

SELECTION_PROMPT = "[?] Pick instance # and then [enter] to continue: "


class InvalidSelectionError(ValueError):
    """Raised when the operator enters a non-numeric or out-of-range choice."""

    def __init__(self, message: str = INVALID_SELECTION_MESSAGE) -> None:
        super().__init__(message)


def format_candidates(candidates: Sequence[JumpPath]) -> list[str]:
    """Render one numbered table row per candidate.

    Columns are index, instance id, name, private address and launch time.
    """
    longest_name = max((len(c.instance.name) for c in candidates), default=0)

    return [
        "%3d. %-19s %s %-15s %s"
        % (
            idx,
            c.instance.id,
            pad_to_len(c.instance.name, longest_name),
            c.instance.private_ip or "",
            format_launch_time(c.instance.launch_time),
        )
        for idx, c in enumerate(candidates, start=1)
    ]


def parse_selection(answer: str, count: int) -> int:
    """Convert a 1-based answer into a 0-based candidate index.

    Raises
    ------
    InvalidSelectionError
        If ``answer`` is not an integer in ``1..count``
    """
    try:
        selected = int(answer.strip())
    except ValueError as e:
        raise InvalidSelectionError() from e

    if selected < 1 or selected > count:
        raise InvalidSelectionError()

    return selected - 1


def choose_candidate(
    candidates: Sequence[JumpPath],
    input_func: Callable[[], str] | None = None,
    output: TextIO | None = None,
) -> JumpPath:
    """Print the candidate table and return the operator's pick.

    Parameters
    ----------
    candidates : Sequence[JumpPath]
        Sorted candidates, at least one
    input_func : Callable[[], str] | None
        Reads one answer line (default: sys.stdin.readline)
    output : TextIO | None
        Stream for the table and prompt (default: sys.stdout)

    Returns
    -------
    JumpPath
        Selected candidate

    Raises
    ------
    InvalidSelectionError
        If the answer is not a valid candidate number
    """
    output = output or sys.stdout
    input_func = input_func or sys.stdin.readline

    for line in format_candidates(candidates):
        print(line, file=output)

    print(SELECTION_PROMPT, end="", file=output, flush=True)

    return candidates[parse_selection(input_func(), len(candidates))]
