"""Utility functions for salio."""

import logging
import sys
from datetime import datetime
from typing import Any

from salio.constants import LAUNCH_TIME_FORMAT


def pad_to_len(text: str, width: int, pad: str = " ") -> str:
    """Pad or cut ``text`` to exactly ``width`` characters.

    Parameters
    ----------
    text : str
        Text to pad
    width : int
        Resulting width
    pad : str
        Padding string (default: single space)

    Returns
    -------
    str
        ``text`` padded with ``pad`` and cut to ``width``
    """
    if width <= 0:
        return ""

    repeats = 1 + width // len(pad)
    return (text + pad * repeats)[:width]


def format_launch_time(launch_time: datetime | None) -> str:
    """Format a launch time in local time for the candidate table.

    Naive datetimes are treated as local time. Missing values render as ``-``.
    """
    if launch_time is None:
        return "-"

    return launch_time.astimezone().strftime(LAUNCH_TIME_FORMAT)


def log_and_print_error(message: str, *args: Any) -> None:
    """Log error message and print to stderr.

    Parameters
    ----------
    message : str
        Error message with optional format placeholders
    *args : Any
        Format arguments for message
    """
    logging.getLogger(__name__).debug(message, *args)
    formatted_msg = message % args if args else message
    print(formatted_msg, file=sys.stderr)
