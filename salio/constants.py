"""Global constants for salio.

This module contains application-wide constants shared by the resolver, the
tunnel establisher and the session runner.
"""

BASTION_ROLE = "nat"
"""Value of the ``role`` tag that marks an instance as a bastion.

Bastions are the first hop of every session and only serve instances whose
cluster (leading dot-delimited segment of the Name tag) matches their own.
"""

NAME_TAG = "Name"
"""Tag key holding the instance display name."""

ROLE_TAG = "role"
"""Tag key holding the free-form instance role."""

DEFAULT_SSH_PORT = 22
"""Port appended to addresses that do not carry one."""

DEFAULT_DIAL_TIMEOUT_SECONDS = 10.0
"""Upper bound for each dial stage (bastion connect, forwarded channel open).

A stage that does not finish in time fails with DialTimeoutError. Timed-out
stages are not retried.
"""

DEFAULT_BASTION_USER = "ubuntu"
"""SSH user for bastion hosts."""

UBUNTU_USER = "ubuntu"
"""First SSH user tried on target instances when none is given."""

DEBIAN_USER = "admin"
"""Fallback SSH user tried once when the Ubuntu user is rejected."""

PTY_TERM = "xterm-256color"
"""Terminal type requested for the remote pseudo-terminal."""

PTY_BAUD_RATE = 14400
"""Input and output speed advertised in the pseudo-terminal modes."""

CHANNEL_BUFFER_SIZE = 32768
"""Maximum bytes read from the channel or local stdin per iteration."""

INVALID_SELECTION_MESSAGE = "[!] I cannot do that Dave."
"""Fixed message printed when the operator picks an invalid candidate."""

LAUNCH_TIME_FORMAT = "%Y-%m-%d %H:%M"
"""strftime format for launch times in the candidate table."""
