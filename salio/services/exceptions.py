"""Errors raised while establishing a tunnelled SSH session.

Every error here is fatal for the current attempt and is surfaced verbatim to
the operator by the CLI.
"""


class TunnelError(Exception):
    """Base class for tunnel establishment failures."""

    pass


class AgentUnavailableError(TunnelError):
    """Raised when the local ssh-agent is not configured or not reachable."""

    pass


class NoSignersError(TunnelError):
    """Raised when the ssh-agent holds no usable keys."""

    pass


class DialTimeoutError(TunnelError):
    """Raised when a dial stage does not complete within its timeout."""

    pass


class AuthFailedError(TunnelError):
    """Raised when a host rejects every key offered by the agent."""

    pass


class UnreachableError(TunnelError):
    """Raised when a host cannot be reached or the handshake fails."""

    pass
