"""SSH services: tunnel establishment and interactive sessions."""

from __future__ import annotations

from salio.services.session import InteractiveSession, run_shell
from salio.services.ssh import ForwardingClient, TunnelEstablisher

__all__ = [
    "ForwardingClient",
    "InteractiveSession",
    "TunnelEstablisher",
    "run_shell",
]
