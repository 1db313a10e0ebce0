"""Inventory providers.

Only AWS EC2 is implemented. Providers turn raw cloud records into a
``salio.core.inventory.Snapshot``.
"""

from __future__ import annotations

from salio.providers.aws import EC2Inventory
from salio.providers.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
    ProviderError,
)

__all__ = [
    "EC2Inventory",
    "ProviderError",
    "ProviderCredentialsError",
    "ProviderAPIError",
    "ProviderConnectionError",
]
