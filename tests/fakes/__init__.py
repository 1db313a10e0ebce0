"""Test doubles for salio collaborators."""

from tests.fakes.fake_inventory import FakeInventory, make_instance
from tests.fakes.fake_tunnel import FakeTunnelEstablisher

__all__ = ["FakeInventory", "FakeTunnelEstablisher", "make_instance"]
