"""AWS inventory provider."""

from salio.providers.aws.inventory import EC2Inventory

__all__ = ["EC2Inventory"]
