"""AWS-specific constants for instance inventory operations."""

DEFAULT_REGION = "ap-southeast-2"
"""Region used when neither flag, environment nor config file sets one."""

INVENTORY_INSTANCE_STATES = ["running", "pending"]
"""EC2 instance states included in the inventory snapshot.

Stopped instances cannot be reached, so they never become jump candidates.
"""
