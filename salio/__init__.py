"""salio - ssh to private EC2 instances through their cluster bastion."""

__version__ = "0.1.0"
