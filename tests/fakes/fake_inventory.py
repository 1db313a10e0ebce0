"""Fake inventory provider for unit tests."""

from datetime import datetime, timezone

from salio.core.inventory import Instance, Snapshot


def make_instance(
    instance_id: str,
    name: str = "",
    role: str = "",
    launched: datetime | None = None,
    public_ip: str | None = None,
    private_ip: str | None = "10.0.0.1",
) -> Instance:
    """Build an instance the way the EC2 provider would."""
    tags = {}
    if name:
        tags["Name"] = name
    if role:
        tags["role"] = role

    return Instance.from_tags(
        instance_id,
        tags,
        public_ip=public_ip,
        private_ip=private_ip,
        launch_time=launched or datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


class FakeInventory:
    """Inventory returning a fixed snapshot and recording how it was built."""

    def __init__(self, snapshot: Snapshot) -> None:
        self.snapshot = snapshot
        self.created_with: list[tuple[str, str | None]] = []

    def factory(self, region: str, profile: str | None) -> "FakeInventory":
        self.created_with.append((region, profile))
        return self

    def fetch_snapshot(self) -> Snapshot:
        return self.snapshot
