"""Instance records and the immutable inventory snapshot."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any

from salio.constants import BASTION_ROLE, NAME_TAG, ROLE_TAG

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Instance:
    """A compute instance as seen at snapshot time.

    Attributes
    ----------
    id : str
        Instance identifier, unique within a snapshot
    name : str
        Display name from the Name tag (may be empty)
    role : str
        Value of the role tag (may be empty)
    tags : Mapping[str, str]
        Read-only view of all instance tags
    public_ip : str | None
        Public address, if any
    private_ip : str | None
        Private address, if any
    launch_time : datetime | None
        Launch timestamp, if known
    bastion_ids : tuple[str, ...]
        Ids of bastions that can reach this instance. Resolve them through
        ``Snapshot.bastions_for``.
    """

    id: str
    name: str = ""
    role: str = ""
    tags: Mapping[str, str] = field(default_factory=dict, compare=False, hash=False)
    public_ip: str | None = None
    private_ip: str | None = None
    launch_time: datetime | None = None
    bastion_ids: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))

    @property
    def is_bastion(self) -> bool:
        """Whether the instance is tagged with the bastion role."""
        return self.role == BASTION_ROLE

    @property
    def cluster(self) -> str:
        """Leading dot-delimited segment of the display name."""
        return self.name.split(".", 1)[0]

    @classmethod
    def from_tags(cls, instance_id: str, tags: Mapping[str, str], **kwargs: Any) -> Instance:
        """Build an instance deriving name and role from its tags.

        Parameters
        ----------
        instance_id : str
            Instance identifier
        tags : Mapping[str, str]
            Instance tags
        **kwargs : Any
            Remaining ``Instance`` fields (addresses, launch time)

        Returns
        -------
        Instance
            New instance with no bastions assigned
        """
        return cls(
            id=instance_id,
            name=tags.get(NAME_TAG, ""),
            role=tags.get(ROLE_TAG, ""),
            tags=tags,
            **kwargs,
        )

    @classmethod
    def from_ec2(cls, raw: Mapping[str, Any]) -> Instance:
        """Build an instance from a boto3 ``describe_instances`` entry.

        Parameters
        ----------
        raw : Mapping[str, Any]
            One element of ``Reservations[].Instances[]``

        Returns
        -------
        Instance
            New instance with no bastions assigned
        """
        tags = {tag["Key"]: tag["Value"] for tag in raw.get("Tags", [])}

        return cls.from_tags(
            raw["InstanceId"],
            tags,
            public_ip=raw.get("PublicIpAddress"),
            private_ip=raw.get("PrivateIpAddress"),
            launch_time=raw.get("LaunchTime"),
        )


@dataclass(frozen=True)
class JumpPath:
    """A (bastion, target) pairing eligible for connection."""

    bastion: Instance
    instance: Instance


class Snapshot:
    """Immutable, ordered collection of instances for one run.

    The snapshot owns every instance. Bastion relationships are stored as ids
    on each instance and resolved here, so instances never reference each
    other directly.

    Parameters
    ----------
    instances : Iterable[Instance]
        Instances in provider order. Bastion ids are recomputed, any values
        already present are replaced.
    """

    def __init__(self, instances: Iterable[Instance] = ()) -> None:
        instances = list(instances)
        bastions = [i for i in instances if i.is_bastion]

        linked = []
        for instance in instances:
            if instance.is_bastion:
                linked.append(replace(instance, bastion_ids=()))
                continue

            bastion_ids = tuple(
                b.id
                for b in bastions
                if b.id != instance.id and b.cluster == instance.cluster
            )
            linked.append(replace(instance, bastion_ids=bastion_ids))

        self._instances = tuple(linked)
        self._by_id = {i.id: i for i in self._instances}

        logger.debug(
            "Built snapshot with %s instances (%s bastions)",
            len(self._instances),
            len(bastions),
        )

    @classmethod
    def from_ec2(cls, raw_instances: Iterable[Mapping[str, Any]]) -> Snapshot:
        """Build a snapshot from raw boto3 instance dicts.

        Parameters
        ----------
        raw_instances : Iterable[Mapping[str, Any]]
            Flattened ``Reservations[].Instances[]`` entries

        Returns
        -------
        Snapshot
            Snapshot with bastion relationships derived
        """
        return cls(Instance.from_ec2(raw) for raw in raw_instances)

    def __iter__(self):
        return iter(self._instances)

    def __len__(self) -> int:
        return len(self._instances)

    @property
    def instances(self) -> tuple[Instance, ...]:
        """All instances in provider order."""
        return self._instances

    def get(self, instance_id: str) -> Instance | None:
        """Look up an instance by id."""
        return self._by_id.get(instance_id)

    def bastions_for(self, instance: Instance) -> list[Instance]:
        """Resolve the bastion ids of ``instance`` to instances."""
        return [self._by_id[bastion_id] for bastion_id in instance.bastion_ids]

    def named(self, name: str) -> list[Instance]:
        """Return every instance whose display name equals ``name``."""
        return [i for i in self._instances if i.name == name]
