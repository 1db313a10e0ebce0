"""EC2 instance inventory for salio."""

import logging
from collections.abc import Callable
from typing import Any

import boto3

from salio.core.inventory import Snapshot
from salio.providers.aws.constants import INVENTORY_INSTANCE_STATES
from salio.providers.aws.errors import handle_aws_errors

logger = logging.getLogger(__name__)


class EC2Inventory:
    """Fetch running and pending EC2 instances for one account and region.

    Parameters
    ----------
    region : str
        AWS region to query
    profile : str | None
        Named AWS profile; None uses the default credential chain
    boto3_session_factory : Callable[..., Any] | None
        Optional factory for creating boto3 sessions. If None, uses
        boto3.session.Session
    """

    def __init__(
        self,
        region: str,
        profile: str | None = None,
        boto3_session_factory: Callable[..., Any] | None = None,
    ) -> None:
        self.region = region
        self.profile = profile
        self.boto3_session_factory = boto3_session_factory or boto3.session.Session

    def _ec2_client(self) -> Any:
        session = self.boto3_session_factory(
            profile_name=self.profile, region_name=self.region
        )
        return session.client("ec2")

    def describe_instances(self) -> list[dict[str, Any]]:
        """List raw instance records in the inventory states.

        Returns
        -------
        list[dict[str, Any]]
            Flattened ``Reservations[].Instances[]`` entries in API order

        Raises
        ------
        ProviderCredentialsError
            If AWS credentials are missing or rejected
        ProviderAPIError
            If the DescribeInstances call fails
        ProviderConnectionError
            If the EC2 endpoint is unreachable
        """
        instances = []

        with handle_aws_errors():
            paginator = self._ec2_client().get_paginator("describe_instances")
            page_iterator = paginator.paginate(
                Filters=[
                    {
                        "Name": "instance-state-name",
                        "Values": INVENTORY_INSTANCE_STATES,
                    },
                ]
            )

            for page in page_iterator:
                for reservation in page["Reservations"]:
                    instances.extend(reservation["Instances"])

        logger.debug(
            "Fetched %s instances from %s (profile=%s)",
            len(instances),
            self.region,
            self.profile,
        )
        return instances

    def fetch_snapshot(self) -> Snapshot:
        """Fetch instances and build the inventory snapshot.

        Returns
        -------
        Snapshot
            Snapshot with bastion relationships derived
        """
        return Snapshot.from_ec2(self.describe_instances())
