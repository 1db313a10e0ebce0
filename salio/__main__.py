#!/usr/bin/env python3
"""salio - ssh to private instances through their cluster bastion."""

from __future__ import annotations

import logging
import random
import sys
from collections.abc import Callable, Sequence
from typing import Any

from salio.cli.chooser import choose_candidate
from salio.cli.main import main
from salio.constants import DEBIAN_USER, UBUNTU_USER
from salio.core.config import ConfigLoader
from salio.core.inventory import JumpPath, Snapshot
from salio.core.resolver import resolve_instance_names
from salio.core.selector import select_candidates
from salio.providers.aws.inventory import EC2Inventory
from salio.services.exceptions import AuthFailedError, UnreachableError
from salio.services.session import run_shell
from salio.services.ssh import ForwardingClient, TunnelEstablisher

logger = logging.getLogger(__name__)

USAGE = "usage: salio [-p PROFILE] [-r REGION] [--auto_jump] TERM [TERM ...]"


class Salio:
    """Main CLI interface for salio.

    Parameters
    ----------
    inventory_factory : Callable[[str, str | None], Any] | None
        Builds an inventory for ``(region, profile)``; the result must provide
        ``fetch_snapshot()``. Defaults to ``EC2Inventory``.
    tunnel_factory : Callable[..., TunnelEstablisher] | None
        Builds a tunnel establisher from ``dial_timeout``
    session_runner : Callable[[ForwardingClient], int] | None
        Runs the remote shell (default: ``run_shell``)
    chooser : Callable[[Sequence[JumpPath]], JumpPath] | None
        Asks the operator to pick a candidate (default: ``choose_candidate``)
    rng : random.Random | None
        Random source for bastion selection
    """

    def __init__(
        self,
        inventory_factory: Callable[[str, str | None], Any] | None = None,
        tunnel_factory: Callable[..., TunnelEstablisher] | None = None,
        session_runner: Callable[[ForwardingClient], int] | None = None,
        chooser: Callable[[Sequence[JumpPath]], JumpPath] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._config_loader = ConfigLoader()
        self._inventory_factory = inventory_factory or self._create_inventory
        self._tunnel_factory = tunnel_factory or TunnelEstablisher
        self._session_runner = session_runner or run_shell
        self._chooser = chooser or choose_candidate
        self._rng = rng

    @staticmethod
    def _create_inventory(region: str, profile: str | None) -> EC2Inventory:
        return EC2Inventory(region=region, profile=profile)

    def find_candidates(self, search_term: str, snapshot: Snapshot) -> list[JumpPath]:
        """Resolve ``search_term`` and pair each match with a bastion.

        Parameters
        ----------
        search_term : str
            Dot-joined search term
        snapshot : Snapshot
            Inventory snapshot

        Returns
        -------
        list[JumpPath]
            Sorted candidates, empty when nothing matches
        """
        targets = resolve_instance_names(search_term, snapshot)
        return select_candidates(targets, snapshot, rng=self._rng)

    def connect(
        self,
        candidate: JumpPath,
        bastion_user: str,
        instance_user: str | None,
        dial_timeout: float,
    ) -> ForwardingClient:
        """Open the tunnelled connection for ``candidate``.

        Without ``instance_user`` the Ubuntu user is tried first and, if the
        target rejects it, the Debian user once.

        Raises
        ------
        UnreachableError
            If the bastion has no public or the target no private address
        TunnelError
            Any failure from ``TunnelEstablisher.connect``
        """
        bastion_address = candidate.bastion.public_ip
        target_address = candidate.instance.private_ip

        if not bastion_address:
            raise UnreachableError(
                f"bastion {candidate.bastion.id} has no public IP address"
            )
        if not target_address:
            raise UnreachableError(
                f"instance {candidate.instance.id} has no private IP address"
            )

        tunnel = self._tunnel_factory(dial_timeout=dial_timeout)

        if instance_user:
            return tunnel.connect(bastion_user, instance_user, bastion_address, target_address)

        try:
            return tunnel.connect(bastion_user, UBUNTU_USER, bastion_address, target_address)
        except AuthFailedError as e:
            logger.info("[+] connection failed: %s", e)

        return tunnel.connect(bastion_user, DEBIAN_USER, bastion_address, target_address)

    def jump(
        self,
        *terms: Any,
        profile: str | None = None,
        region: str | None = None,
        auto_jump: bool | None = None,
        bastion_user: str | None = None,
        instance_user: str | None = None,
        dial_timeout: float | None = None,
        verbose: bool = False,
    ) -> None:
        """Find an instance by name and open a shell on it through its bastion.

        Parameters
        ----------
        *terms : Any
            Search tokens, joined with "."
        profile : str | None
            AWS profile (default: $AWS_PROFILE or config file)
        region : str | None
            AWS region (default: $AWS_REGION, config file, ap-southeast-2)
        auto_jump : bool | None
            Connect without prompting when exactly one candidate is found
        bastion_user : str | None
            SSH user for bastions (default: ubuntu)
        instance_user : str | None
            SSH user for the instance (default: ubuntu, then admin)
        dial_timeout : float | None
            Seconds allowed per dial stage (default: 10)
        verbose : bool
            Enable debug logging
        """
        if verbose:
            logging.getLogger().setLevel(logging.DEBUG)

        search_term = ".".join(str(term) for term in terms)
        if not search_term:
            print(USAGE, file=sys.stderr)
            sys.exit(1)

        config = self._config_loader.get_effective_config(
            {
                "profile": profile,
                "region": region,
                "auto_jump": auto_jump,
                "bastion_user": bastion_user,
                "instance_user": instance_user,
                "dial_timeout": dial_timeout,
            }
        )

        inventory = self._inventory_factory(config["region"], config["profile"])
        snapshot = inventory.fetch_snapshot()

        candidates = self.find_candidates(search_term, snapshot)
        if not candidates:
            print("No instances found")
            return

        if config["auto_jump"] and len(candidates) == 1:
            candidate = candidates[0]
        else:
            candidate = self._chooser(candidates)

        client = self.connect(
            candidate,
            bastion_user=config["bastion_user"],
            instance_user=config["instance_user"],
            dial_timeout=config["dial_timeout"],
        )

        try:
            self._session_runner(client)
        finally:
            client.close()


if __name__ == "__main__":
    main()
