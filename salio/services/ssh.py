"""Two-hop SSH tunnel establishment with agent forwarding."""

import logging
import os
import queue
import socket
import threading
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

import paramiko
from paramiko.agent import AgentRequestHandler
from paramiko.channel import Channel

from salio.constants import DEFAULT_DIAL_TIMEOUT_SECONDS, DEFAULT_SSH_PORT
from salio.services.exceptions import (
    AgentUnavailableError,
    AuthFailedError,
    DialTimeoutError,
    NoSignersError,
    UnreachableError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

FORWARDED_CHANNEL_ORIGIN = ("127.0.0.1", 0)


def add_default_port(address: str, port: int = DEFAULT_SSH_PORT) -> str:
    """Append ``port`` to an address that does not carry one.

    Parameters
    ----------
    address : str
        ``host``, ``host:port``, ``[v6]``, ``[v6]:port`` or a bare IPv6 address
    port : int
        Port to append (default: 22)

    Returns
    -------
    str
        Address in ``host:port`` form (IPv6 hosts bracketed)
    """
    if address.startswith("["):
        if "]:" in address:
            return address
        return f"{address}:{port}"

    colons = address.count(":")
    if colons == 1:
        return address
    if colons > 1:
        return f"[{address}]:{port}"

    return f"{address}:{port}"


def split_address(address: str) -> tuple[str, int]:
    """Split a ``host:port`` address produced by ``add_default_port``.

    Raises
    ------
    ValueError
        If the port is not an integer
    """
    host, _, port = address.rpartition(":")
    return host.strip("[]"), int(port)


def open_agent(agent_factory: Callable[[], paramiko.Agent] = paramiko.Agent) -> paramiko.Agent:
    """Connect to the operator's ssh-agent.

    Parameters
    ----------
    agent_factory : Callable[[], paramiko.Agent]
        Agent constructor (default: paramiko.Agent)

    Returns
    -------
    paramiko.Agent
        Connected agent client

    Raises
    ------
    AgentUnavailableError
        If SSH_AUTH_SOCK is unset, its socket does not exist, or the agent
        does not answer
    """
    sock = os.environ.get("SSH_AUTH_SOCK")
    if not sock:
        raise AgentUnavailableError(
            "SSH_AUTH_SOCK environment variable is not set, verify that ssh-agent is running"
        )

    if not os.path.exists(sock):
        raise AgentUnavailableError(f"ssh-agent socket {sock} does not exist")

    # paramiko.Agent swallows connect errors and reports an empty key list
    conn = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        conn.connect(sock)
    except OSError as e:
        raise AgentUnavailableError(f"cannot connect to ssh-agent at {sock}: {e}") from e
    finally:
        conn.close()

    try:
        return agent_factory()
    except paramiko.SSHException as e:
        raise AgentUnavailableError(f"cannot talk to ssh-agent at {sock}: {e}") from e


def agent_signers(agent: paramiko.Agent) -> tuple[paramiko.AgentKey, ...]:
    """Return the keys held by ``agent``.

    Raises
    ------
    NoSignersError
        If the agent holds no keys
    """
    keys = tuple(agent.get_keys())
    if not keys:
        raise NoSignersError("ssh-agent has no keys, add one with ssh-add")
    return keys


def authenticate(
    transport: paramiko.Transport, username: str, signers: Sequence[paramiko.PKey]
) -> None:
    """Authenticate ``transport`` trying each signer in turn.

    Raises
    ------
    AuthFailedError
        If every signer is rejected
    """
    last_error: Exception | None = None

    for key in signers:
        try:
            transport.auth_publickey(username, key)
        except paramiko.AuthenticationException as e:
            last_error = e
            continue

        if transport.is_authenticated():
            return

    raise AuthFailedError(
        f"ssh: unable to authenticate as {username}, attempted methods [publickey]: {last_error}"
    )


class ForwardingClient:
    """Established second-hop connection that forwards the local agent.

    Parameters
    ----------
    transport : paramiko.Transport
        Authenticated transport to the target instance
    bastion_transport : paramiko.Transport | None
        Transport to the bastion carrying ``transport``; closed with it
    agent_forwarding : bool
        Whether to forward the local ssh-agent into sessions
    handler_factory : Callable[[Channel], AgentRequestHandler]
        Factory installing agent forwarding on a channel
        (default: paramiko.agent.AgentRequestHandler)

    Attributes
    ----------
    transport : paramiko.Transport
        Transport to the target instance
    bastion_transport : paramiko.Transport | None
        Transport to the bastion
    agent_forwarding : bool
        Whether sessions get agent forwarding
    """

    def __init__(
        self,
        transport: paramiko.Transport,
        bastion_transport: paramiko.Transport | None = None,
        agent_forwarding: bool = True,
        handler_factory: Callable[[Channel], AgentRequestHandler] = AgentRequestHandler,
    ) -> None:
        self.transport = transport
        self.bastion_transport = bastion_transport
        self.agent_forwarding = agent_forwarding
        self._handler_factory = handler_factory
        self._agent_handlers: dict[int, AgentRequestHandler] = {}

    def open_session(self) -> Channel:
        """Open a new session channel on the target."""
        return self.transport.open_session()

    def forward_agent_authentication(self, channel: Channel) -> None:
        """Request agent forwarding on ``channel``, at most once per channel.

        The ssh daemon answers a second auth-agent request on the same
        channel with a channel failure, so repeated calls are no-ops.

        Parameters
        ----------
        channel : Channel
            Open session channel on the target

        Raises
        ------
        paramiko.SSHException
            If the remote side rejects the forwarding request
        """
        if not self.agent_forwarding:
            return

        channel_id = channel.get_id()
        if channel_id in self._agent_handlers:
            return

        self._agent_handlers[channel_id] = self._handler_factory(channel)
        logger.debug("Agent forwarding requested on channel %s", channel_id)

    def close(self) -> None:
        """Close agent forwarders, then the target and bastion transports."""
        for handler in self._agent_handlers.values():
            handler.close()
        self._agent_handlers.clear()

        self.transport.close()
        if self.bastion_transport is not None:
            self.bastion_transport.close()

    def __enter__(self) -> "ForwardingClient":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()


class TunnelEstablisher:
    """Open SSH sessions on private instances through a bastion.

    Parameters
    ----------
    dial_timeout : float
        Seconds allowed for each dial stage (default: 10)
    agent_factory : Callable[[], paramiko.Agent]
        Agent constructor (default: paramiko.Agent)
    transport_factory : Callable[[Any], paramiko.Transport]
        Transport constructor taking a socket or channel
        (default: paramiko.Transport)
    socket_factory : Callable[..., socket.socket]
        TCP connector with ``socket.create_connection`` signature
    handler_factory : Callable[[Channel], AgentRequestHandler]
        Agent forwarding installer passed to ``ForwardingClient``
    """

    def __init__(
        self,
        dial_timeout: float = DEFAULT_DIAL_TIMEOUT_SECONDS,
        agent_factory: Callable[[], paramiko.Agent] = paramiko.Agent,
        transport_factory: Callable[[Any], paramiko.Transport] = paramiko.Transport,
        socket_factory: Callable[..., socket.socket] = socket.create_connection,
        handler_factory: Callable[[Channel], AgentRequestHandler] = AgentRequestHandler,
    ) -> None:
        self.dial_timeout = dial_timeout
        self._agent_factory = agent_factory
        self._transport_factory = transport_factory
        self._socket_factory = socket_factory
        self._handler_factory = handler_factory

    def connect(
        self,
        bastion_user: str,
        target_user: str,
        bastion_address: str,
        target_address: str,
    ) -> ForwardingClient:
        """Dial the bastion, tunnel to the target and authenticate both hops.

        Parameters
        ----------
        bastion_user : str
            SSH user on the bastion
        target_user : str
            SSH user on the target instance
        bastion_address : str
            Bastion address, port optional
        target_address : str
            Target address as seen from the bastion, port optional

        Returns
        -------
        ForwardingClient
            Client for the target with agent forwarding enabled

        Raises
        ------
        AgentUnavailableError
            If the local ssh-agent cannot be used
        NoSignersError
            If the agent holds no keys
        DialTimeoutError
            If either dial stage exceeds ``dial_timeout``
        UnreachableError
            If a host cannot be reached or a channel is refused
        AuthFailedError
            If either host rejects every key
        """
        logger.info(
            "[+] trying %s@%s via %s@%s",
            target_user,
            target_address,
            bastion_user,
            bastion_address,
        )
        bastion_host, bastion_port = split_address(add_default_port(bastion_address))
        target_host, target_port = split_address(add_default_port(target_address))

        agent = open_agent(self._agent_factory)

        try:
            signers = agent_signers(agent)

            bastion = self._dial_with_timeout(
                "bastion",
                lambda: self._dial_bastion(bastion_user, bastion_host, bastion_port, signers),
                discard=lambda transport: transport.close(),
            )

            try:
                channel = self._dial_with_timeout(
                    "target",
                    lambda: self._open_forwarded_channel(bastion, target_host, target_port),
                    discard=lambda chan: chan.close(),
                )
                target = self._handshake(channel, target_user, signers, target_host)
                open_agent(self._agent_factory).close()
            except BaseException:
                bastion.close()
                raise
        finally:
            agent.close()

        logger.info("[+] connected to %s", target_address)
        return ForwardingClient(
            target,
            bastion_transport=bastion,
            handler_factory=self._handler_factory,
        )

    def _dial_with_timeout(
        self,
        stage: str,
        dial: Callable[[], T],
        discard: Callable[[T], None],
    ) -> T:
        """Run ``dial`` on a worker thread and wait at most ``dial_timeout``.

        A timed-out worker is not interrupted. It keeps running in the
        background and passes whatever it produces to ``discard``.

        Raises
        ------
        DialTimeoutError
            If the worker does not report back in time
        Exception
            Whatever ``dial`` raised
        """
        results: queue.Queue = queue.Queue(maxsize=1)
        cancelled = threading.Event()
        handoff = threading.Lock()

        def worker() -> None:
            try:
                outcome = (dial(), None)
            except Exception as e:
                outcome = (None, e)

            with handoff:
                if not cancelled.is_set():
                    results.put(outcome)
                    return

            if outcome[0] is not None:
                discard(outcome[0])
            logger.debug("Discarded late %s dial result", stage)

        thread = threading.Thread(target=worker, name=f"salio-dial-{stage}", daemon=True)
        thread.start()

        try:
            value, error = results.get(timeout=self.dial_timeout)
        except queue.Empty:
            with handoff:
                cancelled.set()
                try:
                    late_value, _ = results.get_nowait()
                except queue.Empty:
                    late_value = None
            if late_value is not None:
                discard(late_value)
            raise DialTimeoutError(
                f"timed out while initiating SSH connection to {stage} "
                f"after {self.dial_timeout:g}s"
            ) from None

        if error is not None:
            raise error

        return value

    def _dial_bastion(
        self, username: str, host: str, port: int, signers: Sequence[paramiko.PKey]
    ) -> paramiko.Transport:
        try:
            sock = self._socket_factory((host, port), timeout=self.dial_timeout)
        except socket.timeout as e:
            raise DialTimeoutError(f"dial tcp {host}:{port}: i/o timeout") from e
        except OSError as e:
            raise UnreachableError(f"dial tcp {host}:{port}: {e}") from e

        logger.debug("TCP connection to bastion %s:%s established", host, port)
        return self._handshake(sock, username, signers, host)

    def _open_forwarded_channel(
        self, bastion: paramiko.Transport, host: str, port: int
    ) -> Channel:
        try:
            address = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)[0][4][:2]
        except socket.gaierror as e:
            raise UnreachableError(f"cannot resolve {host}:{port}: {e}") from e

        try:
            channel = bastion.open_channel(
                "direct-tcpip",
                address,
                FORWARDED_CHANNEL_ORIGIN,
                timeout=self.dial_timeout,
            )
        except paramiko.ChannelException as e:
            raise UnreachableError(
                f"ssh: rejected: connect failed to {host}:{port} ({e})"
            ) from e
        except paramiko.SSHException as e:
            raise UnreachableError(f"ssh: cannot open channel to {host}:{port}: {e}") from e

        logger.debug("Forwarded channel to %s:%s opened through bastion", host, port)
        return channel

    def _handshake(
        self, sock: Any, username: str, signers: Sequence[paramiko.PKey], host: str
    ) -> paramiko.Transport:
        """Start an SSH client on ``sock`` and authenticate.

        The server host key is not verified.
        """
        transport = self._transport_factory(sock)

        try:
            transport.start_client(timeout=self.dial_timeout)
            authenticate(transport, username, signers)
        except AuthFailedError:
            transport.close()
            raise
        except paramiko.AuthenticationException as e:
            transport.close()
            raise AuthFailedError(f"ssh: handshake failed for {username}@{host}: {e}") from e
        except (paramiko.SSHException, EOFError, OSError) as e:
            transport.close()
            raise UnreachableError(f"ssh: handshake failed with {host}: {e}") from e

        return transport
