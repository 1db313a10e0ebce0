"""Interactive remote shell over an established forwarding client."""

import logging
import os
import select
import signal
import struct
import sys
import termios
import tty
import types
from typing import Any, TextIO

import paramiko
from paramiko.channel import Channel
from paramiko.common import cMSG_CHANNEL_REQUEST

from salio.constants import CHANNEL_BUFFER_SIZE, PTY_BAUD_RATE, PTY_TERM
from salio.services.ssh import ForwardingClient

logger = logging.getLogger(__name__)

# RFC 4254 section 8 opcodes
TTY_OP_END = 0
ECHO = 53
TTY_OP_ISPEED = 128
TTY_OP_OSPEED = 129

TERMINAL_MODES = {
    ECHO: 1,
    TTY_OP_ISPEED: PTY_BAUD_RATE,
    TTY_OP_OSPEED: PTY_BAUD_RATE,
}


def get_terminal_size(fd: int) -> tuple[int, int]:
    """Return ``(width, height)`` of the terminal on ``fd``."""
    size = os.get_terminal_size(fd)
    return size.columns, size.lines


def encode_terminal_modes(modes: dict[int, int]) -> bytes:
    """Encode terminal modes as an RFC 4254 mode string.

    Parameters
    ----------
    modes : dict[int, int]
        Opcode to value mapping

    Returns
    -------
    bytes
        Opcode/uint32 pairs terminated by TTY_OP_END
    """
    encoded = b"".join(struct.pack(">BI", opcode, value) for opcode, value in modes.items())
    return encoded + bytes([TTY_OP_END])


def request_pty(
    channel: Channel,
    term: str,
    width: int,
    height: int,
    modes: dict[int, int],
) -> None:
    """Request a pseudo-terminal with explicit terminal modes.

    Same wire request as ``Channel.get_pty``, which always sends an empty
    mode list.

    Raises
    ------
    paramiko.SSHException
        If the request is rejected or the channel closes
    """
    m = paramiko.Message()
    m.add_byte(cMSG_CHANNEL_REQUEST)
    m.add_int(channel.remote_chanid)
    m.add_string("pty-req")
    m.add_boolean(True)
    m.add_string(term)
    m.add_int(width)
    m.add_int(height)
    m.add_int(0)
    m.add_int(0)
    m.add_string(encode_terminal_modes(modes))
    # Same private Channel helpers as get_pty in paramiko 3.0 through 5.0
    channel._event_pending()
    channel.transport._send_user_message(m)
    channel._wait_for_event()


class InteractiveSession:
    """Run a remote shell wired to this process's stdin, stdout and stderr.

    When stdin is a terminal it is switched to raw mode and a matching remote
    pseudo-terminal is requested. Otherwise the channel is a plain pipe.

    Parameters
    ----------
    client : ForwardingClient
        Established connection to the target
    """

    def __init__(self, client: ForwardingClient) -> None:
        self._client = client
        self._channel: Channel | None = None
        self._stdin_fd: int | None = None
        self._old_tty_attrs: list[Any] | None = None
        self._original_sigwinch: Any = None

    def _setup_terminal(self) -> None:
        self._old_tty_attrs = termios.tcgetattr(self._stdin_fd)
        tty.setraw(self._stdin_fd)

    def _restore_terminal(self) -> None:
        if self._old_tty_attrs is None:
            return

        termios.tcsetattr(self._stdin_fd, termios.TCSADRAIN, self._old_tty_attrs)
        self._old_tty_attrs = None

    def _setup_sigwinch(self) -> None:
        def handle_sigwinch(signum: int, frame: types.FrameType | None) -> None:
            self._resize_pty()

        self._original_sigwinch = signal.signal(signal.SIGWINCH, handle_sigwinch)

    def _restore_sigwinch(self) -> None:
        if self._original_sigwinch is None:
            return

        signal.signal(signal.SIGWINCH, self._original_sigwinch)
        self._original_sigwinch = None

    def _resize_pty(self) -> None:
        try:
            width, height = get_terminal_size(self._stdin_fd)
            self._channel.resize_pty(width=width, height=height)
        except (OSError, paramiko.SSHException) as e:
            logger.debug("Failed to resize remote pty: %s", e)

    @staticmethod
    def _write(stream: TextIO, data: bytes) -> None:
        stream.buffer.write(data)
        stream.flush()

    def _pump(self) -> None:
        """Copy bytes between the channel and local streams until it closes."""
        channel = self._channel
        stdin_open = True

        while True:
            readers = [channel, self._stdin_fd] if stdin_open else [channel]
            readable, _, _ = select.select(readers, [], [])

            if channel in readable:
                while channel.recv_stderr_ready():
                    self._write(sys.stderr, channel.recv_stderr(CHANNEL_BUFFER_SIZE))

                if channel.recv_ready() or channel.eof_received or channel.closed:
                    data = channel.recv(CHANNEL_BUFFER_SIZE)
                    if not data:
                        break
                    self._write(sys.stdout, data)

            if stdin_open and self._stdin_fd in readable:
                data = os.read(self._stdin_fd, CHANNEL_BUFFER_SIZE)
                if data:
                    channel.sendall(data)
                else:
                    channel.shutdown_write()
                    stdin_open = False

    def run(self) -> int:
        """Start the remote shell and block until it exits.

        Returns
        -------
        int
            Remote exit status (-1 if the server sent none)

        Raises
        ------
        paramiko.SSHException
            If the session, agent forwarding or pty request fails
        """
        self._stdin_fd = sys.stdin.fileno()

        try:
            self._channel = self._client.open_session()
            self._client.forward_agent_authentication(self._channel)

            if os.isatty(self._stdin_fd):
                self._setup_terminal()
                width, height = get_terminal_size(self._stdin_fd)
                request_pty(self._channel, PTY_TERM, width, height, TERMINAL_MODES)
                self._setup_sigwinch()

            self._channel.invoke_shell()
            self._pump()

            exit_status = self._channel.recv_exit_status()
            logger.debug("Remote shell exited with status %s", exit_status)
            return exit_status
        finally:
            self._restore_sigwinch()
            if self._channel is not None:
                self._channel.close()
            self._restore_terminal()


def run_shell(client: ForwardingClient) -> int:
    """Run an interactive shell on ``client``; see ``InteractiveSession``."""
    return InteractiveSession(client).run()
