from __future__ import annotations

import enum
import logging
import socket
from dataclasses import dataclass

from vclient.errors import ConnectError, ReceiveError, SendError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TcpTarget:
    host: str
    port: int

    def __str__(self) -> str:
        return f"tcp://{self.host}:{self.port}"


class ConnectionState(enum.Enum):
    UNCONNECTED = "unconnected"
    CONNECTED = "connected"
    CLOSED = "closed"


class Transport:
    """A single blocking TCP connection with exact-length send and receive.

    Every protocol message has a size known in advance, so ``send_exact`` and
    ``receive_exact`` are the only I/O the protocol layer needs. Use it as a
    context manager so the socket is released on every exit path.
    """

    def __init__(self, target: TcpTarget | None = None, timeout: float | None = None) -> None:
        self.target = target
        self.timeout = timeout
        self.state = ConnectionState.UNCONNECTED
        self._sock: socket.socket | None = None

    @classmethod
    def from_socket(cls, sock: socket.socket, timeout: float | None = None) -> "Transport":
        """Wrap an already connected socket (socket pairs, accepted server sockets)."""
        transport = cls(timeout=timeout)
        sock.settimeout(timeout)
        transport._sock = sock
        transport.state = ConnectionState.CONNECTED
        return transport

    def connect(self) -> None:
        if self.state is not ConnectionState.UNCONNECTED:
            raise ConnectError(f"transport is already {self.state.value}")
        if self.target is None:
            raise ConnectError("no target to connect to")
        try:
            # create_connection applies the timeout to the connect as well.
            sock = socket.create_connection((self.target.host, self.target.port), timeout=self.timeout)
        except OSError as exc:
            raise ConnectError(f"failed to connect to {self.target}: {exc}") from exc
        sock.settimeout(self.timeout)
        self._sock = sock
        self.state = ConnectionState.CONNECTED
        logger.info("connected to %s", self.target)

    def send_exact(self, data: bytes) -> None:
        if self._sock is None or self.state is not ConnectionState.CONNECTED:
            raise SendError(f"cannot send on a {self.state.value} transport")
        view = memoryview(data)
        sent = 0
        while sent < len(view):
            try:
                n = self._sock.send(view[sent:])
            except OSError as exc:
                raise SendError(f"send failed after {sent} of {len(view)} bytes: {exc}") from exc
            if n == 0:
                raise SendError(f"connection closed after {sent} of {len(view)} bytes")
            sent += n

    def receive_exact(self, length: int) -> bytes:
        if self._sock is None or self.state is not ConnectionState.CONNECTED:
            raise ReceiveError(f"cannot receive on a {self.state.value} transport")
        buf = bytearray(length)
        view = memoryview(buf)
        received = 0
        while received < length:
            try:
                n = self._sock.recv_into(view[received:], length - received)
            except OSError as exc:
                raise ReceiveError(f"receive failed after {received} of {length} bytes: {exc}") from exc
            if n == 0:
                raise ReceiveError(f"connection closed after {received} of {length} bytes")
            received += n
        return bytes(buf)

    def close(self) -> None:
        if self.state is ConnectionState.CLOSED:
            return
        if self._sock is not None:
            self._sock.close()
            self._sock = None
            logger.debug("connection closed")
        self.state = ConnectionState.CLOSED

    def __enter__(self) -> "Transport":
        if self.state is ConnectionState.UNCONNECTED:
            self.connect()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
