"""A small in-process server that speaks the vclient protocol.

It plays the remote side for tests and local demos: it checks the salted
digest against one configured credential and answers every vector with a
reducer (``sum`` by default).
"""

from __future__ import annotations

import hmac
import logging
import math
import os
import socketserver
import threading
from typing import Callable, Sequence

from vclient.auth import compute_digest
from vclient.codec import I64_SIZE, U32_SIZE, decode_i64_array, decode_u32, encode_i64
from vclient.config import Credential
from vclient.errors import TransportError
from vclient.protocol import ProtocolConfig, receive_string
from vclient.transport import TcpTarget, Transport

logger = logging.getLogger(__name__)

Reducer = Callable[[Sequence[int]], int]

REJECT = b"NO"

REDUCERS: dict[str, Reducer] = {
    "sum": sum,
    "product": math.prod,
    "max": lambda v: max(v, default=0),
    "min": lambda v: min(v, default=0),
}


def wrap_i64(value: int) -> int:
    """Two's complement wrap, the way a fixed-width server accumulator overflows."""
    return (value + 2**63) % 2**64 - 2**63


def serve_client(
    transport: Transport,
    credential: Credential,
    config: ProtocolConfig = ProtocolConfig(),
    reducer: Reducer = sum,
    received: list[list[int]] | None = None,
) -> bool:
    """Run the server half of one session. Returns False if the client was rejected."""
    username = receive_string(transport, config, len(credential.username.encode("utf-8")))

    salt = os.urandom(config.salt_size)
    transport.send_exact(salt)

    digest = receive_string(transport, config, config.digest_hex_length)
    expected = compute_digest(salt, credential.password, config).encode("ascii")
    user_ok = hmac.compare_digest(username, credential.username.encode("utf-8"))
    if not (hmac.compare_digest(digest, expected) and user_ok):
        transport.send_exact(REJECT)
        logger.info("rejected login for %r", username)
        return False
    transport.send_exact(config.ack)

    order = config.byte_order
    count = decode_u32(transport.receive_exact(U32_SIZE), order)
    for _ in range(count):
        size = decode_u32(transport.receive_exact(U32_SIZE), order)
        vector = decode_i64_array(transport.receive_exact(size * I64_SIZE), order)
        if received is not None:
            received.append(vector)
        transport.send_exact(encode_i64(wrap_i64(reducer(vector)), order))
    logger.info("answered %d vectors", count)
    return True


class _StubHandler(socketserver.BaseRequestHandler):
    def handle(self) -> None:  # type: ignore[override]
        stub: StubServer = self.server.stub  # type: ignore[attr-defined]
        transport = Transport.from_socket(self.request, timeout=stub.timeout)
        received: list[list[int]] = []
        try:
            accepted = serve_client(transport, stub.credential, stub.config, stub.reducer, received)
        except TransportError as exc:
            logger.info("client %s dropped: %s", self.client_address, exc)
            accepted = False
        stub._record(accepted, received)


class _ThreadingTCPServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True


class StubServer:
    def __init__(
        self,
        bind: TcpTarget,
        credential: Credential,
        config: ProtocolConfig = ProtocolConfig(),
        reducer: Reducer = sum,
        timeout: float | None = None,
    ) -> None:
        self.credential = credential
        self.config = config
        self.reducer = reducer
        self.timeout = timeout
        # One entry per finished client: (accepted, vectors received).
        self.sessions: list[tuple[bool, list[list[int]]]] = []
        self._done = threading.Condition()
        self._thread: threading.Thread | None = None
        self._server = _ThreadingTCPServer((bind.host, bind.port), _StubHandler)
        self._server.stub = self  # type: ignore[attr-defined]

    @property
    def address(self) -> TcpTarget:
        host, port = self._server.server_address[:2]
        return TcpTarget(host, port)

    def _record(self, accepted: bool, received: list[list[int]]) -> None:
        with self._done:
            self.sessions.append((accepted, received))
            self._done.notify_all()

    def wait_for_sessions(self, count: int, timeout: float = 5.0) -> bool:
        """Block until at least ``count`` clients have finished."""
        with self._done:
            return self._done.wait_for(lambda: len(self.sessions) >= count, timeout)

    def serve_forever(self) -> None:
        logger.info("stub server listening on %s", self.address)
        self._server.serve_forever()

    def start(self) -> "StubServer":
        self._thread = threading.Thread(target=self.serve_forever, daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        if self._thread is not None:
            self._server.shutdown()
            self._thread.join()
            self._thread = None
        self._server.server_close()

    def __enter__(self) -> "StubServer":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()
