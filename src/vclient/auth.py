"""Salted-hash challenge/response run once per connection.

The client sends its username, the server answers with a random salt, the
client proves knowledge of the password by sending ``hex(hash(salt || password))``
and the server replies with a two byte verdict.
"""

from __future__ import annotations

import enum
import hashlib
import logging

from vclient.config import Credential
from vclient.protocol import ProtocolConfig, send_string
from vclient.transport import Transport

logger = logging.getLogger(__name__)


class AuthState(enum.Enum):
    START = "start"
    USERNAME_SENT = "username-sent"
    SALT_RECEIVED = "salt-received"
    HASH_SENT = "hash-sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class AuthResult(enum.Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


def compute_digest(salt: bytes, password: str, config: ProtocolConfig = ProtocolConfig()) -> str:
    """Hex digest of ``salt`` followed by the UTF-8 password bytes."""
    h = hashlib.new(config.hash_name)
    h.update(salt)
    h.update(password.encode("utf-8"))
    digest = h.hexdigest()
    return digest.upper() if config.uppercase_digest else digest


class AuthHandshake:
    def __init__(self, transport: Transport, config: ProtocolConfig = ProtocolConfig()) -> None:
        self.transport = transport
        self.config = config
        self.state = AuthState.START

    def _advance(self, state: AuthState) -> None:
        logger.debug("auth: %s -> %s", self.state.value, state.value)
        self.state = state

    def run(self, credential: Credential) -> AuthResult:
        if self.state is not AuthState.START:
            raise RuntimeError(f"handshake already ran (state={self.state.value})")

        send_string(self.transport, credential.username.encode("utf-8"), self.config)
        self._advance(AuthState.USERNAME_SENT)

        salt = self.transport.receive_exact(self.config.salt_size)
        self._advance(AuthState.SALT_RECEIVED)

        digest = compute_digest(salt, credential.password, self.config)
        send_string(self.transport, digest.encode("ascii"), self.config)
        self._advance(AuthState.HASH_SENT)

        ack = self.transport.receive_exact(len(self.config.ack))
        if ack == self.config.ack:
            self._advance(AuthState.ACCEPTED)
            logger.info("authenticated as %r", credential.username)
            return AuthResult.ACCEPTED

        self._advance(AuthState.REJECTED)
        logger.info("server rejected %r (ack=%r)", credential.username, ack)
        return AuthResult.REJECTED


def authenticate(
    transport: Transport, credential: Credential, config: ProtocolConfig = ProtocolConfig()
) -> AuthResult:
    return AuthHandshake(transport, config).run(credential)
