"""Protocol-wide settings and the framing of the two variable-length strings.

The username and the hex digest are the only fields whose length is not
fixed. ``StringFraming.LENGTH_PREFIXED`` sends a u32 byte count before each of
them; ``StringFraming.RAW`` sends the bare bytes, which is what the legacy
server expects and only works when the reader already knows the length.
"""

from __future__ import annotations

import enum
import hashlib
from dataclasses import dataclass

from vclient.codec import U32_SIZE, ByteOrder, decode_u32, encode_u32
from vclient.errors import ReceiveError
from vclient.transport import Transport

DEFAULT_PORT = 33333
# Upper bound on an announced string length; anything larger is a broken peer.
MAX_STRING_LENGTH = 4096


class StringFraming(enum.Enum):
    LENGTH_PREFIXED = "length-prefixed"
    RAW = "raw"


@dataclass(frozen=True)
class ProtocolConfig:
    hash_name: str = "md5"
    salt_size: int = 16
    ack: bytes = b"OK"
    byte_order: ByteOrder = ByteOrder.NETWORK
    string_framing: StringFraming = StringFraming.LENGTH_PREFIXED
    uppercase_digest: bool = True

    def __post_init__(self) -> None:
        # Fail at construction rather than halfway through a handshake.
        if hashlib.new(self.hash_name).digest_size == 0:
            raise ValueError(f"{self.hash_name} has no fixed digest size")
        if self.salt_size <= 0:
            raise ValueError("salt_size must be positive")

    @property
    def digest_hex_length(self) -> int:
        return hashlib.new(self.hash_name).digest_size * 2


def send_string(transport: Transport, data: bytes, config: ProtocolConfig) -> None:
    if config.string_framing is StringFraming.LENGTH_PREFIXED:
        transport.send_exact(encode_u32(len(data), config.byte_order) + data)
    else:
        transport.send_exact(data)


def receive_string(transport: Transport, config: ProtocolConfig, raw_length: int) -> bytes:
    """Read one string field.

    ``raw_length`` is the number of bytes to read under raw framing; it is
    ignored when the peer announces the length itself.
    """
    if config.string_framing is StringFraming.RAW:
        return transport.receive_exact(raw_length)
    length = decode_u32(transport.receive_exact(U32_SIZE), config.byte_order)
    if length > MAX_STRING_LENGTH:
        raise ReceiveError(f"announced string length {length} exceeds {MAX_STRING_LENGTH}")
    return transport.receive_exact(length)
