"""Fixed-width integer encoding for the vclient wire format.

Every multi-byte integer on the wire is either a 4-byte unsigned count or an
8-byte signed value. The byte order is picked once per connection through
:class:`ByteOrder` and must match the peer.
"""

from __future__ import annotations

import enum
import struct
from typing import Iterable, Sequence

U32_SIZE = 4
I64_SIZE = 8

U32_MAX = 2**32 - 1
I64_MIN = -(2**63)
I64_MAX = 2**63 - 1


class ByteOrder(enum.Enum):
    NETWORK = "!"
    LITTLE = "<"
    # Host order, what the legacy C++ client put on the wire.
    NATIVE = "="

    @classmethod
    def from_name(cls, name: str) -> "ByteOrder":
        return cls[name.upper()]


def encode_u32(value: int, order: ByteOrder = ByteOrder.NETWORK) -> bytes:
    return struct.pack(order.value + "I", value)


def decode_u32(data: bytes, order: ByteOrder = ByteOrder.NETWORK) -> int:
    return struct.unpack(order.value + "I", data)[0]


def encode_i64(value: int, order: ByteOrder = ByteOrder.NETWORK) -> bytes:
    return struct.pack(order.value + "q", value)


def decode_i64(data: bytes, order: ByteOrder = ByteOrder.NETWORK) -> int:
    return struct.unpack(order.value + "q", data)[0]


def encode_i64_array(values: Sequence[int], order: ByteOrder = ByteOrder.NETWORK) -> bytes:
    """Pack ``values`` as one contiguous run of 8-byte signed integers."""
    return struct.pack(f"{order.value}{len(values)}q", *values)


def decode_i64_array(data: bytes, order: ByteOrder = ByteOrder.NETWORK) -> list[int]:
    count = len(data) // I64_SIZE
    return list(struct.unpack(f"{order.value}{count}q", data))


def fits_i64(values: Iterable[int]) -> bool:
    return all(I64_MIN <= v <= I64_MAX for v in values)
