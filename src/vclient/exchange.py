from __future__ import annotations

import logging
from typing import Sequence

from vclient.codec import I64_SIZE, U32_MAX, decode_i64, encode_i64_array, encode_u32, fits_i64
from vclient.protocol import ProtocolConfig
from vclient.transport import Transport

logger = logging.getLogger(__name__)

VectorBatch = Sequence[Sequence[int]]


def validate_batch(batch: VectorBatch) -> None:
    """Reject a batch that cannot be framed, before anything is sent."""
    if len(batch) > U32_MAX:
        raise ValueError(f"batch of {len(batch)} vectors does not fit a u32 count")
    for index, vector in enumerate(batch):
        if len(vector) > U32_MAX:
            raise ValueError(f"vector {index} has {len(vector)} elements, more than a u32 count")
        if not fits_i64(vector):
            raise ValueError(f"vector {index} holds a value outside the signed 64-bit range")


class VectorExchange:
    """Send a batch of vectors one at a time and collect one result per vector.

    Each vector's round trip completes before the next is sent. Results carry
    no correlation id, so the position in the returned list is the only link
    back to the vector that produced it.
    """

    def __init__(self, transport: Transport, config: ProtocolConfig = ProtocolConfig()) -> None:
        self.transport = transport
        self.config = config

    def run(self, batch: VectorBatch) -> list[int]:
        validate_batch(batch)
        order = self.config.byte_order

        self.transport.send_exact(encode_u32(len(batch), order))
        logger.debug("sending %d vectors", len(batch))

        results: list[int] = []
        for index, vector in enumerate(batch):
            self.transport.send_exact(encode_u32(len(vector), order) + encode_i64_array(vector, order))
            result = decode_i64(self.transport.receive_exact(I64_SIZE), order)
            logger.info("vector %d (%d elements): result %d", index, len(vector), result)
            results.append(result)
        return results


def exchange_vectors(
    transport: Transport, batch: VectorBatch, config: ProtocolConfig = ProtocolConfig()
) -> list[int]:
    return VectorExchange(transport, config).run(batch)
