from __future__ import annotations

import logging
from pathlib import Path

from vclient.auth import AuthResult, authenticate
from vclient.config import Credential, load_credentials
from vclient.dataio import read_vectors, write_results
from vclient.errors import AuthRejected
from vclient.exchange import VectorBatch, exchange_vectors
from vclient.protocol import ProtocolConfig
from vclient.transport import TcpTarget, Transport

logger = logging.getLogger(__name__)


def run_session(
    target: TcpTarget,
    credential: Credential,
    batch: VectorBatch,
    config: ProtocolConfig = ProtocolConfig(),
    timeout: float | None = None,
) -> list[int]:
    """Connect, authenticate and exchange ``batch``; the connection is closed on every path."""
    with Transport(target, timeout=timeout) as transport:
        if authenticate(transport, credential, config) is AuthResult.REJECTED:
            raise AuthRejected(f"Authentication failed for user {credential.username!r}")
        return exchange_vectors(transport, batch, config)


def run_client(
    target: TcpTarget,
    config_path: str | Path,
    input_path: str | Path,
    output_path: str | Path,
    config: ProtocolConfig = ProtocolConfig(),
    timeout: float | None = None,
) -> list[int]:
    """Full client run: local inputs first, then the session, then the result file.

    Nothing is written unless the whole batch succeeded.
    """
    credential = load_credentials(config_path)
    batch = read_vectors(input_path)
    logger.debug("read %d vectors from %s", len(batch), input_path)

    results = run_session(target, credential, batch, config, timeout=timeout)

    write_results(output_path, results, config.byte_order)
    logger.debug("wrote %d results to %s", len(results), output_path)
    return results
