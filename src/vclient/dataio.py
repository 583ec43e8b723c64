"""File collaborators: the text vector input and the binary result output."""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import Sequence

from vclient.codec import (
    I64_MAX,
    I64_MIN,
    I64_SIZE,
    U32_SIZE,
    ByteOrder,
    decode_i64_array,
    decode_u32,
    encode_i64_array,
    encode_u32,
)
from vclient.errors import DataFileError

# Plain ASCII decimal, no digit separators.
_INTEGER = re.compile(r"[+-]?[0-9]+")


def parse_vector_line(line: str, lineno: int = 1) -> list[int]:
    vector: list[int] = []
    for token in line.split():
        if not _INTEGER.fullmatch(token):
            raise DataFileError(f"line {lineno}: {token!r} is not an integer")
        value = int(token)
        if not I64_MIN <= value <= I64_MAX:
            raise DataFileError(f"line {lineno}: {token} is out of the signed 64-bit range")
        vector.append(value)
    return vector


def read_vectors(path: str | Path) -> list[list[int]]:
    """One vector per line; a blank line is an empty vector."""
    try:
        with open(path, encoding="utf-8") as f:
            return [parse_vector_line(line, lineno) for lineno, line in enumerate(f, start=1)]
    except (OSError, UnicodeDecodeError) as exc:
        raise DataFileError(f"Failed to open input file {str(path)!r}: {exc}") from exc


def write_results(path: str | Path, results: Sequence[int], order: ByteOrder = ByteOrder.NETWORK) -> None:
    """Write ``results`` as a u32 count followed by i64 values.

    The file is written next to its destination and renamed into place, so a
    reader never sees a partial result set.
    """
    target = Path(path)
    payload = encode_u32(len(results), order) + encode_i64_array(results, order)
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
    except OSError as exc:
        raise DataFileError(f"Failed to open output file {str(target)!r}: {exc}") from exc
    try:
        umask = os.umask(0)
        os.umask(umask)
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
        os.chmod(tmp_name, 0o666 & ~umask)
        os.replace(tmp_name, target)
    except OSError as exc:
        Path(tmp_name).unlink(missing_ok=True)
        raise DataFileError(f"Failed to write output file {str(target)!r}: {exc}") from exc


def read_results(path: str | Path, order: ByteOrder = ByteOrder.NETWORK) -> list[int]:
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise DataFileError(f"Failed to open result file {str(path)!r}: {exc}") from exc
    if len(data) < U32_SIZE:
        raise DataFileError(f"{str(path)!r} is too short to hold a result count")
    count = decode_u32(data[:U32_SIZE], order)
    body = data[U32_SIZE:]
    if len(body) != count * I64_SIZE:
        raise DataFileError(f"{str(path)!r} announces {count} results but holds {len(body)} bytes")
    return decode_i64_array(body, order)
