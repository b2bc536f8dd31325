# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/utils/hashing.py

"""blake3 digests of buffers and files."""

from pathlib import Path
from typing import BinaryIO, Tuple

import blake3

CHUNK_SIZE = 10 * 1024 * 1024  # 10MB chunks


def hash_bytes(data: bytes) -> Tuple[str, int]:
    """Return (hexdigest, length) of a buffer."""
    return blake3.blake3(data).hexdigest(), len(data)


def hash_file(path: Path) -> Tuple[str, int]:
    """Stream a file through blake3, returning (hexdigest, length)."""
    hasher = blake3.blake3()
    size = 0
    with open(path, "rb") as f:
        while True:
            chunk = f.read(CHUNK_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
            size += len(chunk)
    return hasher.hexdigest(), size


def copy_and_hash(src: BinaryIO, dst: BinaryIO) -> Tuple[str, int]:
    """Copy a stream into ``dst`` and return (hexdigest, length) of what was copied."""
    hasher = blake3.blake3()
    size = 0
    while True:
        chunk = src.read(CHUNK_SIZE)
        if not chunk:
            break
        hasher.update(chunk)
        dst.write(chunk)
        size += len(chunk)
    return hasher.hexdigest(), size
