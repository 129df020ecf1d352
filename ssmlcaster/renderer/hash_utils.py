"""
Content fingerprints for change detection.

Digests are used for equality only. The same function hashes live
documents and their snapshots, so the comparison is symmetric.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

_CHUNK_SIZE = 64 * 1024


def sha256_bytes(data: bytes) -> str:
    """SHA-256 of raw bytes, returned as lowercase hex digest."""
    return hashlib.sha256(data).hexdigest()


def sha256_text(s: str) -> str:
    """SHA-256 of a UTF-8 string, returned as lowercase hex digest."""
    return sha256_bytes(s.encode("utf-8"))


def sha256_file(path: Path) -> str:
    """
    SHA-256 of a file's full content.

    Read errors (missing file, permission denied) propagate as OSError.
    """
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()
