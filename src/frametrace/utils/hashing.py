"""Content hashing for traced executables."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Union


def compute_file_hash(path: Union[str, Path], algorithm: str = "md5") -> str:
    """Compute hash of a file with chunked reading for large files.

    Args:
        path: Path to the file
        algorithm: Hash algorithm (md5, sha1, sha256)

    Returns:
        Hexadecimal hash string

    Raises:
        OSError: If the file cannot be opened or read
    """
    hasher = hashlib.new(algorithm)

    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            hasher.update(chunk)

    return hasher.hexdigest()
