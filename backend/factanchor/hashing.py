from __future__ import annotations

import hashlib
import re

DEFAULT_HASH_ALGORITHM = "sha256"

_HEX_RE = re.compile(r"^[0-9a-f]+$")


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def sha256_text(text: str) -> str:
    return sha256_bytes(text.encode("utf-8"))


def content_hash(text: str, algorithm: str = DEFAULT_HASH_ALGORITHM) -> str:
    """Hash the UTF-8 encoding of ``text`` and return a lowercase hex digest.

    Args:
        text: Exact string to hash. No trimming or normalization is applied.
        algorithm: Any algorithm name accepted by :func:`hashlib.new`.

    Returns:
        Hex digest string.
    """
    if algorithm == DEFAULT_HASH_ALGORITHM:
        return sha256_text(text)
    return hashlib.new(algorithm, text.encode("utf-8")).hexdigest()


def digest_length(algorithm: str = DEFAULT_HASH_ALGORITHM) -> int:
    """Number of hex characters produced by ``algorithm``."""
    return hashlib.new(algorithm).digest_size * 2


def is_hash_string(value: object, algorithm: str = DEFAULT_HASH_ALGORITHM) -> bool:
    """Check that ``value`` looks like a digest produced by :func:`content_hash`."""
    if not isinstance(value, str):
        return False
    return len(value) == digest_length(algorithm) and bool(_HEX_RE.match(value))
