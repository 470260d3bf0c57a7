"""
Digest Engine

SHA3-256 hashing of file contents and of merkle node pairs. Every other
component of the merkle engine is built on these two functions.
"""

from hashlib import sha3_256

DIGEST_SIZE = 32

# Root of a tree with zero leaves
EMPTY_ROOT = b"\x00" * DIGEST_SIZE


def hash_content(content: bytes) -> bytes:
    """
    Compute the leaf digest of a file's raw content.

    Args:
        content: Raw file bytes (may be empty)

    Returns:
        32-byte SHA3-256 digest

    Examples:
        >>> hash_content(b"123").hex()
        'a03ab19b866fc585b5cb1812a2f63ca861e7e7643ee5d43fd7106b623725fd67'
    """
    return sha3_256(content).digest()


def hash_pair(left: bytes, right: bytes) -> bytes:
    """Hash the concatenation of two child digests, left first."""
    return sha3_256(left + right).digest()
