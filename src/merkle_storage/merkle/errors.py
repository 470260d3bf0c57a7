"""
Merkle Engine Exceptions
"""


class MerkleError(Exception):
    """Base exception for merkle tree and proof operations."""
    pass


class InvalidIndexError(MerkleError):
    """Raised when a leaf index lies outside the current tree."""

    def __init__(self, index: int, leaf_count: int):
        self.index = index
        self.leaf_count = leaf_count
        super().__init__(f"Leaf index {index} out of range (tree has {leaf_count} leaves)")


class MalformedProofError(MerkleError):
    """Raised when a proof's shape does not match its claimed leaf index and count."""
    pass
