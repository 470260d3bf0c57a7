"""
Merkle Tree Operations

This package provides the integrity engine of the storage service:

- digest: SHA3-256 hashing of contents and node pairs
- tree: Tree building and proof extraction
- proof: Proof format and stateless verification
"""

from .digest import (
    DIGEST_SIZE,
    EMPTY_ROOT,
    hash_content,
    hash_pair,
)

from .errors import (
    MerkleError,
    InvalidIndexError,
    MalformedProofError,
)

from .tree import (
    MerkleTree,
    build_merkle_levels,
)

from .proof import (
    Side,
    ProofStep,
    get_tree_depth,
    get_proof_sides,
    compute_root_from_proof,
    verify_merkle_proof,
)

__all__ = [
    # Digest engine
    "DIGEST_SIZE",
    "EMPTY_ROOT",
    "hash_content",
    "hash_pair",
    # Errors
    "MerkleError",
    "InvalidIndexError",
    "MalformedProofError",
    # Tree
    "MerkleTree",
    "build_merkle_levels",
    # Proofs
    "Side",
    "ProofStep",
    "get_tree_depth",
    "get_proof_sides",
    "compute_root_from_proof",
    "verify_merkle_proof",
]
