"""
Merkle Proof Types and Verification

This module defines the inclusion proof format and the stateless verifier
used by clients to check a leaf against a root they trust. The verifier never
needs the tree itself: the leaf digest, its index, the number of leaves and the
sibling path are enough to rebuild the root.

The pairing policy mirrors MerkleTree.build: adjacent nodes are paired left to
right, and a trailing node without a sibling is promoted unchanged. A leaf
therefore has no proof step at a level where it is promoted, and the sequence
of sides in a valid proof is fully determined by (index, leaf_count).
"""

from dataclasses import dataclass
from enum import Enum
from typing import List

from .digest import DIGEST_SIZE, hash_pair
from .errors import MalformedProofError


class Side(str, Enum):
    """Position of a proof sibling relative to the node being rebuilt."""
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class ProofStep:
    """One level of an inclusion proof."""
    sibling: bytes
    side: Side


def get_tree_depth(leaf_count: int) -> int:
    """
    Calculate the number of levels above the leaves.

    Args:
        leaf_count: Number of leaves in the tree

    Returns:
        ceil(log2(leaf_count)), or 0 for trees with at most one leaf

    Examples:
        >>> get_tree_depth(1024)  # Returns 10
        >>> get_tree_depth(5)     # Returns 3
    """
    if leaf_count < 0:
        raise ValueError("leaf_count must not be negative")
    if leaf_count <= 1:
        return 0
    return (leaf_count - 1).bit_length()


def get_proof_sides(index: int, leaf_count: int) -> List[Side]:
    """
    Calculate the sibling side at every level of the path from a leaf to the root.

    Levels where the path node is promoted without a sibling contribute no entry.

    Args:
        index: Index of the target leaf
        leaf_count: Number of leaves in the tree

    Returns:
        Expected side of each proof step, leaf level first

    Raises:
        MalformedProofError: If index is not within [0, leaf_count)
    """
    if leaf_count < 1 or not 0 <= index < leaf_count:
        raise MalformedProofError(
            f"Leaf index {index} is not valid for a tree of {leaf_count} leaves"
        )

    sides = []
    current_index = index
    width = leaf_count
    while width > 1:
        if current_index % 2 == 1:
            sides.append(Side.LEFT)
        elif current_index + 1 < width:
            sides.append(Side.RIGHT)
        current_index //= 2
        width = (width + 1) // 2
    return sides


def compute_root_from_proof(
    leaf: bytes, index: int, leaf_count: int, proof: List[ProofStep]
) -> bytes:
    """
    Rebuild the merkle root from a leaf digest and its inclusion proof.

    Args:
        leaf: 32-byte digest of the target leaf
        index: 0-based position of the leaf
        leaf_count: Number of leaves in the tree the proof was taken from
        proof: Sibling steps as returned by MerkleTree.generate_proof

    Returns:
        The reconstructed 32-byte root

    Raises:
        MalformedProofError: If the leaf, a sibling or the proof shape is
            inconsistent with (index, leaf_count)
    """
    if len(leaf) != DIGEST_SIZE:
        raise MalformedProofError(f"Leaf digest must be {DIGEST_SIZE} bytes, got {len(leaf)}")

    expected_sides = get_proof_sides(index, leaf_count)
    if len(proof) != len(expected_sides):
        raise MalformedProofError(
            f"Proof has {len(proof)} steps, expected {len(expected_sides)} "
            f"for leaf {index} of {leaf_count}"
        )

    current = leaf
    for level, (step, expected_side) in enumerate(zip(proof, expected_sides)):
        if len(step.sibling) != DIGEST_SIZE:
            raise MalformedProofError(
                f"Proof step {level} sibling must be {DIGEST_SIZE} bytes, got {len(step.sibling)}"
            )
        if step.side != expected_side:
            raise MalformedProofError(
                f"Proof step {level} has side '{step.side.value}', expected '{expected_side.value}'"
            )
        if step.side == Side.LEFT:
            current = hash_pair(step.sibling, current)
        else:
            current = hash_pair(current, step.sibling)
    return current


def verify_merkle_proof(
    leaf: bytes, index: int, leaf_count: int, proof: List[ProofStep], root: bytes
) -> bool:
    """
    Verify an inclusion proof against a known root.

    Args:
        leaf: Digest of the leaf being proven
        index: Index of the leaf in the tree
        leaf_count: Number of leaves in the tree the proof was taken from
        proof: List of sibling steps
        root: Expected merkle root

    Returns:
        True if the proof rebuilds exactly the expected root

    Raises:
        MalformedProofError: If the proof shape is invalid (see compute_root_from_proof)

    Examples:
        >>> is_valid = verify_merkle_proof(leaf, 5, 8, proof, expected_root)
    """
    return compute_root_from_proof(leaf, index, leaf_count, proof) == root
