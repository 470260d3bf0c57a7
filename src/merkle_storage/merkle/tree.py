"""
Merkle Tree Building

This module builds a binary SHA3-256 merkle tree over an ordered list of leaf
digests and extracts inclusion proofs from it.

Tree shape:
  • Adjacent nodes are paired left to right; a parent is hash(left || right).
  • A trailing node without a sibling is promoted unchanged to the next level.
  • A tree with zero leaves has the EMPTY_ROOT sentinel as its root.

The tree is immutable once built. Appending leaves means building a new tree
over the full list.
"""

from typing import List, Sequence

from .digest import DIGEST_SIZE, EMPTY_ROOT, hash_pair
from .errors import InvalidIndexError
from .proof import ProofStep, Side


def build_merkle_levels(leaves: Sequence[bytes]) -> List[List[bytes]]:
    """
    Build every level of the tree, from the leaves up to the root.

    Args:
        leaves: Ordered 32-byte leaf digests

    Returns:
        List of levels where levels[0] is the leaves and levels[-1] holds the
        single root. Empty input returns an empty list.

    Raises:
        ValueError: If a leaf is not a 32-byte digest
    """
    for i, leaf in enumerate(leaves):
        if not isinstance(leaf, bytes) or len(leaf) != DIGEST_SIZE:
            raise ValueError(f"Leaf {i} must be a {DIGEST_SIZE}-byte digest")

    if not leaves:
        return []

    levels = [list(leaves)]
    while len(levels[-1]) > 1:
        current = levels[-1]
        parents = []
        for i in range(0, len(current), 2):
            if i + 1 < len(current):
                parents.append(hash_pair(current[i], current[i + 1]))
            else:
                # Odd node out is carried up as-is
                parents.append(current[i])
        levels.append(parents)
    return levels


class MerkleTree:
    """
    Merkle tree over an ordered sequence of leaf digests.

    Build once with MerkleTree.build(); query the root and generate proofs
    for any leaf. Instances are never mutated after construction, so they can
    be shared between threads once published.
    """

    def __init__(self, levels: List[List[bytes]]):
        self._levels = levels

    @classmethod
    def build(cls, leaves: Sequence[bytes]) -> "MerkleTree":
        """Build a tree over the given leaf digests."""
        return cls(build_merkle_levels(leaves))

    @property
    def leaf_count(self) -> int:
        return len(self._levels[0]) if self._levels else 0

    @property
    def depth(self) -> int:
        return max(len(self._levels) - 1, 0)

    @property
    def root(self) -> bytes:
        if not self._levels:
            return EMPTY_ROOT
        return self._levels[-1][0]

    @property
    def leaves(self) -> List[bytes]:
        return list(self._levels[0]) if self._levels else []

    def generate_proof(self, index: int) -> List[ProofStep]:
        """
        Extract the inclusion proof for a leaf.

        Walks from the leaf to the root collecting the sibling at every level
        where one exists, together with the side it sits on.

        Args:
            index: Index of the leaf to prove

        Returns:
            List of ProofStep, leaf level first

        Raises:
            InvalidIndexError: If index is outside [0, leaf_count)

        Example:
            >>> tree = MerkleTree.build([hash_content(b"a"), hash_content(b"b")])
            >>> tree.generate_proof(0)  # [ProofStep(sibling=<b leaf>, side=Side.RIGHT)]
        """
        if not 0 <= index < self.leaf_count:
            raise InvalidIndexError(index, self.leaf_count)

        proof = []
        i = index
        for level in self._levels[:-1]:
            sibling_i = i ^ 1
            if sibling_i < len(level):
                side = Side.LEFT if i % 2 == 1 else Side.RIGHT
                proof.append(ProofStep(sibling=level[sibling_i], side=side))
            i //= 2
        return proof

    def __len__(self) -> int:
        return self.leaf_count

    def __repr__(self) -> str:
        return f"MerkleTree(leaves={self.leaf_count}, root={self.root.hex()})"
