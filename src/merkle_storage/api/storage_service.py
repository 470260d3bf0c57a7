"""
Storage Service Module

This module owns the server-side state: the ordered, append-only list of
uploaded blobs and the merkle tree built over all of their digests. The pair
is guarded by a reader/writer lock so that an upload (append + full rebuild)
is never observed half done, and a retrieve always returns content and proof
taken from the same tree.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..merkle import (
    MerkleError,
    MerkleTree,
    ProofStep,
    hash_content,
    verify_merkle_proof,
)
from .rwlock import ReadWriteLock

logger = logging.getLogger(__name__)


class StorageServiceError(Exception):
    """Base exception for storage service operations."""
    pass


class BlobNotFoundError(StorageServiceError):
    """Raised when a file id does not exist."""

    def __init__(self, file_id: int):
        self.file_id = file_id
        super().__init__(f"File {file_id} not found")


class StorageInvariantError(StorageServiceError):
    """Raised when the service detects an inconsistency in its own state."""
    pass


@dataclass(frozen=True)
class Blob:
    """An uploaded file. Never modified once stored."""
    id: int
    name: str
    content: bytes
    digest: bytes


@dataclass(frozen=True)
class NewFile:
    """One item of an upload batch."""
    content: bytes
    name: Optional[str] = None


@dataclass(frozen=True)
class FileEntry:
    id: int
    name: str


@dataclass(frozen=True)
class UploadOutcome:
    """Result of an upload batch: the rebuilt root and the ids assigned."""
    root: bytes
    files: List[FileEntry]


@dataclass(frozen=True)
class RetrievedBlob:
    """A file together with its inclusion proof, taken from one tree snapshot."""
    id: int
    name: str
    content: bytes
    proof: List[ProofStep]
    leaf_count: int


def default_file_name(file_id: int) -> str:
    return f"file_{file_id}"


class StorageService:
    """In-memory blob store committing to its contents with a merkle tree."""

    def __init__(self, verify_on_retrieve: bool = True):
        """
        Initialize an empty storage service.

        Args:
            verify_on_retrieve: Check every outgoing proof against the current
                root before returning it
        """
        self.verify_on_retrieve = verify_on_retrieve
        self._lock = ReadWriteLock()
        self._blobs: List[Blob] = []
        self._tree = MerkleTree.build([])

    def upload(self, items: Sequence[NewFile]) -> UploadOutcome:
        """
        Append a batch of files and rebuild the tree over every stored digest.

        Ids are assigned sequentially in batch order. The previous tree is
        replaced; its root is not retained. An empty batch is accepted and
        returns the current root.

        Args:
            items: Files to store, in order

        Returns:
            UploadOutcome with the new root and the (id, name) assignments
        """
        # Digests do not depend on shared state, hash before taking the lock
        digests = [hash_content(item.content) for item in items]

        with self._lock.write_locked():
            first_id = len(self._blobs)
            new_blobs = []
            for offset, (item, digest) in enumerate(zip(items, digests)):
                file_id = first_id + offset
                new_blobs.append(Blob(
                    id=file_id,
                    name=item.name or default_file_name(file_id),
                    content=item.content,
                    digest=digest,
                ))

            blobs = self._blobs + new_blobs
            tree = MerkleTree.build([blob.digest for blob in blobs])

            # Publish both together
            self._blobs = blobs
            self._tree = tree

        logger.info(
            f"Stored {len(new_blobs)} file(s), tree now has {tree.leaf_count} leaves, "
            f"root 0x{tree.root.hex()}"
        )
        return UploadOutcome(
            root=tree.root,
            files=[FileEntry(id=blob.id, name=blob.name) for blob in new_blobs],
        )

    def list_files(self) -> List[FileEntry]:
        """Return (id, name) for every stored file in id order."""
        with self._lock.read_locked():
            blobs = self._blobs
        return [FileEntry(id=blob.id, name=blob.name) for blob in blobs]

    def retrieve(self, file_id: int) -> RetrievedBlob:
        """
        Fetch a file with its inclusion proof against the current tree.

        If another upload happened since the caller obtained its root, the
        proof is for a newer tree and will not verify against the old root.

        Args:
            file_id: Id assigned at upload

        Returns:
            RetrievedBlob whose content, proof and leaf_count share one snapshot

        Raises:
            BlobNotFoundError: If file_id is unknown
            StorageInvariantError: If the proof fails the self-check
        """
        with self._lock.read_locked():
            if not 0 <= file_id < len(self._blobs):
                logger.warning(f"Requested unknown file id {file_id} ({len(self._blobs)} stored)")
                raise BlobNotFoundError(file_id)
            blob = self._blobs[file_id]
            tree = self._tree
            try:
                proof = tree.generate_proof(file_id)
            except MerkleError as e:
                raise StorageInvariantError(
                    f"File {file_id} is stored but has no leaf in the current tree: {e}"
                ) from e

        if self.verify_on_retrieve:
            self._check_proof(blob, proof, tree)

        logger.info(f"Serving file {file_id} with {len(proof)}-step proof over {tree.leaf_count} leaves")
        return RetrievedBlob(
            id=blob.id,
            name=blob.name,
            content=blob.content,
            proof=proof,
            leaf_count=tree.leaf_count,
        )

    def current_root(self) -> Tuple[bytes, int]:
        """Return the current root and the number of leaves it covers."""
        with self._lock.read_locked():
            tree = self._tree
        return tree.root, tree.leaf_count

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._blobs)

    @staticmethod
    def _check_proof(blob: Blob, proof: List[ProofStep], tree: MerkleTree) -> None:
        try:
            valid = verify_merkle_proof(blob.digest, blob.id, tree.leaf_count, proof, tree.root)
        except MerkleError as e:
            raise StorageInvariantError(f"Generated proof for file {blob.id} is malformed: {e}") from e
        if not valid:
            raise StorageInvariantError(f"Generated proof for file {blob.id} does not match the current root")
