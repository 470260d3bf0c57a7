"""
Merkle Storage - Client protocol

This module contains the client side of the integrity protocol, used by the
CLI. Uploads are cross-checked by rebuilding the merkle tree locally and
comparing its root with the one the service claims; downloads are only saved
once their inclusion proof verifies against the root persisted at upload time.

A failed cross-check or verification never touches the state file and never
writes a downloaded file.
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .api.storage_client import StorageClient
from .merkle import (
    MalformedProofError,
    MerkleTree,
    ProofStep,
    compute_root_from_proof,
    hash_content,
)
from .state import ClientState, load_state, save_state

logger = logging.getLogger(__name__)


class ClientProtocolError(Exception):
    """Base exception for client upload/download flows."""
    pass


class RootMismatchError(ClientProtocolError):
    """Raised when the locally built root differs from the service's root."""

    def __init__(self, message: str, local_root: bytes, remote_root: bytes):
        self.local_root = local_root
        self.remote_root = remote_root
        super().__init__(message)


class VerificationError(ClientProtocolError):
    """Raised when a downloaded file does not verify against the trusted root."""
    pass


@dataclass
class UploadResult:
    """Outcome of an upload: assigned ids and the two roots that were compared."""
    files: Dict[int, str] = field(default_factory=dict)
    local_root: Optional[bytes] = None
    remote_root: Optional[bytes] = None
    state: Optional[ClientState] = None

    @property
    def uploaded(self) -> bool:
        return bool(self.files)


@dataclass
class DownloadResult:
    file_id: int
    path: str
    size: int
    leaf_count: int


@dataclass
class ProofReport:
    """A proof fetched from the service and checked without saving the file."""
    file_id: int
    name: str
    content: bytes
    leaf: bytes
    leaf_count: int
    proof: List[ProofStep]
    computed_root: Optional[bytes]
    trusted_root: Optional[bytes]
    error: Optional[str] = None

    @property
    def verified(self) -> bool:
        return (
            self.error is None
            and self.trusted_root is not None
            and self.computed_root == self.trusted_root
        )


@dataclass
class StatusReport:
    trusted_root: Optional[bytes]
    local_leaves: int
    remote_root: bytes
    remote_leaves: int

    @property
    def in_sync(self) -> bool:
        return self.trusted_root is not None and self.trusted_root == self.remote_root


def read_files(paths: Sequence[str]) -> List[bytes]:
    """Read every file in order, failing before anything is sent."""
    contents = []
    for path in paths:
        try:
            with open(path, 'rb') as f:
                contents.append(f.read())
        except OSError as e:
            raise ClientProtocolError(f"Cannot read {path}: {e}")
    return contents


def upload_files(client: StorageClient, paths: Sequence[str], state_file: str) -> UploadResult:
    """
    Upload files and persist the service's root once it has been cross-checked.

    The local tree is built over the digests this client uploaded before
    (from the state file) followed by the new files, in the order given. The
    service's tree must be identical, so its root must match.

    Args:
        client: Storage API client
        paths: Local files to upload, in order
        state_file: Path of the client state file

    Returns:
        UploadResult. Nothing is uploaded or saved when paths is empty.

    Raises:
        RootMismatchError: If the service's root or id assignment disagrees
            with the local tree; the state file is left untouched
        ClientProtocolError: If a file cannot be read
        StorageAPIError: If the request fails
    """
    state = load_state(state_file)
    if not paths:
        logger.info("Nothing to upload")
        return UploadResult(state=state)

    contents = read_files(paths)
    names = [os.path.basename(path) for path in paths]
    digests = [hash_content(content) for content in contents]

    response = client.upload_files(list(zip(names, contents)))
    remote_root = response.root_bytes()

    local_tree = MerkleTree.build(state.leaves + digests)
    local_root = local_tree.root
    logger.info(f"Local root 0x{local_root.hex()}, remote root 0x{remote_root.hex()}")

    expected_ids = list(range(len(state.leaves), len(state.leaves) + len(paths)))
    assigned_ids = [entry.id for entry in response.files]
    if assigned_ids and assigned_ids[0] < len(state.leaves):
        raise RootMismatchError(
            f"Service assigned ids {assigned_ids}, expected {expected_ids}. "
            f"The service holds fewer files than this client uploaded, most likely "
            f"because it was restarted and lost its in-memory store. Remove {state_file} "
            f"to start over with a new trusted root",
            local_root, remote_root
        )
    if assigned_ids != expected_ids:
        raise RootMismatchError(
            f"Service assigned ids {assigned_ids}, expected {expected_ids}. "
            f"Other files were uploaded to the service since this client's last upload, "
            f"so its root cannot be verified locally",
            local_root, remote_root
        )
    if local_root != remote_root:
        raise RootMismatchError(
            f"Root mismatch: local 0x{local_root.hex()} != remote 0x{remote_root.hex()}",
            local_root, remote_root
        )

    uploaded = {entry.id: entry.name for entry in response.files}
    new_state = ClientState(
        root=remote_root,
        files={**state.files, **uploaded},
        leaves=state.leaves + digests,
    )
    save_state(state_file, new_state)

    return UploadResult(files=uploaded, local_root=local_root, remote_root=remote_root, state=new_state)


def _fetch_and_check(client: StorageClient, file_id: int, state: ClientState) -> ProofReport:
    """
    Fetch a file with its proof and check it against the client state.

    The leaf count is never taken on trust: when the state records this
    client's leaves, the tree the proof claims to come from must have exactly
    that many, and the content must hash to the recorded leaf.
    """
    response = client.download_file(file_id)
    content = response.content_bytes()
    leaf = hash_content(content)
    proof = response.proof_steps()

    computed_root = None
    error = None
    if response.id != file_id:
        error = f"Service returned file {response.id} for requested id {file_id}"
    elif state.leaves and response.leaf_count != len(state.leaves):
        error = (
            f"The service now holds {response.leaf_count} files but the trusted root "
            f"covers {len(state.leaves)}; the tree changed since the last upload"
        )
    elif file_id < len(state.leaves) and leaf != state.leaves[file_id]:
        error = f"Content digest 0x{leaf.hex()} differs from the digest recorded at upload"
    else:
        try:
            computed_root = compute_root_from_proof(leaf, file_id, response.leaf_count, proof)
        except MalformedProofError as e:
            error = str(e)

    return ProofReport(
        file_id=file_id,
        name=response.name,
        content=content,
        leaf=leaf,
        leaf_count=response.leaf_count,
        proof=proof,
        computed_root=computed_root,
        trusted_root=state.root,
        error=error,
    )


def inspect_proof(client: StorageClient, file_id: int, state_file: str) -> ProofReport:
    """
    Fetch a file with its proof and check it against the trusted root.

    Never writes the file. Malformed proofs and leaf counts or digests that
    disagree with the state file are reported in the result instead of raised.

    Raises:
        StorageNotFoundError: If the id is unknown to the service
        StorageAPIError: If the request fails
    """
    state = load_state(state_file)
    return _fetch_and_check(client, file_id, state)


def download_file(client: StorageClient, file_id: int, state_file: str,
                  save_as: Optional[str] = None, output_dir: str = ".") -> DownloadResult:
    """
    Download a file and save it only if it verifies against the trusted root.

    Args:
        client: Storage API client
        file_id: Id of the file to download
        state_file: Path of the client state file holding the trusted root
        save_as: File name to save under. Defaults to the name recorded at
            upload, then the name reported by the service.
        output_dir: Directory to save into

    Returns:
        DownloadResult with the saved path

    Raises:
        ClientProtocolError: If no trusted root has been persisted yet
        VerificationError: If the content does not match the trusted root;
            nothing is written
        StorageNotFoundError: If the id is unknown to the service
    """
    state = load_state(state_file)
    if not state.has_root:
        raise ClientProtocolError(
            f"No trusted root in {state_file}. Upload files first to establish one"
        )

    report = _fetch_and_check(client, file_id, state)
    if report.error is not None:
        raise VerificationError(f"Verification failed for file {file_id}: {report.error}")
    if not report.verified:
        raise VerificationError(
            f"Verification failed for file {file_id}: recomputed root 0x{report.computed_root.hex()} "
            f"does not match trusted root 0x{state.root.hex()}"
        )

    name = os.path.basename(save_as or state.files.get(file_id) or report.name)
    if not name or name in (".", ".."):
        raise ClientProtocolError(f"Cannot derive a file name for file {file_id}")
    path = os.path.join(output_dir, name)

    _write_atomic(path, report.content)
    logger.info(f"File {file_id} verified and saved as {path}")
    return DownloadResult(file_id=file_id, path=path, size=len(report.content), leaf_count=report.leaf_count)


def check_status(client: StorageClient, state_file: str) -> StatusReport:
    """Compare the trusted root with the service's current root."""
    state = load_state(state_file)
    remote = client.fetch_root()
    return StatusReport(
        trusted_root=state.root,
        local_leaves=len(state.leaves),
        remote_root=remote.root_bytes(),
        remote_leaves=remote.leaf_count,
    )


def _write_atomic(path: str, content: bytes) -> None:
    directory = os.path.dirname(os.path.abspath(path))
    temp_file = None
    try:
        with tempfile.NamedTemporaryFile(mode='wb', suffix='.part', dir=directory, delete=False) as f:
            temp_file = f.name
            f.write(content)
        os.replace(temp_file, path)
        temp_file = None
    except OSError as e:
        raise ClientProtocolError(f"Failed to write {path}: {e}")
    finally:
        # Clean up temporary file
        if temp_file and os.path.exists(temp_file):
            os.unlink(temp_file)
