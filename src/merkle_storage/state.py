"""
Client State Persistence

The client keeps a small JSON file holding the trusted merkle root, the names
of the files it uploaded, and the leaf digests it uploaded so that a later
batch from the same client can be cross-checked against the service again.

    {
        "root": "0x...",
        "files": {"0": "a.txt", "1": "b.txt"},
        "leaves": ["0x...", "0x..."]
    }
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .merkle import DIGEST_SIZE
from .utils import bytes_to_hex, hex_to_bytes

logger = logging.getLogger(__name__)


class StateFileError(Exception):
    """Raised when the client state file cannot be read or written."""
    pass


@dataclass
class ClientState:
    """Trusted root and upload bookkeeping of one client."""
    root: Optional[bytes] = None
    files: Dict[int, str] = field(default_factory=dict)
    leaves: List[bytes] = field(default_factory=list)

    @property
    def has_root(self) -> bool:
        return self.root is not None

    def to_dict(self) -> dict:
        return {
            "root": bytes_to_hex(self.root) if self.root is not None else None,
            "files": {str(file_id): name for file_id, name in sorted(self.files.items())},
            "leaves": [bytes_to_hex(leaf) for leaf in self.leaves],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ClientState":
        """
        Build a state from its JSON form.

        Raises:
            StateFileError: If a field is missing or malformed
        """
        if not isinstance(data, dict):
            raise StateFileError("State must be a JSON object")
        try:
            root = data.get("root")
            files = data.get("files") or {}
            leaves = data.get("leaves") or []
            return cls(
                root=hex_to_bytes(root, DIGEST_SIZE) if root else None,
                files={int(file_id): str(name) for file_id, name in files.items()},
                leaves=[hex_to_bytes(leaf, DIGEST_SIZE) for leaf in leaves],
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise StateFileError(f"Malformed state: {e}")


def load_state(path: str) -> ClientState:
    """
    Load the client state.

    Args:
        path: Path of the state file

    Returns:
        The stored state, or an empty state if the file does not exist

    Raises:
        StateFileError: If the file exists but cannot be parsed
    """
    if not os.path.exists(path):
        logger.debug(f"No state file at {path}, starting empty")
        return ClientState()

    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise StateFileError(f"Failed to read state file {path}: {e}")

    return ClientState.from_dict(data)


def save_state(path: str, state: ClientState) -> None:
    """
    Write the client state atomically.

    The state is written to a temporary file next to the target and moved
    into place, so an interrupted write never leaves a truncated state file.

    Raises:
        StateFileError: If the file cannot be written
    """
    directory = os.path.dirname(os.path.abspath(path))
    temp_file = None
    try:
        with tempfile.NamedTemporaryFile(mode='w', suffix='.tmp', dir=directory, delete=False) as f:
            temp_file = f.name
            json.dump(state.to_dict(), f, indent=2)
        os.replace(temp_file, path)
        temp_file = None
    except OSError as e:
        raise StateFileError(f"Failed to write state file {path}: {e}")
    finally:
        # Clean up temporary file
        if temp_file and os.path.exists(temp_file):
            os.unlink(temp_file)

    logger.info(f"Saved client state to {path}")
