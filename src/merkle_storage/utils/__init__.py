"""
Utility Functions

This package provides hex string helpers shared by the merkle engine, the
REST API models and the client state file.
"""

from .hex_helpers import (
    normalize_hex,
    hex_to_bytes,
    bytes_to_hex,
)

__all__ = [
    'normalize_hex',
    'hex_to_bytes',
    'bytes_to_hex',
]
