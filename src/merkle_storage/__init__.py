"""
Merkle Storage

Integrity-verifiable file storage: a service commits to uploaded files with a
merkle tree, and clients keep only the root to verify any later download.
"""

__version__ = "0.1.0"
