"""
Storage API Package

This package provides the server and client sides of the storage API:

- StorageService: in-memory blob store with a merkle tree over its contents
- create_app / run_server: FastAPI application exposing the service
- StorageClient: HTTP client for the API

Usage:
    from merkle_storage.api import StorageClient

    client = StorageClient("http://localhost:8080")
    files = client.list_files()
"""

from .storage_service import (
    StorageService,
    StorageServiceError,
    BlobNotFoundError,
    StorageInvariantError,
    NewFile,
)
from .storage_client import StorageClient, StorageAPIError, StorageNotFoundError

__all__ = [
    'StorageService',
    'StorageServiceError',
    'BlobNotFoundError',
    'StorageInvariantError',
    'NewFile',
    'StorageClient',
    'StorageAPIError',
    'StorageNotFoundError',
]
