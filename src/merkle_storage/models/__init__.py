"""
API Models Package

This package contains request and response models for the storage API.
It includes Pydantic models for validation and serialization of:

- Upload requests (batches of named, base64 encoded files)
- File listings, downloads with inclusion proofs, and the current root
- Error responses and status models

Usage:
    from merkle_storage.models import UploadRequest, UploadResponse

    request = UploadRequest(files=[{"name": "a.txt", "content": "aGVsbG8="}])
"""

from .api_models import (
    ErrorResponse,
    HealthResponse,
    NewFileModel,
    UploadRequest,
    UploadResponse,
    FileModel,
    FileListResponse,
    ProofStepModel,
    FileContentResponse,
    RootResponse,
    encode_content,
    decode_content,
)

__all__ = [
    'ErrorResponse',
    'HealthResponse',
    'NewFileModel',
    'UploadRequest',
    'UploadResponse',
    'FileModel',
    'FileListResponse',
    'ProofStepModel',
    'FileContentResponse',
    'RootResponse',
    'encode_content',
    'decode_content',
]
