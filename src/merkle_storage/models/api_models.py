"""
API Models

This module defines Pydantic models for API request and response validation.
Digests are carried as 0x-prefixed hex strings and file contents as standard
base64, so every payload is plain JSON.
"""

import base64
import binascii
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..merkle import DIGEST_SIZE, ProofStep, Side
from ..utils import bytes_to_hex, hex_to_bytes, normalize_hex


def encode_content(content: bytes) -> str:
    """Encode raw file bytes for transport."""
    return base64.b64encode(content).decode("ascii")


def decode_content(value: str) -> bytes:
    """
    Decode base64 file content.

    Raises:
        ValueError: If value is not valid base64
    """
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"Content must be valid base64: {e}")


def _validate_digest(v: str) -> str:
    return normalize_hex(v, DIGEST_SIZE)


class ErrorResponse(BaseModel):
    """
    Response model for API errors.

    Attributes:
        error: Error message
        code: Error code (string identifier)
        details: Additional error details
    """
    error: str = Field(..., description="Error message")
    code: str = Field(..., description="Error code")
    details: Optional[dict] = Field(default=None, description="Additional error details")


class HealthResponse(BaseModel):
    """
    Response model for health check endpoint.

    Attributes:
        status: Service status
        files: Number of stored files
        version: Service version
        timestamp: Response timestamp
    """
    status: str = Field(..., description="Service status")
    files: int = Field(..., description="Number of stored files")
    version: str = Field(default="0.1.0", description="Service version")
    timestamp: Optional[str] = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        description="Response timestamp"
    )


class NewFileModel(BaseModel):
    """One file of an upload batch."""
    name: Optional[str] = Field(default=None, description="Original file name")
    content: str = Field(..., description="File content, base64 encoded")

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        """Validate content is decodable base64."""
        decode_content(v)
        return v

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError("File name cannot be blank")
        return v

    def content_bytes(self) -> bytes:
        return decode_content(self.content)


class UploadRequest(BaseModel):
    """
    Request model for uploading a batch of files.

    Attributes:
        files: Files to store, in the order their ids should be assigned
    """
    files: List[NewFileModel] = Field(default_factory=list, description="Ordered batch of files")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "files": [
                    {"name": "a.txt", "content": "aGVsbG8="},
                    {"name": "b.txt", "content": "d29ybGQ="}
                ]
            }
        }
    )


class FileModel(BaseModel):
    """Id and name of a stored file."""
    id: int = Field(..., ge=0, description="Sequential file id")
    name: str = Field(..., description="File name")


class UploadResponse(BaseModel):
    """
    Response model for an upload batch.

    Attributes:
        root: Merkle root over every stored file after this upload
        files: Ids assigned to the uploaded files
    """
    root: str = Field(..., description="New merkle root as hex string")
    files: List[FileModel] = Field(default_factory=list, description="Assigned ids")

    @field_validator('root')
    @classmethod
    def validate_root(cls, v):
        return _validate_digest(v)

    def root_bytes(self) -> bytes:
        return hex_to_bytes(self.root, DIGEST_SIZE)


class FileListResponse(BaseModel):
    """Response model listing every stored file."""
    files: List[FileModel] = Field(default_factory=list, description="Stored files in id order")


class ProofStepModel(BaseModel):
    """One step of an inclusion proof."""
    hash: str = Field(..., description="Sibling digest as hex string")
    side: Side = Field(..., description="Side of the sibling: left or right")

    @field_validator('hash')
    @classmethod
    def validate_hash(cls, v):
        return _validate_digest(v)

    @classmethod
    def from_step(cls, step: ProofStep) -> "ProofStepModel":
        return cls(hash=bytes_to_hex(step.sibling), side=step.side)

    def to_step(self) -> ProofStep:
        return ProofStep(sibling=hex_to_bytes(self.hash, DIGEST_SIZE), side=Side(self.side))


class FileContentResponse(BaseModel):
    """
    Response model for a file download.

    Attributes:
        id: File id
        name: File name
        content: File content, base64 encoded
        proof: Inclusion proof against the current tree
        leaf_count: Number of leaves in the tree the proof was taken from
    """
    id: int = Field(..., ge=0, description="File id")
    name: str = Field(..., description="File name")
    content: str = Field(..., description="File content, base64 encoded")
    proof: List[ProofStepModel] = Field(default_factory=list, description="Inclusion proof, leaf level first")
    leaf_count: int = Field(..., ge=1, description="Leaf count of the tree the proof belongs to")

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        decode_content(v)
        return v

    def content_bytes(self) -> bytes:
        return decode_content(self.content)

    def proof_steps(self) -> List[ProofStep]:
        return [step.to_step() for step in self.proof]

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 0,
                "name": "a.txt",
                "content": "aGVsbG8=",
                "proof": [
                    {
                        "hash": "0x1234...",
                        "side": "right"
                    }
                ],
                "leaf_count": 2
            }
        }
    )


class RootResponse(BaseModel):
    """Response model for the current root."""
    root: str = Field(..., description="Current merkle root as hex string")
    leaf_count: int = Field(..., ge=0, description="Number of leaves covered by the root")

    @field_validator('root')
    @classmethod
    def validate_root(cls, v):
        return _validate_digest(v)

    def root_bytes(self) -> bytes:
        return hex_to_bytes(self.root, DIGEST_SIZE)
