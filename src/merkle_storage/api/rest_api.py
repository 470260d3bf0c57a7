"""
REST API for Merkle Storage

This module provides a FastAPI-based REST API over the storage service:
uploading batches of files, listing them, and downloading any file together
with a merkle inclusion proof against the current root.
"""

import logging
import traceback
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..models.api_models import (
    ErrorResponse,
    FileContentResponse,
    FileListResponse,
    FileModel,
    HealthResponse,
    ProofStepModel,
    RootResponse,
    UploadRequest,
    UploadResponse,
    encode_content,
)
from ..utils import bytes_to_hex
from .storage_service import (
    BlobNotFoundError,
    NewFile,
    StorageService,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

API_DESCRIPTION = """
Store files and retrieve them with merkle inclusion proofs.

Every upload appends the files to an ordered list and rebuilds a SHA3-256
merkle tree over all stored files. The uploader keeps only the returned root.
A later download returns the file together with the sibling path needed to
recompute that root, so the client can check the content without trusting
this service.

## Encoding
- **Digests**: 0x-prefixed lowercase hex, 32 bytes
- **Content**: standard base64
- **Proof**: list of `{hash, side}` steps from the leaf up to the root
"""


def get_storage_service(request: Request) -> StorageService:
    """Dependency returning the storage service bound to the app."""
    return request.app.state.storage


def _error(status_code: int, error: str, code: str, **details) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, code=code, details=details or None).model_dump()
    )


def create_app(service: Optional[StorageService] = None) -> FastAPI:
    """
    Create the API application.

    Args:
        service: Storage service to serve. A new empty one is created if None.

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Merkle Storage API",
        description=API_DESCRIPTION,
        version=__version__,
        license_info={
            "name": "MIT",
            "url": "https://opensource.org/licenses/MIT"
        }
    )
    app.state.storage = service if service is not None else StorageService()

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BlobNotFoundError)
    async def not_found_handler(request, exc: BlobNotFoundError):
        """Handle unknown file ids."""
        return _error(404, str(exc), "NOT_FOUND", file_id=exc.file_id)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request, exc: RequestValidationError):
        """Handle malformed request bodies and path parameters."""
        logger.warning(f"Rejected request to {request.url.path}: {exc.errors()}")
        return _error(
            422,
            "Request validation failed",
            "VALIDATION_ERROR",
            errors=[{"loc": list(err.get("loc", [])), "msg": err.get("msg")} for err in exc.errors()]
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc: Exception):
        """Handle unexpected errors."""
        logger.error(f"Unexpected error: {exc}\n{traceback.format_exc()}")
        return _error(500, "Internal server error", "INTERNAL_ERROR", error_type=type(exc).__name__)

    @app.get("/", response_model=dict)
    def root():
        """API root endpoint with basic information."""
        return {
            "name": "Merkle Storage API",
            "version": __version__,
            "description": "Integrity-verifiable file storage backed by a merkle tree",
            "docs": "/docs",
            "health": "/health"
        }

    @app.get("/health", response_model=HealthResponse)
    def health_check(storage: StorageService = Depends(get_storage_service)):
        """Health check endpoint."""
        return HealthResponse(status="healthy", files=len(storage), version=__version__)

    @app.post("/files", response_model=UploadResponse, status_code=201)
    def upload_files(request: UploadRequest, storage: StorageService = Depends(get_storage_service)):
        """
        Upload a batch of files.

        Files get sequential ids in request order. The tree is rebuilt over
        every stored file and the new root is returned. An empty batch is
        allowed and returns the current root.
        """
        items = [NewFile(content=f.content_bytes(), name=f.name) for f in request.files]
        outcome = storage.upload(items)
        return UploadResponse(
            root=bytes_to_hex(outcome.root),
            files=[FileModel(id=entry.id, name=entry.name) for entry in outcome.files]
        )

    @app.get("/files", response_model=FileListResponse)
    def list_files(storage: StorageService = Depends(get_storage_service)):
        """List every stored file in id order."""
        return FileListResponse(
            files=[FileModel(id=entry.id, name=entry.name) for entry in storage.list_files()]
        )

    @app.get("/files/{file_id}", response_model=FileContentResponse)
    def get_file_content(file_id: int, storage: StorageService = Depends(get_storage_service)):
        """
        Download a file with its inclusion proof.

        The proof is taken from the current tree. If files were uploaded after
        the caller obtained its root, the proof will not verify against it.
        """
        blob = storage.retrieve(file_id)
        return FileContentResponse(
            id=blob.id,
            name=blob.name,
            content=encode_content(blob.content),
            proof=[ProofStepModel.from_step(step) for step in blob.proof],
            leaf_count=blob.leaf_count
        )

    @app.get("/root", response_model=RootResponse)
    def get_tree_root(storage: StorageService = Depends(get_storage_service)):
        """Current merkle root and the number of files it covers."""
        root_hash, leaf_count = storage.current_root()
        return RootResponse(root=bytes_to_hex(root_hash), leaf_count=leaf_count)

    return app


# Application served by uvicorn
app = create_app()


def run_server(host: str = "127.0.0.1", port: int = 8080, dev: bool = False):
    """
    Run the API server.

    State lives in process memory, so auto-reload restarts with an empty store.

    Args:
        host: Host to bind to
        port: Port to bind to
        dev: Enable development mode with auto-reload
    """
    logger.info(f"Starting Merkle Storage API server on {host}:{port}")
    uvicorn.run(
        "merkle_storage.api.rest_api:app",
        host=host,
        port=port,
        reload=dev,
        log_level="info"
    )


if __name__ == "__main__":
    run_server(dev=True)
