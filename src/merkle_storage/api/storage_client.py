"""
Storage API Client

This module provides a client for the merkle storage REST API. It handles
request encoding, error reporting and parsing responses into the API models.
"""

import logging
from typing import Any, List, Optional, Sequence, Tuple

import requests
from pydantic import BaseModel, ValidationError

from ..config import get_request_timeout, get_server_url
from ..models.api_models import (
    FileContentResponse,
    FileListResponse,
    FileModel,
    RootResponse,
    UploadResponse,
    encode_content,
)

logger = logging.getLogger(__name__)


class StorageAPIError(Exception):
    """Exception raised for storage API related errors."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        self.status_code = status_code
        self.code = code
        super().__init__(message)


class StorageNotFoundError(StorageAPIError):
    """Raised when the service reports that a file id does not exist."""
    pass


class StorageClient:
    """
    Client for the merkle storage service.

    Wraps a requests.Session (or any object exposing compatible get/post
    methods) and converts transport failures into StorageAPIError.
    """

    def __init__(self, base_url: Optional[str] = None, session: Optional[Any] = None,
                 timeout: Optional[float] = None):
        """
        Initialize the storage API client.

        Args:
            base_url: Base URL of the service. If None, uses MERKLE_STORAGE_URL.
            session: HTTP session to use. A new requests.Session if None.
            timeout: Request timeout in seconds. If None, uses MERKLE_STORAGE_TIMEOUT.
        """
        self.base_url = (base_url or get_server_url()).rstrip('/')
        self.timeout = timeout if timeout is not None else get_request_timeout()

        if session is None:
            session = requests.Session()
            session.headers.update({
                'Content-Type': 'application/json',
                'Accept': 'application/json'
            })
        self.session = session

        logger.debug(f"Initialized StorageClient with base_url: {self.base_url}")

    def upload_files(self, files: Sequence[Tuple[Optional[str], bytes]]) -> UploadResponse:
        """
        Upload a batch of files.

        Args:
            files: Ordered (name, content) pairs

        Returns:
            UploadResponse with the new root and assigned ids

        Raises:
            StorageAPIError: If the request fails or returns invalid data
        """
        payload = {
            "files": [{"name": name, "content": encode_content(content)} for name, content in files]
        }
        logger.info(f"Uploading {len(files)} file(s) to {self.base_url}")
        data = self._request("post", "/files", json=payload)
        return self._parse(UploadResponse, data, "upload response")

    def list_files(self) -> List[FileModel]:
        """Fetch the ids and names of every stored file."""
        data = self._request("get", "/files")
        return self._parse(FileListResponse, data, "file list").files

    def download_file(self, file_id: int) -> FileContentResponse:
        """
        Fetch a file with its inclusion proof.

        Args:
            file_id: Id of the file to download

        Returns:
            FileContentResponse with content, proof and leaf count

        Raises:
            StorageNotFoundError: If the id is unknown to the service
            StorageAPIError: If the request fails or returns invalid data
        """
        logger.info(f"Downloading file {file_id}")
        data = self._request("get", f"/files/{file_id}")
        return self._parse(FileContentResponse, data, f"file {file_id}")

    def fetch_root(self) -> RootResponse:
        """Fetch the service's current root and leaf count."""
        data = self._request("get", "/root")
        return self._parse(RootResponse, data, "root response")

    def health_check(self) -> bool:
        """
        Check if the storage API is accessible.

        Returns:
            True if API is accessible, False otherwise
        """
        try:
            response = self.session.get(f"{self.base_url}/health", timeout=10)
            return response.status_code == 200
        except requests.RequestException as e:
            logger.debug(f"Health check failed: {e}")
            return False

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = getattr(self.session, method)(url, timeout=self.timeout, **kwargs)
        except requests.ConnectionError as e:
            raise StorageAPIError(
                f"Failed to connect to storage service at {self.base_url}. "
                f"Please check that the server is running (merkle-storage serve) "
                f"and that --server-url / MERKLE_STORAGE_URL is correct. "
                f"Original error: {e}"
            )
        except requests.Timeout as e:
            raise StorageAPIError(
                f"Timeout talking to storage service at {self.base_url}. "
                f"Original error: {e}"
            )
        except requests.RequestException as e:
            raise StorageAPIError(f"Request to {url} failed: {e}")

        return self._check_response(response, url)

    @staticmethod
    def _check_response(response: Any, url: str) -> Any:
        status = response.status_code
        try:
            data = response.json()
        except ValueError:
            data = None

        if status < 200 or status >= 300:
            error = data.get("error") if isinstance(data, dict) else None
            code = data.get("code") if isinstance(data, dict) else None
            message = error or response.text or "no response body"
            if status == 404:
                raise StorageNotFoundError(message, status_code=status, code=code)
            raise StorageAPIError(f"HTTP {status} from {url}: {message}", status_code=status, code=code)

        if data is None:
            raise StorageAPIError(f"Invalid response from {url}: body is not JSON", status_code=status)
        return data

    @staticmethod
    def _parse(model: type, data: Any, what: str) -> BaseModel:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise StorageAPIError(f"Invalid {what} from storage service: {e}")
