"""
Base storage backend interface
"""
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncIterator, Optional, Dict, Any
from urllib.parse import quote, urlencode
import os

import aiofiles

from cortex.errors import (
    CredentialError,
    StorageDeleteError,
    StorageError,
    StorageReadError,
    StorageWriteError,
)

GET = "GET"
PUT = "PUT"


class StorageBackend(ABC):
    """Abstract base class for bucket-scoped object storage."""

    def __init__(self, config: Dict[str, Any]):
        """Initialize storage backend with configuration."""
        self.config = config
        self.name = config.get("name", "unknown")
        self.bucket = config.get("bucket")

        if not self.bucket:
            raise ValueError(f"{self.__class__.__name__} requires 'bucket' configuration")

    @abstractmethod
    async def read(self, key: str, chunk_size: int = 8192) -> AsyncIterator[bytes]:
        """Read object content as chunks."""
        pass

    @abstractmethod
    async def write(self, key: str, content: AsyncIterator[bytes]) -> int:
        """Write content to an object. Returns bytes written."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete an object. Deleting a missing object is not an error."""
        pass

    @abstractmethod
    def sign_url(
        self,
        key: str,
        method: str = GET,
        expires: int = 3600,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Compute a time-limited URL granting one operation on an object.

        Signing is local; no request is sent to storage.

        Raises:
            CredentialError: If signing credentials are missing or malformed
        """
        pass


class LocalStorageBackend(StorageBackend):
    """Filesystem storage: the bucket is a directory under base_path."""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.base_path = Path(config.get("base_path") or "./bucket-storage")
        self.bucket_path = self.base_path / self.bucket
        self.bucket_path.mkdir(parents=True, exist_ok=True)

    def _full_path(self, key: str) -> Path:
        """Get full filesystem path."""
        # Remove leading slash to avoid absolute path issues
        key = key.lstrip("/")
        full_path = self.bucket_path / key

        # Security: ensure path is within the bucket
        try:
            full_path.resolve().relative_to(self.bucket_path.resolve())
        except ValueError:
            raise StorageError(f"Key '{key}' is outside storage boundary", key=key)

        return full_path

    async def read(self, key: str, chunk_size: int = 8192) -> AsyncIterator[bytes]:
        """Read file in chunks."""
        full_path = self._full_path(key)
        if not full_path.is_file():
            raise StorageReadError(f"Object not found: {key}", key=key)

        try:
            async with aiofiles.open(full_path, "rb") as f:
                while chunk := await f.read(chunk_size):
                    yield chunk
        except OSError as e:
            raise StorageReadError(f"Failed to read {key}: {e}", key=key)

    async def write(self, key: str, content: AsyncIterator[bytes]) -> int:
        """Write content to file."""
        full_path = self._full_path(key)

        bytes_written = 0
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(full_path, "wb") as f:
                async for chunk in content:
                    await f.write(chunk)
                    bytes_written += len(chunk)
        except OSError as e:
            raise StorageWriteError(f"Failed to write {key}: {e}", key=key)

        return bytes_written

    async def delete(self, key: str) -> None:
        """Delete file."""
        full_path = self._full_path(key)
        try:
            full_path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageDeleteError(f"Failed to delete {key}: {e}", key=key)

    def sign_url(
        self,
        key: str,
        method: str = GET,
        expires: int = 3600,
        content_type: Optional[str] = None,
    ) -> str:
        """Build a file:// URL that records method and expiry."""
        if expires <= 0:
            raise CredentialError(f"Invalid expiry for {key}: {expires}")

        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires)
        params = {
            "X-Method": method,
            "X-Expires": str(expires),
            "X-Expires-At": str(int(expires_at.timestamp())),
        }
        if content_type:
            params["X-Content-Type"] = content_type

        path = quote(os.fspath(self._full_path(key).resolve()))
        return f"file://{path}?{urlencode(params)}"
