"""
Moving media between local disk and object storage
"""
import os
from pathlib import Path
from typing import AsyncIterator

import aiofiles

from cortex.errors import StorageError, StorageReadError, StorageWriteError
from cortex.logger import get_logger
from cortex.models import MediaAsset, StorageLocator
from storage.base import StorageBackend

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024


async def _read_file(path: Path, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
    async with aiofiles.open(path, "rb") as f:
        while chunk := await f.read(chunk_size):
            yield chunk


class AssetStager:
    """Uploads the input asset to storage under its file name."""

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    async def stage(self, asset: MediaAsset) -> int:
        path = asset.path
        if not path.is_file():
            raise StorageWriteError(f"Input file not found: {path}", key=asset.name)

        try:
            size = await self.storage.write(asset.name, _read_file(path))
        except OSError as e:
            raise StorageWriteError(f"Failed to read {path}: {e}", key=asset.name)

        logger.info("Media uploaded", key=asset.name, bucket=self.storage.bucket, bytes=size)
        return size


class ResultFetcher:
    """Downloads produced artifacts next to the input asset."""

    def __init__(self, storage: StorageBackend, folder: Path):
        self.storage = storage
        self.folder = Path(folder)

    async def fetch(self, locator: StorageLocator) -> Path:
        """Download an object to folder/key, replacing any existing file."""
        target = self.folder / locator.key
        try:
            target.resolve().relative_to(self.folder.resolve())
        except ValueError:
            raise StorageReadError(f"Key '{locator.key}' is outside {self.folder}", key=locator.key)
        partial = target.with_name(f".{target.name}.part")

        logger.info("Starting result download", key=locator.key)
        size = 0
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(partial, "wb") as f:
                async for chunk in self.storage.read(locator.key):
                    await f.write(chunk)
                    size += len(chunk)
            os.replace(partial, target)
        except StorageError as e:
            partial.unlink(missing_ok=True)
            raise StorageReadError(e.message, key=locator.key)
        except OSError as e:
            partial.unlink(missing_ok=True)
            raise StorageReadError(f"Failed to write {target}: {e}", key=locator.key)

        logger.info("Result downloaded", key=locator.key, path=str(target), bytes=size)
        return target
