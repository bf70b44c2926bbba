"""
Signed access grants for storage objects the Mediator reads or writes
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from cortex.logger import get_logger
from cortex.models import AccessGrant, StorageLocator
from storage.base import GET, PUT, StorageBackend

logger = get_logger(__name__)

DEFAULT_READ_TTL = 3600
DEFAULT_WRITE_TTL = 3600


class AccessGrantGenerator:
    """Computes presigned URLs locally from the backend's credentials."""

    def __init__(self, storage: StorageBackend, read_ttl: int = DEFAULT_READ_TTL):
        self.storage = storage
        self.read_ttl = read_ttl

    def _grant(self, locator: StorageLocator, method: str, ttl: int,
               content_type: Optional[str] = None) -> AccessGrant:
        if locator.bucket != self.storage.bucket:
            raise ValueError(
                f"Locator bucket '{locator.bucket}' does not match storage bucket '{self.storage.bucket}'"
            )

        issued_at = datetime.now(timezone.utc)
        url = self.storage.sign_url(locator.key, method=method, expires=ttl, content_type=content_type)
        grant = AccessGrant(
            url=url,
            method=method,
            expires_at=issued_at + timedelta(seconds=ttl),
            content_type=content_type,
        )
        logger.debug("Access grant issued", key=locator.key, method=method, ttl=ttl)
        return grant

    def grant_read(self, locator: StorageLocator) -> AccessGrant:
        return self._grant(locator, GET, self.read_ttl)

    def grant_write(self, locator: StorageLocator, content_type: Optional[str] = None,
                    ttl: int = DEFAULT_WRITE_TTL) -> AccessGrant:
        return self._grant(locator, PUT, ttl, content_type)
