"""
Removal of staged inputs and produced outputs from storage
"""
import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from cortex.logger import get_logger
from storage.base import StorageBackend

logger = get_logger(__name__)


@dataclass
class CleanupReport:
    """Per-object outcome of a cleanup pass."""
    deleted: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failed


class ArtifactReaper:
    """Deletes every object the run created; one delete per key, all at once."""

    def __init__(self, storage: StorageBackend, keys: Sequence[str]):
        self.storage = storage
        self.keys = list(keys)

    async def reap(self) -> CleanupReport:
        logger.info("Deleting artifacts from storage", bucket=self.storage.bucket, keys=self.keys)

        results = await asyncio.gather(
            *(self.storage.delete(key) for key in self.keys),
            return_exceptions=True,
        )

        report = CleanupReport()
        for key, result in zip(self.keys, results):
            if isinstance(result, Exception):
                report.failed[key] = str(result) or type(result).__name__
            elif isinstance(result, BaseException):
                raise result
            else:
                report.deleted.append(key)

        if report.complete:
            logger.info("Deleted all artifacts from storage", count=len(report.deleted))
        else:
            logger.warning(
                "Partial cleanup; some artifacts remain in storage",
                deleted=report.deleted,
                failed=report.failed,
            )
        return report
