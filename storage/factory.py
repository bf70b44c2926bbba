"""
Factory for creating storage backends
"""
from typing import Dict, Any, Type, Optional
import importlib

from cortex.logger import get_logger
from storage.base import StorageBackend, LocalStorageBackend

logger = get_logger(__name__)


# Registry of available storage backends
STORAGE_BACKENDS: Dict[str, Type[StorageBackend]] = {
    "filesystem": LocalStorageBackend,
    "local": LocalStorageBackend,
}

# Backends with optional dependencies are imported on first use
LAZY_BACKENDS = {
    "s3": ("storage.backends.s3", "S3StorageBackend", ["aioboto3", "boto3"]),
}


def _lazy_import_backend(backend_type: str) -> Optional[Type[StorageBackend]]:
    """Lazy import storage backend to avoid dependency issues."""
    if backend_type not in LAZY_BACKENDS:
        return None

    module_name, class_name, dependencies = LAZY_BACKENDS[backend_type]

    for dep in dependencies:
        try:
            importlib.import_module(dep)
        except ImportError:
            logger.error("Missing dependency for storage backend", backend=backend_type, dependency=dep)
            raise ValueError(
                f"Storage backend '{backend_type}' requires {dep}. "
                f"Install with: pip install {dep}"
            )

    module = importlib.import_module(module_name)
    backend_class = getattr(module, class_name)

    # Cache the successfully imported backend
    STORAGE_BACKENDS[backend_type] = backend_class
    return backend_class


def create_storage_backend(config: Dict[str, Any]) -> StorageBackend:
    """
    Create a storage backend from configuration.

    Args:
        config: Backend configuration dictionary

    Returns:
        Initialized storage backend

    Raises:
        ValueError: If backend type is unknown or configuration is invalid
    """
    backend_type = config.get("type")
    if not backend_type:
        raise ValueError("Storage backend configuration must include 'type'")

    backend_class = STORAGE_BACKENDS.get(backend_type) or _lazy_import_backend(backend_type)
    if backend_class is None:
        raise ValueError(f"Unknown storage backend type: {backend_type}")

    backend = backend_class(config)
    logger.debug("Initialized storage backend", backend=backend_type, bucket=backend.bucket)
    return backend
