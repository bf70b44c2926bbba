"""
Error taxonomy for the transcription workflow
"""
from typing import Any, Dict, Optional


class CortexError(Exception):
    """Base class for all workflow errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Flatten error for structured logging."""
        return {
            "error_type": type(self).__name__,
            "error_message": self.message,
            **self.details,
        }


class ConfigurationError(CortexError):
    """Configuration is missing or invalid."""
    pass


class CredentialError(CortexError):
    """Signing or auth credentials are absent or malformed."""
    pass


class StorageError(CortexError):
    """Object storage fault."""

    def __init__(self, message: str, key: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.key = key
        if key is not None:
            self.details.setdefault("key", key)


class StorageWriteError(StorageError):
    pass


class StorageReadError(StorageError):
    pass


class StorageDeleteError(StorageError):
    pass


class AuthError(CortexError):
    """Token exchange failed."""
    pass


class SubmissionError(CortexError):
    """Job creation failed."""
    pass


class PollError(CortexError):
    """Job status fetch failed."""
    pass


class PollTimeoutError(PollError):
    """Job did not reach a terminal status within the configured bound."""
    pass
