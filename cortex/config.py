"""
Runtime configuration

Settings are loaded once at process start and handed to every component
explicitly; nothing in the package reads configuration from a global.
"""
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cortex.errors import ConfigurationError
from cortex.models import MediaAsset, OutputFormat

CONFIG_FILE_ENV = "APP_CONFIG_FILE"

# Keys used by the JSON app config file, mapped to settings fields
FILE_KEYS = {
    "clientKey": "client_key",
    "clientSecret": "client_secret",
    "projectServiceId": "project_service_id",
    "host": "host",
    "aws_access_key_id": "aws_access_key_id",
    "aws_secret_access_key": "aws_secret_access_key",
    "aws_session_token": "aws_session_token",
    "bucketRegion": "bucket_region",
    "bucketName": "bucket_name",
    "localPath": "local_path",
    "inputFile": "input_file",
    "outputFile_json": "output_file_json",
    "outputFile_ttml": "output_file_ttml",
    "outputFile_text": "output_file_text",
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CORTEX_",
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    # Mediator
    host: str = Field(..., description="Mediator API base URL")
    client_key: Optional[str] = None
    client_secret: Optional[str] = None
    project_service_id: str = Field(...)
    request_timeout: float = Field(30.0, gt=0)

    # Object storage
    storage_backend: str = Field("s3")
    storage_endpoint: Optional[str] = None
    storage_path: Path = Field(Path("./bucket-storage"))
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_session_token: Optional[str] = None
    bucket_region: str = Field("us-east-1")
    bucket_name: str = Field(...)
    grant_ttl: int = Field(3600, gt=0)

    # Media
    local_path: Path = Field(Path("."))
    input_file: str = Field(...)
    input_duration: int = Field(30, gt=0)
    output_file_json: str = Field("result.json")
    output_file_ttml: str = Field("result.ttml")
    output_file_text: str = Field("result.txt")

    # Polling
    poll_interval: float = Field(30.0, gt=0)
    poll_timeout: float = Field(6 * 60 * 60, ge=0)
    max_poll_attempts: Optional[int] = Field(None, gt=0)

    cleanup_on_failure: bool = False

    log_level: str = Field("INFO")
    log_json: bool = False

    @field_validator("host")
    @classmethod
    def _strip_host(cls, value: str) -> str:
        value = value.rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("host must be an http(s) URL")
        return value

    @field_validator("input_file", "output_file_json", "output_file_ttml", "output_file_text")
    @classmethod
    def _plain_key(cls, value: str) -> str:
        if not value or value.startswith("/") or ".." in value.replace("\\", "/").split("/"):
            raise ValueError("object keys must be non-empty relative names")
        return value

    def media_asset(self) -> MediaAsset:
        return MediaAsset(
            folder=self.local_path,
            name=self.input_file,
            duration=self.input_duration,
        )

    def output_keys(self) -> Dict[OutputFormat, str]:
        return {
            OutputFormat.JSON: self.output_file_json,
            OutputFormat.TTML: self.output_file_ttml,
            OutputFormat.TEXT: self.output_file_text,
        }

    def storage_config(self) -> Dict[str, Any]:
        """Backend configuration for storage.factory.create_storage_backend."""
        return {
            "type": self.storage_backend,
            "name": self.storage_backend,
            "bucket": self.bucket_name,
            "region": self.bucket_region,
            "endpoint": self.storage_endpoint,
            "access_key": self.aws_access_key_id,
            "secret_key": self.aws_secret_access_key,
            "session_token": self.aws_session_token,
            "path_style": True,
            "base_path": str(self.storage_path),
        }


def read_config_file(path: Path) -> Dict[str, Any]:
    """Read the JSON app config and translate its keys to settings fields."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Config file {path} is not valid JSON: {e}")

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")

    return {FILE_KEYS.get(key, key): value for key, value in raw.items()}


def load_settings(path: Optional[Path] = None, **overrides: Any) -> Settings:
    """
    Build settings from the app config file, environment and overrides.

    Args:
        path: JSON config file; falls back to $APP_CONFIG_FILE
        **overrides: Explicit field values, highest priority

    Raises:
        ConfigurationError: If the file is unreadable or values are invalid
    """
    if path is None and os.getenv(CONFIG_FILE_ENV):
        path = Path(os.environ[CONFIG_FILE_ENV])

    values: Dict[str, Any] = read_config_file(path) if path else {}
    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid configuration",
            details={"errors": [f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()]},
        )
