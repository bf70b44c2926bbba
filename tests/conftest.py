"""
Test configuration and fixtures
"""
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from cortex.config import Settings
from cortex.models import AccessGrant, MediaAsset, OutputFormat
from tests.mocks.mediator import FakeMediator
from tests.mocks.storage import MockStorageBackend

HOST = "https://mediator.test/api/v1"


@pytest.fixture
def media_dir(tmp_path) -> Path:
    """Local folder holding the input media file."""
    folder = tmp_path / "media"
    folder.mkdir()
    (folder / "video.mp4").write_bytes(b"\x00\x00\x00\x18ftypmp42" + b"\x01" * 4096)
    return folder


@pytest.fixture
def settings(media_dir, tmp_path) -> Settings:
    """Settings for a run against the mock storage and fake Mediator."""
    return Settings(
        host=HOST,
        client_key="client-key",
        client_secret="client-secret",
        project_service_id="project-42",
        storage_backend="filesystem",
        storage_path=tmp_path / "bucket-storage",
        aws_access_key_id="AKIAEXAMPLE",
        aws_secret_access_key="secret",
        bucket_name="test-bucket",
        local_path=media_dir,
        input_file="video.mp4",
        input_duration=30,
        output_file_json="r.json",
        output_file_ttml="r.ttml",
        output_file_text="r.txt",
        poll_interval=30,
        _env_file=None,
    )


@pytest.fixture
def asset(media_dir) -> MediaAsset:
    return MediaAsset(folder=media_dir, name="video.mp4", duration=30)


@pytest.fixture
def mock_storage() -> MockStorageBackend:
    return MockStorageBackend()


@pytest.fixture
def mediator() -> FakeMediator:
    return FakeMediator()


@pytest.fixture
def grants():
    """Fixed grants for the input and each output format."""
    expires_at = datetime.now(timezone.utc) + timedelta(hours=1)

    def grant(key: str, method: str) -> AccessGrant:
        return AccessGrant(url=f"https://storage.test/test-bucket/{key}?sig=1", method=method, expires_at=expires_at)

    return {
        "input": grant("video.mp4", "GET"),
        "outputs": {
            OutputFormat.JSON: grant("r.json", "PUT"),
            OutputFormat.TTML: grant("r.ttml", "PUT"),
            OutputFormat.TEXT: grant("r.txt", "PUT"),
        },
    }
