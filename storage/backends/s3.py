"""
S3-compatible storage backend (AWS S3, MinIO, etc.)
"""
from typing import AsyncIterator, Dict, Any, List, Optional
import os

import aioboto3
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from cortex.errors import CredentialError, StorageDeleteError, StorageReadError, StorageWriteError
from storage.base import GET, PUT, StorageBackend

MULTIPART_THRESHOLD = 100 * 1024 * 1024
MIN_PART_SIZE = 5 * 1024 * 1024

SIGNED_OPERATIONS = {
    GET: "get_object",
    PUT: "put_object",
}


class S3StorageBackend(StorageBackend):
    """Storage backend for S3-compatible services."""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)

        # Extract configuration
        self.endpoint = config.get("endpoint") or None
        self.region = config.get("region", "us-east-1")
        self.access_key = config.get("access_key") or os.getenv("AWS_ACCESS_KEY_ID")
        self.secret_key = config.get("secret_key") or os.getenv("AWS_SECRET_ACCESS_KEY")
        self.session_token = config.get("session_token") or os.getenv("AWS_SESSION_TOKEN")
        self.path_style = config.get("path_style", True)
        self.verify_ssl = config.get("verify_ssl", True)

        # Create session
        self.session = aioboto3.Session(
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
            aws_session_token=self.session_token,
            region_name=self.region,
        )

        # S3 configuration
        self.s3_config = {
            "endpoint_url": self.endpoint,
            "verify": self.verify_ssl,
            "region_name": self.region,
            "config": Config(
                signature_version="s3v4",
                s3={"addressing_style": "path" if self.path_style else "auto"},
            ),
        }
        self._signer = None

    async def read(self, key: str, chunk_size: int = 8192) -> AsyncIterator[bytes]:
        """Read object from S3 in chunks."""
        async with self.session.client("s3", **self.s3_config) as s3:
            try:
                response = await s3.get_object(Bucket=self.bucket, Key=key)

                async with response["Body"] as stream:
                    while True:
                        chunk = await stream.read(chunk_size)
                        if not chunk:
                            break
                        yield chunk

            except ClientError as e:
                if e.response["Error"]["Code"] == "NoSuchKey":
                    raise StorageReadError(f"Object not found: {key}", key=key)
                raise StorageReadError(f"Failed to read {key}: {e}", key=key)
            except BotoCoreError as e:
                raise StorageReadError(f"Failed to read {key}: {e}", key=key)

    async def write(self, key: str, content: AsyncIterator[bytes]) -> int:
        """Write content to S3 using multipart upload for large files."""
        try:
            async with self.session.client("s3", **self.s3_config) as s3:
                chunks = []
                total_size = 0

                async for chunk in content:
                    chunks.append(chunk)
                    total_size += len(chunk)

                    if total_size > MULTIPART_THRESHOLD:
                        return await self._multipart_upload(s3, key, chunks, content)

                # Simple upload for small files
                await s3.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=b"".join(chunks),
                )

                return total_size
        except (ClientError, BotoCoreError) as e:
            raise StorageWriteError(f"Failed to write {key}: {e}", key=key)

    async def _multipart_upload(
        self,
        s3_client,
        key: str,
        initial_chunks: List[bytes],
        content: AsyncIterator[bytes]
    ) -> int:
        """Handle multipart upload for large files."""
        response = await s3_client.create_multipart_upload(
            Bucket=self.bucket,
            Key=key,
        )
        upload_id = response["UploadId"]

        parts = []
        total_size = 0
        pending = b"".join(initial_chunks)

        async def upload_part(body: bytes) -> None:
            nonlocal total_size
            part_number = len(parts) + 1
            response = await s3_client.upload_part(
                Bucket=self.bucket,
                Key=key,
                PartNumber=part_number,
                UploadId=upload_id,
                Body=body,
            )
            parts.append({"ETag": response["ETag"], "PartNumber": part_number})
            total_size += len(body)

        try:
            if len(pending) >= MIN_PART_SIZE:
                await upload_part(pending)
                pending = b""

            async for chunk in content:
                pending += chunk
                if len(pending) >= MIN_PART_SIZE:
                    await upload_part(pending)
                    pending = b""

            # Final part may be smaller than the minimum
            if pending:
                await upload_part(pending)

            await s3_client.complete_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )

            return total_size

        except Exception:
            await s3_client.abort_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
            )
            raise

    async def delete(self, key: str) -> None:
        """Delete object from S3."""
        async with self.session.client("s3", **self.s3_config) as s3:
            try:
                await s3.delete_object(Bucket=self.bucket, Key=key)
            except (ClientError, BotoCoreError) as e:
                raise StorageDeleteError(f"Failed to delete {key}: {e}", key=key)

    def _get_signer(self):
        """Synchronous client used only for presigning."""
        if not self.access_key or not self.secret_key:
            raise CredentialError(
                "S3 signing requires an access key and a secret key",
                details={"bucket": self.bucket},
            )

        if self._signer is None:
            session = boto3.session.Session(
                aws_access_key_id=self.access_key,
                aws_secret_access_key=self.secret_key,
                aws_session_token=self.session_token,
                region_name=self.region,
            )
            self._signer = session.client("s3", **self.s3_config)
        return self._signer

    def sign_url(
        self,
        key: str,
        method: str = GET,
        expires: int = 3600,
        content_type: Optional[str] = None,
    ) -> str:
        """Generate presigned URL for direct access."""
        operation = SIGNED_OPERATIONS.get(method)
        if operation is None:
            raise ValueError(f"Unsupported signing method: {method}")

        params = {"Bucket": self.bucket, "Key": key}
        if content_type:
            params["ContentType"] = content_type

        try:
            return self._get_signer().generate_presigned_url(
                operation,
                Params=params,
                ExpiresIn=expires,
            )
        except (ClientError, BotoCoreError) as e:
            raise CredentialError(f"Cannot sign {key}: {e}", details={"bucket": self.bucket})
