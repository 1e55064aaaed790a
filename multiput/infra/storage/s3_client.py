"""S3-compatible object store client implementation.

This module provides the boto3-backed ObjectStoreClient used by the upload
engine. It works with AWS S3, MinIO, and other S3-compatible services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, BinaryIO, Sequence

from multiput.infra.storage.client import CompletionToken, StorageError

if TYPE_CHECKING:
    from multiput.common.config import Settings

logger = logging.getLogger("storage")


class S3StorageClient:
    """S3-compatible object store client.

    Configuration is injected once through the constructor; the client never
    consults process-wide state afterwards. The underlying boto3 client is
    thread-safe and is shared by all part upload workers.
    """

    def __init__(
        self,
        *,
        region: str | None = None,
        credentials_source: str | None = None,
        endpoint_override: str | None = None,
        addressing_style: str = "path",
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
    ) -> None:
        """Initialize the S3 client.

        Args:
            region: Region name used for request signing.
            credentials_source: Named profile from the shared credentials file.
                When omitted, the default boto3 credential chain applies.
            endpoint_override: Custom endpoint URL (MinIO, Ceph, localstack).
            addressing_style: ``path``, ``virtual`` or ``auto``.
            access_key_id: Static access key, takes precedence over profiles.
            secret_access_key: Static secret key paired with access_key_id.

        Raises:
            StorageError: If boto3 is not installed.
        """
        self._client = self._build_client(
            region=region,
            credentials_source=credentials_source,
            endpoint_override=endpoint_override,
            addressing_style=addressing_style,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
        )

    @classmethod
    def from_settings(cls, settings: "Settings") -> "S3StorageClient":
        """Create a client from application settings."""
        return cls(
            region=settings.S3_REGION,
            credentials_source=settings.S3_PROFILE,
            endpoint_override=settings.S3_ENDPOINT_URL,
            addressing_style=settings.S3_ADDRESSING_STYLE,
            access_key_id=settings.S3_ACCESS_KEY_ID,
            secret_access_key=settings.S3_SECRET_ACCESS_KEY,
        )

    @staticmethod
    def _build_client(
        *,
        region: str | None,
        credentials_source: str | None,
        endpoint_override: str | None,
        addressing_style: str,
        access_key_id: str | None,
        secret_access_key: str | None,
    ) -> Any:
        """Create a boto3 S3 client from the injected options."""
        try:
            import boto3
            from botocore.config import Config
        except ImportError as exc:
            raise StorageError(
                "boto3 and botocore are required for S3 storage backend. "
                "Install with: pip install boto3"
            ) from exc

        config = Config(s3={"addressing_style": (addressing_style or "path").lower()})
        session = boto3.session.Session(
            profile_name=credentials_source,
            region_name=region,
        )
        return session.client(
            "s3",
            endpoint_url=endpoint_override,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=config,
        )

    def initiate_upload(self, *, bucket: str, key: str) -> str | None:
        """Start a multipart upload session."""
        try:
            response = self._client.create_multipart_upload(Bucket=bucket, Key=key)
        except Exception as exc:
            raise StorageError(f"Failed to create multipart upload: {exc}") from exc

        upload_id = response.get("UploadId")
        logger.debug("s3_multipart_created bucket=%s key=%s", bucket, key)
        return str(upload_id) if upload_id else None

    def upload_part(
        self,
        *,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        content_length: int,
        body: BinaryIO,
    ) -> str | None:
        """Upload one part of a multipart session."""
        try:
            response = self._client.upload_part(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                PartNumber=int(part_number),
                ContentLength=int(content_length),
                Body=body,
            )
        except Exception as exc:
            raise StorageError(
                f"Failed to upload part {part_number}: {exc}"
            ) from exc

        return response.get("ETag") or None

    def complete_upload(
        self,
        *,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[CompletionToken],
    ) -> str | None:
        """Commit the session's parts as one object."""
        multipart_payload = {
            "Parts": [
                {"ETag": part.etag, "PartNumber": int(part.part_number)}
                for part in parts
            ]
        }

        try:
            response = self._client.complete_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload=multipart_payload,
            )
        except Exception as exc:
            raise StorageError(f"Failed to complete multipart upload: {exc}") from exc

        return response.get("ETag") or None

    def abort_upload(self, *, bucket: str, key: str, upload_id: str) -> None:
        """Abort a session and release the parts stored so far."""
        try:
            self._client.abort_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
            )
        except Exception as exc:
            raise StorageError(f"Failed to abort multipart upload: {exc}") from exc

    def put_object(
        self,
        *,
        bucket: str,
        key: str,
        content_length: int,
        body: BinaryIO,
    ) -> str | None:
        """Upload a whole object in one call."""
        try:
            response = self._client.put_object(
                Bucket=bucket,
                Key=key,
                ContentLength=int(content_length),
                Body=body,
            )
        except Exception as exc:
            raise StorageError(f"Failed to put object: {exc}") from exc

        return response.get("ETag") or None
