"""Tests for S3 storage client."""

import io
from unittest.mock import MagicMock, patch

import pytest

from multiput.common.config import Settings
from multiput.infra.storage.client import CompletionToken, StorageError
from multiput.infra.storage.s3_client import S3StorageClient


class TestS3StorageClient:
    """Test S3StorageClient implementation."""

    @pytest.fixture
    def mock_s3(self):
        """Mock boto3 S3 client."""
        mock_client = MagicMock()
        with patch.object(S3StorageClient, "_build_client", return_value=mock_client):
            yield mock_client

    @pytest.fixture
    def client(self, mock_s3):
        """Create S3StorageClient with mocked boto3."""
        return S3StorageClient(
            region="us-east-1", endpoint_override="http://localhost:9000"
        )

    def test_options_are_passed_to_builder(self):
        with patch.object(
            S3StorageClient, "_build_client", return_value=MagicMock()
        ) as build:
            S3StorageClient(
                region="eu-west-1",
                credentials_source="backup",
                endpoint_override="http://minio:9000",
                addressing_style="virtual",
            )

        build.assert_called_once_with(
            region="eu-west-1",
            credentials_source="backup",
            endpoint_override="http://minio:9000",
            addressing_style="virtual",
            access_key_id=None,
            secret_access_key=None,
        )

    def test_from_settings(self):
        settings = Settings(
            S3_REGION="ap-south-1",
            S3_PROFILE="uploader",
            S3_ENDPOINT_URL="http://localhost:9000",
            S3_ACCESS_KEY_ID="test-key",
            S3_SECRET_ACCESS_KEY="test-secret",
        )

        with patch.object(
            S3StorageClient, "_build_client", return_value=MagicMock()
        ) as build:
            S3StorageClient.from_settings(settings)

        build.assert_called_once_with(
            region="ap-south-1",
            credentials_source="uploader",
            endpoint_override="http://localhost:9000",
            addressing_style="path",
            access_key_id="test-key",
            secret_access_key="test-secret",
        )

    def test_initiate_upload(self, client, mock_s3):
        """Test initiating multipart upload."""
        mock_s3.create_multipart_upload.return_value = {
            "UploadId": "test-upload-id",
            "Bucket": "test-bucket",
            "Key": "test/key",
        }

        upload_id = client.initiate_upload(bucket="test-bucket", key="test/key")

        assert upload_id == "test-upload-id"
        mock_s3.create_multipart_upload.assert_called_once_with(
            Bucket="test-bucket", Key="test/key"
        )

    def test_initiate_upload_missing_upload_id(self, client, mock_s3):
        """A response without UploadId is reported, not raised."""
        mock_s3.create_multipart_upload.return_value = {}

        assert client.initiate_upload(bucket="test-bucket", key="test/key") is None

    def test_initiate_upload_exception(self, client, mock_s3):
        mock_s3.create_multipart_upload.side_effect = Exception("S3 error")

        with pytest.raises(StorageError, match="Failed to create multipart upload"):
            client.initiate_upload(bucket="test-bucket", key="test/key")

    def test_upload_part(self, client, mock_s3):
        """Test uploading one part with a declared length."""
        mock_s3.upload_part.return_value = {"ETag": '"part-etag"'}
        body = io.BytesIO(b"abc")

        etag = client.upload_part(
            bucket="test-bucket",
            key="test/key",
            upload_id="test-upload-id",
            part_number=2,
            content_length=3,
            body=body,
        )

        assert etag == '"part-etag"'
        mock_s3.upload_part.assert_called_once_with(
            Bucket="test-bucket",
            Key="test/key",
            UploadId="test-upload-id",
            PartNumber=2,
            ContentLength=3,
            Body=body,
        )

    def test_upload_part_missing_etag(self, client, mock_s3):
        mock_s3.upload_part.return_value = {}

        etag = client.upload_part(
            bucket="test-bucket",
            key="test/key",
            upload_id="test-upload-id",
            part_number=1,
            content_length=0,
            body=io.BytesIO(),
        )

        assert etag is None

    def test_upload_part_exception(self, client, mock_s3):
        mock_s3.upload_part.side_effect = Exception("S3 error")

        with pytest.raises(StorageError, match="Failed to upload part 4"):
            client.upload_part(
                bucket="test-bucket",
                key="test/key",
                upload_id="test-upload-id",
                part_number=4,
                content_length=1,
                body=io.BytesIO(b"x"),
            )

    def test_complete_upload(self, client, mock_s3):
        """Test completing multipart upload."""
        mock_s3.complete_multipart_upload.return_value = {
            "ETag": '"test-etag"',
            "Bucket": "test-bucket",
            "Key": "test/key",
        }

        parts = [
            CompletionToken(part_number=1, etag="etag1"),
            CompletionToken(part_number=2, etag="etag2"),
        ]

        etag = client.complete_upload(
            bucket="test-bucket",
            key="test/key",
            upload_id="test-upload-id",
            parts=parts,
        )

        assert etag == '"test-etag"'
        call_args = mock_s3.complete_multipart_upload.call_args
        assert call_args[1]["Bucket"] == "test-bucket"
        assert call_args[1]["Key"] == "test/key"
        assert call_args[1]["UploadId"] == "test-upload-id"
        assert call_args[1]["MultipartUpload"]["Parts"] == [
            {"ETag": "etag1", "PartNumber": 1},
            {"ETag": "etag2", "PartNumber": 2},
        ]

    def test_complete_upload_exception(self, client, mock_s3):
        mock_s3.complete_multipart_upload.side_effect = Exception("S3 error")

        with pytest.raises(StorageError, match="Failed to complete multipart upload"):
            client.complete_upload(
                bucket="test-bucket",
                key="test/key",
                upload_id="test-upload-id",
                parts=[CompletionToken(part_number=1, etag="etag1")],
            )

    def test_abort_upload(self, client, mock_s3):
        """Test aborting multipart upload."""
        client.abort_upload(
            bucket="test-bucket",
            key="test/key",
            upload_id="test-upload-id",
        )

        mock_s3.abort_multipart_upload.assert_called_once_with(
            Bucket="test-bucket",
            Key="test/key",
            UploadId="test-upload-id",
        )

    def test_abort_upload_exception(self, client, mock_s3):
        mock_s3.abort_multipart_upload.side_effect = Exception("S3 error")

        with pytest.raises(StorageError, match="Failed to abort multipart upload"):
            client.abort_upload(
                bucket="test-bucket",
                key="test/key",
                upload_id="test-upload-id",
            )

    def test_put_object(self, client, mock_s3):
        mock_s3.put_object.return_value = {"ETag": '"object-etag"'}
        body = io.BytesIO(b"hello")

        etag = client.put_object(
            bucket="test-bucket", key="test/key", content_length=5, body=body
        )

        assert etag == '"object-etag"'
        mock_s3.put_object.assert_called_once_with(
            Bucket="test-bucket", Key="test/key", ContentLength=5, Body=body
        )

    def test_put_object_exception(self, client, mock_s3):
        mock_s3.put_object.side_effect = Exception("S3 error")

        with pytest.raises(StorageError, match="Failed to put object"):
            client.put_object(
                bucket="test-bucket",
                key="test/key",
                content_length=1,
                body=io.BytesIO(b"x"),
            )
