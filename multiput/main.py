#!/usr/bin/env python3
"""Upload a file to an S3-compatible object store.

Usage:
  multiput multipart data.bin my-bucket path/data.bin --parts 8 --workers 4
  multiput multipart data.bin my-bucket path/data.bin --part-size 16777216 --sequential
  multiput chunk data.bin my-bucket path/slice.bin --offset 1024 --length 4096

On success the etag of the stored object is printed without quotes.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Sequence

from pydantic import ValidationError

from multiput.common.config import Settings, get_settings
from multiput.common.logging import setup_logging
from multiput.infra.observability.metrics import write_metrics
from multiput.infra.storage.client import ObjectStoreClient, StorageError
from multiput.infra.storage.s3_client import S3StorageClient
from multiput.schemas import (
    ChunkUploadRequest,
    MultipartUploadRequest,
    StoreOptions,
)
from multiput.services.base import UploadCancelled, UploadError, UploadResult
from multiput.services.orchestrator import DispatchPolicy, UploadOrchestrator
from multiput.services.range_reader import SourceDescriptor

logger = logging.getLogger("multiput.cli")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="multiput",
        description="Parallel multipart uploads to S3-compatible object stores",
    )
    parser.add_argument("--profile", default=None, help="Credentials profile name")
    parser.add_argument("--endpoint-url", default=None, help="Custom endpoint URL")
    parser.add_argument("--region", default=None, help="Region used for signing")
    commands = parser.add_subparsers(dest="command", required=True)

    multipart = commands.add_parser(
        "multipart", help="Split a file into parts and upload them as one object"
    )
    _add_target_arguments(multipart)
    sizing = multipart.add_mutually_exclusive_group(required=True)
    sizing.add_argument("--parts", type=int, dest="part_count", help="Number of parts")
    sizing.add_argument(
        "--part-size",
        type=int,
        dest="part_size",
        help="Nominal part size in bytes; the remainder goes to the last part",
    )
    multipart.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Maximum concurrent part uploads (default: UPLOAD_MAX_WORKERS)",
    )
    multipart.add_argument(
        "--sequential",
        action="store_true",
        help="Upload one part at a time over a single file handle",
    )
    multipart.add_argument(
        "--min-part-size",
        type=int,
        default=None,
        help="Reject plans with smaller non-final parts (default: UPLOAD_MIN_PART_SIZE_BYTES)",
    )
    multipart.add_argument(
        "--no-abort",
        action="store_true",
        help="Leave the remote session open when a part fails",
    )

    chunk = commands.add_parser(
        "chunk", help="Upload one byte range of a file as a whole object"
    )
    _add_target_arguments(chunk)
    chunk.add_argument("--offset", type=int, default=0, help="Start offset in bytes")
    chunk.add_argument(
        "--length",
        type=int,
        default=0,
        help="Number of bytes to upload, 0 for the rest of the file",
    )
    return parser


def _add_target_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("path", help="Source file")
    parser.add_argument("bucket", help="Target bucket")
    parser.add_argument("key", help="Target object key")
    parser.add_argument(
        "--buffer-size",
        type=int,
        default=None,
        help="Read buffer size in bytes (default: UPLOAD_READ_BUFFER_BYTES)",
    )


def _or_default(value: int | None, default: int) -> int:
    return default if value is None else value


def _build_client(args: argparse.Namespace, settings: Settings) -> S3StorageClient:
    options = StoreOptions(
        region=args.region or settings.S3_REGION,
        profile=args.profile or settings.S3_PROFILE,
        endpoint_url=args.endpoint_url or settings.S3_ENDPOINT_URL,
    )
    return S3StorageClient(
        region=options.region,
        credentials_source=options.profile,
        endpoint_override=options.endpoint_url,
        addressing_style=settings.S3_ADDRESSING_STYLE,
        access_key_id=settings.S3_ACCESS_KEY_ID,
        secret_access_key=settings.S3_SECRET_ACCESS_KEY,
    )


def _run_multipart(
    args: argparse.Namespace, settings: Settings, client: ObjectStoreClient
) -> UploadResult:
    request = MultipartUploadRequest(
        path=args.path,
        bucket=args.bucket,
        key=args.key,
        part_count=args.part_count,
        part_size=args.part_size,
        workers=_or_default(args.workers, settings.UPLOAD_MAX_WORKERS),
        sequential=args.sequential,
        buffer_size=_or_default(args.buffer_size, settings.UPLOAD_READ_BUFFER_BYTES),
        min_part_size=_or_default(
            args.min_part_size, settings.UPLOAD_MIN_PART_SIZE_BYTES
        ),
        abort_on_failure=settings.UPLOAD_ABORT_ON_FAILURE and not args.no_abort,
    )
    orchestrator = UploadOrchestrator.from_settings(
        client,
        settings,
        max_workers=request.workers,
        policy=(
            DispatchPolicy.SEQUENTIAL if request.sequential else DispatchPolicy.PARALLEL
        ),
        read_buffer_size=request.buffer_size,
        abort_on_failure=request.abort_on_failure,
        min_part_size=request.min_part_size,
    )
    source = SourceDescriptor.from_path(request.path)
    return orchestrator.upload(
        source,
        bucket=request.bucket,
        key=request.key,
        part_count=request.part_count,
        part_size=request.part_size,
    )


def _run_chunk(
    args: argparse.Namespace, settings: Settings, client: ObjectStoreClient
) -> UploadResult:
    request = ChunkUploadRequest(
        path=args.path,
        bucket=args.bucket,
        key=args.key,
        offset=args.offset,
        length=args.length,
        buffer_size=_or_default(args.buffer_size, settings.UPLOAD_READ_BUFFER_BYTES),
    )
    orchestrator = UploadOrchestrator.from_settings(
        client, settings, read_buffer_size=request.buffer_size
    )
    source = SourceDescriptor.from_path(request.path)
    return orchestrator.upload_range(
        source,
        bucket=request.bucket,
        key=request.key,
        offset=request.offset,
        length=request.length,
    )


_COMMANDS: dict[str, Any] = {
    "multipart": _run_multipart,
    "chunk": _run_chunk,
}


def main(
    argv: Sequence[str] | None = None,
    *,
    client: ObjectStoreClient | None = None,
    settings: Settings | None = None,
) -> int:
    args = build_parser().parse_args(argv)
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    try:
        store = client if client is not None else _build_client(args, settings)
        result = _COMMANDS[args.command](args, settings, store)
    except ValidationError as exc:
        print(f"invalid arguments: {exc}", file=sys.stderr)
        return EXIT_USAGE
    except UploadCancelled as exc:
        logger.warning("upload_cancelled error=%s", exc)
        print(f"cancelled: {exc}", file=sys.stderr)
        return EXIT_CANCELLED
    except (UploadError, StorageError) as exc:
        logger.error("upload_failed error_type=%s error=%s", type(exc).__name__, exc)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    finally:
        if settings.METRICS_TEXTFILE:
            write_metrics(settings.METRICS_TEXTFILE)

    logger.info(
        "Uploaded %s bytes in %s part(s) in %.2f s",
        result.size_bytes,
        result.part_count,
        result.elapsed_seconds,
    )
    print(result.display_etag)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
