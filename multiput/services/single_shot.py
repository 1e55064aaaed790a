from __future__ import annotations

import logging
import time

from multiput.infra.observability.metrics import SESSIONS
from multiput.infra.storage.client import ObjectStoreClient, StorageError
from multiput.services.base import MissingTag, TransportError, UploadResult
from multiput.services.range_reader import SourceDescriptor, open_range

logger = logging.getLogger("upload")


def put_single(
    client: ObjectStoreClient,
    source: SourceDescriptor,
    *,
    bucket: str,
    key: str,
    offset: int = 0,
    length: int | None = None,
    buffer_size: int | None = None,
) -> UploadResult:
    """Upload the source, or one explicit range of it, with a single put.

    No session is created; the object becomes visible as a side effect of the
    one store call. ``length`` of None or 0 means up to the end of the source.
    """
    if not length:
        length = source.length - offset
    started = time.perf_counter()
    with open_range(source, offset, length, buffer_size=buffer_size) as reader:
        try:
            etag = client.put_object(
                bucket=bucket, key=key, content_length=length, body=reader
            )
        except StorageError as exc:
            raise TransportError(f"Single-shot upload failed: {exc}") from exc
    elapsed = time.perf_counter() - started

    if not etag:
        raise MissingTag(f"Store returned no etag for {bucket}/{key}")

    SESSIONS.labels(outcome="single_shot").inc()
    logger.info(
        "single_shot_uploaded bucket=%s key=%s offset=%s bytes=%s elapsed=%.2f",
        bucket,
        key,
        offset,
        length,
        elapsed,
        extra={
            "extra": {
                "bucket": bucket,
                "key": key,
                "offset": offset,
                "bytes": length,
                "elapsed_seconds": round(elapsed, 3),
            }
        },
    )
    return UploadResult(
        bucket=bucket,
        key=key,
        etag=etag,
        size_bytes=length,
        part_count=1,
        elapsed_seconds=elapsed,
    )
