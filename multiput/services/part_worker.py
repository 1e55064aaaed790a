from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from multiput.infra.observability.metrics import PART_BYTES, PART_LATENCY, PARTS
from multiput.infra.storage.client import (
    CompletionToken,
    ObjectStoreClient,
    StorageError,
)
from multiput.services.base import MissingTag, SourceError, TransportError
from multiput.services.partition import PartRange
from multiput.services.range_reader import ByteRangeReader

if TYPE_CHECKING:
    from multiput.services.orchestrator import UploadSession

logger = logging.getLogger("upload")


def upload_part(
    client: ObjectStoreClient,
    session: "UploadSession",
    part_range: PartRange,
    reader: ByteRangeReader,
) -> CompletionToken:
    """Upload one range as one part and return its completion token.

    The part either uploads completely and yields a token, or the whole part
    fails. Store failures are not retried here.

    Raises:
        TransportError: If the store call fails.
        SourceError: If the range could not be read while it was sent.
        MissingTag: If the store accepted the part without returning an etag.
    """
    part_number = part_range.part_number
    started = time.perf_counter()
    try:
        etag = client.upload_part(
            bucket=session.bucket,
            key=session.key,
            upload_id=session.upload_id,
            part_number=part_number,
            content_length=part_range.length,
            body=reader,
        )
    except StorageError as exc:
        PARTS.labels(outcome="failed").inc()
        raise TransportError(
            f"Upload of part {part_number} failed: {exc}", part_number=part_number
        ) from exc
    except SourceError as exc:
        PARTS.labels(outcome="failed").inc()
        raise SourceError(
            f"Reading part {part_number} failed: {exc}", part_number=part_number
        ) from exc
    elapsed = time.perf_counter() - started

    if not etag:
        PARTS.labels(outcome="missing_tag").inc()
        raise MissingTag(
            f"Store returned no etag for part {part_number}", part_number=part_number
        )

    PARTS.labels(outcome="succeeded").inc()
    PART_BYTES.inc(part_range.length)
    PART_LATENCY.observe(elapsed)
    logger.debug(
        "part_uploaded upload_id=%s part_number=%s bytes=%s elapsed=%.3f",
        session.upload_id,
        part_number,
        part_range.length,
        elapsed,
        extra={
            "extra": {
                "upload_id": session.upload_id,
                "part_number": part_number,
                "bytes": part_range.length,
                "elapsed_seconds": round(elapsed, 3),
            }
        },
    )
    return CompletionToken(part_number=part_number, etag=etag)
