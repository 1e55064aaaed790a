"""Multipart upload orchestration.

This module owns the lifecycle of a multipart session: initiate, dispatch one
part upload per planned range (sequentially or through a bounded thread pool),
collect completion tokens, and finalize the session by completing or aborting
it depending on whether every part succeeded.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from multiput.infra.observability.metrics import PARTS, SESSIONS
from multiput.infra.storage.client import (
    CompletionToken,
    ObjectStoreClient,
    StorageError,
)
from multiput.services.base import (
    IncompleteUpload,
    InvalidPartition,
    MissingTag,
    NoUploadId,
    SessionStateError,
    SourceError,
    TransportError,
    UploadCancelled,
    UploadError,
    UploadResult,
)
from multiput.services.part_worker import upload_part
from multiput.services.partition import PartRange, plan, plan_by_part_size
from multiput.services.range_reader import (
    ByteRangeReader,
    SourceDescriptor,
    open_handle,
    open_range,
)
from multiput.services.single_shot import put_single

if TYPE_CHECKING:
    from multiput.common.config import Settings

logger = logging.getLogger("upload")


class SessionState(str, enum.Enum):
    CREATED = "created"
    INITIATED = "initiated"
    PARTS_IN_FLIGHT = "parts_in_flight"
    ALL_PARTS_DONE = "all_parts_done"
    COMPLETED = "completed"
    ABORTING = "aborting"
    ABORTED = "aborted"
    # Left open on the store: abort disabled or failed, or finalize rejected.
    ORPHANED = "orphaned"


_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.CREATED: frozenset({SessionState.INITIATED}),
    SessionState.INITIATED: frozenset(
        {SessionState.PARTS_IN_FLIGHT, SessionState.ABORTING, SessionState.ORPHANED}
    ),
    SessionState.PARTS_IN_FLIGHT: frozenset(
        {
            SessionState.ALL_PARTS_DONE,
            SessionState.ABORTING,
            SessionState.ORPHANED,
        }
    ),
    SessionState.ALL_PARTS_DONE: frozenset(
        {SessionState.COMPLETED, SessionState.ABORTING, SessionState.ORPHANED}
    ),
    SessionState.ABORTING: frozenset({SessionState.ABORTED, SessionState.ORPHANED}),
    SessionState.ORPHANED: frozenset({SessionState.ABORTING}),
    SessionState.COMPLETED: frozenset(),
    SessionState.ABORTED: frozenset(),
}


class DispatchPolicy(str, enum.Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


@dataclass
class UploadSession:
    """Server-tracked multipart transaction and the tokens collected for it.

    Workers insert tokens concurrently through ``record``; every access to
    the part mapping goes through the session lock.
    """

    bucket: str
    key: str
    upload_id: str | None = None
    state: SessionState = SessionState.CREATED
    _parts: dict[int, CompletionToken] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def transition(self, target: SessionState) -> None:
        with self._lock:
            if target not in _TRANSITIONS[self.state]:
                raise SessionStateError(
                    f"Illegal session transition {self.state.value} -> {target.value}"
                )
            self.state = target

    def mark_initiated(self, upload_id: str) -> None:
        self.upload_id = upload_id
        self.transition(SessionState.INITIATED)

    def record(self, token: CompletionToken) -> None:
        with self._lock:
            if self.state is not SessionState.PARTS_IN_FLIGHT:
                raise SessionStateError(
                    f"Cannot record part {token.part_number} in state {self.state.value}"
                )
            if token.part_number in self._parts:
                raise SessionStateError(
                    f"Part {token.part_number} was already recorded"
                )
            self._parts[token.part_number] = token

    @property
    def parts(self) -> dict[int, CompletionToken]:
        with self._lock:
            return dict(self._parts)

    def completed_parts(self) -> list[CompletionToken]:
        """Tokens in ascending part_number order, as finalize requires."""
        with self._lock:
            return [self._parts[number] for number in sorted(self._parts)]


class UploadOrchestrator:
    """Drive a source through a multipart session.

    ``max_workers`` is a hard cap on concurrent part uploads; the calling
    thread is one more execution unit on top of it and blocks only while it
    joins the workers. An instance runs one upload at a time.
    """

    def __init__(
        self,
        client: ObjectStoreClient,
        *,
        max_workers: int = 1,
        policy: DispatchPolicy = DispatchPolicy.PARALLEL,
        read_buffer_size: int | None = None,
        abort_on_failure: bool = True,
        min_part_size: int = 0,
        single_shot_threshold: int = 0,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._client = client
        self._max_workers = int(max_workers)
        self._policy = DispatchPolicy(policy)
        self._read_buffer_size = read_buffer_size
        self._abort_on_failure = bool(abort_on_failure)
        self._min_part_size = int(min_part_size)
        self._single_shot_threshold = int(single_shot_threshold)
        self._cancelled = threading.Event()

    @classmethod
    def from_settings(
        cls, client: ObjectStoreClient, settings: "Settings", **overrides: Any
    ) -> "UploadOrchestrator":
        options: dict[str, Any] = {
            "max_workers": settings.UPLOAD_MAX_WORKERS,
            "read_buffer_size": settings.UPLOAD_READ_BUFFER_BYTES,
            "abort_on_failure": settings.UPLOAD_ABORT_ON_FAILURE,
            "min_part_size": settings.UPLOAD_MIN_PART_SIZE_BYTES,
            "single_shot_threshold": settings.UPLOAD_SINGLE_SHOT_THRESHOLD_BYTES,
        }
        options.update(overrides)
        return cls(client, **options)

    @property
    def execution_units(self) -> int:
        """Threads consumed by a parallel upload, the caller included."""
        return self._max_workers + 1

    def cancel(self) -> None:
        """Stop dispatching parts; the running upload aborts its session."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def plan(
        self,
        source: SourceDescriptor,
        *,
        part_count: int | None = None,
        part_size: int | None = None,
    ) -> list[PartRange]:
        if (part_count is None) == (part_size is None):
            raise InvalidPartition("Provide exactly one of part_count or part_size")
        if part_count is not None:
            return plan(source.length, part_count, min_part_size=self._min_part_size)
        return plan_by_part_size(
            source.length, int(part_size), min_part_size=self._min_part_size
        )

    def upload(
        self,
        source: SourceDescriptor,
        *,
        bucket: str,
        key: str,
        part_count: int | None = None,
        part_size: int | None = None,
    ) -> UploadResult:
        """Upload ``source`` to ``bucket/key`` as one object.

        Raises:
            InvalidPartition: Before any store call, if planning fails.
            NoUploadId: If the store opened no session.
            TransportError: If initiate or a part upload fails.
            MissingTag: If the store omitted a part or object etag.
            IncompleteUpload: If the store rejected the completed part list.
            SourceError: If a part range could not be read.
            UploadCancelled: If ``cancel`` was called before or during the
                upload, or the caller was interrupted before it committed.
        """
        try:
            ranges = self.plan(source, part_count=part_count, part_size=part_size)
            if self._cancelled.is_set():
                raise UploadCancelled("Upload cancelled before it started")
            if len(ranges) == 1 or source.length <= self._single_shot_threshold:
                return put_single(
                    self._client,
                    source,
                    bucket=bucket,
                    key=key,
                    buffer_size=self._read_buffer_size,
                )
            return self._upload_parts(source, ranges, bucket=bucket, key=key)
        finally:
            # A cancel() applies to the upload in progress, or to the next one.
            self._cancelled.clear()

    def _upload_parts(
        self,
        source: SourceDescriptor,
        ranges: list[PartRange],
        *,
        bucket: str,
        key: str,
    ) -> UploadResult:
        started = time.perf_counter()
        session = UploadSession(bucket=bucket, key=key)
        self._initiate(session)
        logger.info(
            "upload_started bucket=%s key=%s upload_id=%s parts=%s policy=%s "
            "execution_units=%s",
            bucket,
            key,
            session.upload_id,
            len(ranges),
            self._policy.value,
            self.execution_units if self._policy is DispatchPolicy.PARALLEL else 1,
            extra={
                "extra": {
                    "bucket": bucket,
                    "key": key,
                    "upload_id": session.upload_id,
                    "parts": len(ranges),
                    "size_bytes": source.length,
                    "policy": self._policy.value,
                }
            },
        )

        session.transition(SessionState.PARTS_IN_FLIGHT)
        try:
            if self._policy is DispatchPolicy.SEQUENTIAL:
                failure = self._dispatch_sequential(session, source, ranges)
            else:
                failure = self._dispatch_parallel(session, source, ranges)
        except KeyboardInterrupt:
            self._cancelled.set()
            failure = UploadCancelled("Upload interrupted")
        except Exception as exc:
            failure = exc

        if failure is not None:
            self._abandon(session, failure)
            if isinstance(failure, UploadError):
                failure.session = session
            raise failure

        session.transition(SessionState.ALL_PARTS_DONE)
        try:
            etag = self._finalize(session, len(ranges))
        except KeyboardInterrupt:
            if session.state is not SessionState.ALL_PARTS_DONE:
                raise
            self._cancelled.set()
            cancelled = UploadCancelled("Upload interrupted while completing")
            self._abandon(session, cancelled)
            cancelled.session = session
            raise cancelled from None
        elapsed = time.perf_counter() - started
        logger.info(
            "upload_completed bucket=%s key=%s upload_id=%s parts=%s elapsed=%.2f",
            bucket,
            key,
            session.upload_id,
            len(ranges),
            elapsed,
            extra={
                "extra": {
                    "bucket": bucket,
                    "key": key,
                    "upload_id": session.upload_id,
                    "parts": len(ranges),
                    "elapsed_seconds": round(elapsed, 3),
                }
            },
        )
        return UploadResult(
            bucket=bucket,
            key=key,
            etag=etag,
            size_bytes=source.length,
            part_count=len(ranges),
            elapsed_seconds=elapsed,
            upload_id=session.upload_id,
        )

    def upload_range(
        self,
        source: SourceDescriptor,
        *,
        bucket: str,
        key: str,
        offset: int = 0,
        length: int | None = None,
    ) -> UploadResult:
        """Upload one explicit byte range of ``source`` as a whole object."""
        return put_single(
            self._client,
            source,
            bucket=bucket,
            key=key,
            offset=offset,
            length=length,
            buffer_size=self._read_buffer_size,
        )

    def abort(self, session: UploadSession) -> None:
        """Abort a session left open, e.g. after ``IncompleteUpload``.

        Raises:
            TransportError: If the store refuses the abort.
        """
        session.transition(SessionState.ABORTING)
        try:
            self._client.abort_upload(
                bucket=session.bucket, key=session.key, upload_id=session.upload_id
            )
        except StorageError as exc:
            session.transition(SessionState.ORPHANED)
            raise TransportError(
                f"Abort of upload {session.upload_id} failed: {exc}"
            ) from exc
        session.transition(SessionState.ABORTED)
        SESSIONS.labels(outcome="aborted").inc()

    def _initiate(self, session: UploadSession) -> None:
        try:
            upload_id = self._client.initiate_upload(
                bucket=session.bucket, key=session.key
            )
        except StorageError as exc:
            raise TransportError(f"Failed to initiate upload: {exc}") from exc
        if not upload_id:
            raise NoUploadId(
                f"Store returned no upload id for {session.bucket}/{session.key}"
            )
        session.mark_initiated(upload_id)

    def _run_part(
        self,
        session: UploadSession,
        source: SourceDescriptor,
        part_range: PartRange,
    ) -> CompletionToken:
        if self._cancelled.is_set():
            PARTS.labels(outcome="cancelled").inc()
            raise UploadCancelled(
                f"Part {part_range.part_number} skipped: upload cancelled"
            )
        try:
            reader = open_range(
                source,
                part_range.offset,
                part_range.length,
                buffer_size=self._read_buffer_size,
            )
        except SourceError as exc:
            raise SourceError(
                f"Opening part {part_range.part_number} failed: {exc}",
                part_number=part_range.part_number,
            ) from exc
        with reader:
            token = upload_part(self._client, session, part_range, reader)
        session.record(token)
        return token

    def _dispatch_sequential(
        self,
        session: UploadSession,
        source: SourceDescriptor,
        ranges: list[PartRange],
    ) -> BaseException | None:
        with open_handle(source) as handle:
            for part_range in ranges:
                if self._cancelled.is_set():
                    return UploadCancelled("Upload cancelled")
                reader = ByteRangeReader(
                    handle,
                    part_range.offset,
                    part_range.length,
                    buffer_size=self._read_buffer_size,
                )
                try:
                    session.record(
                        upload_part(self._client, session, part_range, reader)
                    )
                except Exception as exc:
                    self._log_part_failure(session, part_range, exc)
                    return exc
        return None

    def _dispatch_parallel(
        self,
        session: UploadSession,
        source: SourceDescriptor,
        ranges: list[PartRange],
    ) -> BaseException | None:
        failure: BaseException | None = None
        with ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="multiput-part"
        ) as executor:
            futures: dict[Future[CompletionToken], PartRange] = {}
            try:
                for part_range in ranges:
                    future = executor.submit(
                        self._run_part, session, source, part_range
                    )
                    futures[future] = part_range
                for future in as_completed(futures):
                    if future.cancelled():
                        continue
                    exc = future.exception()
                    if exc is None:
                        continue
                    self._log_part_failure(session, futures[future], exc)
                    if failure is None:
                        failure = exc
                        _cancel_pending(futures)
            except KeyboardInterrupt:
                self._cancelled.set()
                _cancel_pending(futures)
                if failure is None:
                    failure = UploadCancelled("Upload interrupted")
        # Leaving the executor joined every worker that had started.
        if failure is None and self._cancelled.is_set():
            failure = UploadCancelled("Upload cancelled")
        return failure

    def _abandon(self, session: UploadSession, failure: BaseException) -> None:
        cancelled = isinstance(failure, UploadCancelled) or self._cancelled.is_set()
        if not (cancelled or self._abort_on_failure):
            session.transition(SessionState.ORPHANED)
            SESSIONS.labels(outcome="orphaned").inc()
            logger.warning(
                "upload_left_open bucket=%s key=%s upload_id=%s parts_uploaded=%s",
                session.bucket,
                session.key,
                session.upload_id,
                len(session.parts),
                extra={"extra": {"upload_id": session.upload_id}},
            )
            return

        try:
            self.abort(session)
        except TransportError as exc:
            SESSIONS.labels(outcome="orphaned").inc()
            logger.warning(
                "upload_abort_failed upload_id=%s error=%s",
                session.upload_id,
                exc,
                extra={"extra": {"upload_id": session.upload_id}},
            )
            return
        logger.info(
            "upload_aborted bucket=%s key=%s upload_id=%s reason=%s",
            session.bucket,
            session.key,
            session.upload_id,
            failure,
            extra={"extra": {"upload_id": session.upload_id}},
        )

    def _finalize(self, session: UploadSession, expected_parts: int) -> str:
        parts = session.completed_parts()
        if len(parts) != expected_parts:
            raise SessionStateError(
                f"Expected {expected_parts} completed parts, collected {len(parts)}"
            )
        try:
            etag = self._client.complete_upload(
                bucket=session.bucket,
                key=session.key,
                upload_id=session.upload_id,
                parts=parts,
            )
        except StorageError as exc:
            session.transition(SessionState.ORPHANED)
            SESSIONS.labels(outcome="orphaned").inc()
            error = IncompleteUpload(
                f"Store rejected completion of upload {session.upload_id}: {exc}",
                upload_id=session.upload_id,
            )
            error.session = session
            raise error from exc

        session.transition(SessionState.COMPLETED)
        SESSIONS.labels(outcome="completed").inc()
        if not etag:
            error = MissingTag(
                f"Store returned no etag for {session.bucket}/{session.key}"
            )
            error.session = session
            raise error
        return etag

    @staticmethod
    def _log_part_failure(
        session: UploadSession, part_range: PartRange, exc: BaseException
    ) -> None:
        logger.warning(
            "part_failed upload_id=%s part_number=%s error=%s",
            session.upload_id,
            part_range.part_number,
            exc,
            extra={
                "extra": {
                    "upload_id": session.upload_id,
                    "part_number": part_range.part_number,
                    "error_type": type(exc).__name__,
                }
            },
        )


def _cancel_pending(futures: dict[Future[CompletionToken], PartRange]) -> None:
    for future in futures:
        future.cancel()
