from .base import (
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
from .orchestrator import (
    DispatchPolicy,
    SessionState,
    UploadOrchestrator,
    UploadSession,
)
from .part_worker import upload_part
from .partition import MAX_PART_COUNT, PartRange, plan, plan_by_part_size
from .range_reader import (
    DEFAULT_BUFFER_SIZE,
    ByteRangeReader,
    SourceDescriptor,
    open_range,
)
from .single_shot import put_single

__all__ = [
    "UploadOrchestrator",
    "UploadSession",
    "SessionState",
    "DispatchPolicy",
    "UploadResult",
    "upload_part",
    "put_single",
    "plan",
    "plan_by_part_size",
    "PartRange",
    "MAX_PART_COUNT",
    "SourceDescriptor",
    "ByteRangeReader",
    "open_range",
    "DEFAULT_BUFFER_SIZE",
    "UploadError",
    "InvalidPartition",
    "SourceError",
    "TransportError",
    "MissingTag",
    "NoUploadId",
    "IncompleteUpload",
    "UploadCancelled",
    "SessionStateError",
]
