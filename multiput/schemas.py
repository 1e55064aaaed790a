"""Pydantic models validating the command-line surface.

Arguments are parsed by argparse and then checked here, so range and
exclusivity rules live in one place instead of being scattered over parser
callbacks.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from multiput.services.partition import MAX_PART_COUNT


class StoreOptions(BaseModel):
    """Connection options injected into the object store client."""

    region: str = Field(min_length=1)
    profile: str | None = None
    endpoint_url: str | None = None


class UploadTarget(BaseModel):
    path: str = Field(min_length=1)
    bucket: str = Field(min_length=1, max_length=255)
    key: str = Field(min_length=1, max_length=1024)


class MultipartUploadRequest(UploadTarget):
    """Options for splitting a file into parts and committing them."""

    part_count: int | None = Field(default=None, ge=1, le=MAX_PART_COUNT)
    part_size: int | None = Field(default=None, ge=1)
    workers: int = Field(default=4, ge=1)
    sequential: bool = False
    buffer_size: int | None = Field(default=None, ge=1)
    min_part_size: int = Field(default=0, ge=0)
    abort_on_failure: bool = True

    @model_validator(mode="after")
    def _check_sizing(self) -> "MultipartUploadRequest":
        if (self.part_count is None) == (self.part_size is None):
            raise ValueError("exactly one of part_count or part_size is required")
        return self


class ChunkUploadRequest(UploadTarget):
    """Options for uploading one byte range of a file as a whole object."""

    offset: int = Field(default=0, ge=0)
    # 0 uploads everything from offset to the end of the file.
    length: int = Field(default=0, ge=0)
    buffer_size: int | None = Field(default=None, ge=1)
