"""Split a source length into the contiguous byte ranges uploaded as parts."""

from __future__ import annotations

from dataclasses import dataclass

from multiput.services.base import InvalidPartition

# Maximum part number allowed by S3
MAX_PART_COUNT = 10000


@dataclass(frozen=True, slots=True)
class PartRange:
    """One contiguous byte range of the source, uploaded as one part."""

    part_number: int
    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length


def plan(
    total_length: int, part_count: int, *, min_part_size: int = 0
) -> list[PartRange]:
    """Compute the ordered ranges covering ``total_length`` bytes.

    Every part gets ``total_length // part_count`` bytes except the last one,
    which also absorbs the remainder and is therefore never smaller than the
    others.

    Args:
        total_length: Size of the source in bytes.
        part_count: Number of parts to produce.
        min_part_size: Smallest size accepted for a non-final part; 0 disables
            the check.

    Raises:
        InvalidPartition: If the source cannot be split that way.
    """
    if total_length <= 0:
        raise InvalidPartition("total_length must be positive")
    if part_count <= 0:
        raise InvalidPartition("part_count must be positive")
    if part_count > total_length:
        raise InvalidPartition(
            f"part_count {part_count} exceeds total_length {total_length}; "
            "parts cannot be empty"
        )
    if part_count > MAX_PART_COUNT:
        raise InvalidPartition(
            f"part_count {part_count} exceeds the store limit of {MAX_PART_COUNT}"
        )

    base = total_length // part_count
    if part_count > 1 and min_part_size > 0 and base < min_part_size:
        raise InvalidPartition(
            f"part size {base} is below the minimum of {min_part_size} bytes"
        )

    ranges: list[PartRange] = []
    offset = 0
    for index in range(part_count):
        length = base if index < part_count - 1 else base + total_length % part_count
        ranges.append(PartRange(part_number=index + 1, offset=offset, length=length))
        offset += length
    return ranges


def plan_by_part_size(
    total_length: int, part_size: int, *, min_part_size: int = 0
) -> list[PartRange]:
    """Plan with a nominal part size instead of a part count.

    The trailing bytes that do not fill a whole part are folded into the last
    part rather than uploaded as a short extra part.
    """
    if part_size <= 0:
        raise InvalidPartition("part_size must be positive")
    part_count = max(1, total_length // part_size)
    return plan(total_length, part_count, min_part_size=min_part_size)
