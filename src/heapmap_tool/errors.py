"""
Error and finding types shared by the reconstruction pipeline.

Hard errors are raised as ``HeapImageError`` subclasses and mean the image
does not follow the allocator's binary layout. Soft findings are collected
as ``Finding`` records next to successful output.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


class HeapImageError(ValueError):
    """Base class for hard reconstruction errors."""


class TruncatedImage(HeapImageError):
    def __init__(self, length: int, required: int) -> None:
        super().__init__(
            f"image is {length} bytes; header region needs at least {required}"
        )
        self.length = length
        self.required = required


class ImageTooLarge(HeapImageError):
    def __init__(self, length: int, limit: int = 0xFFFF) -> None:
        super().__init__(f"image is {length} bytes; 16-bit offsets allow {limit}")
        self.length = length
        self.limit = limit


class InvalidSlotPointer(HeapImageError):
    def __init__(self, pointer: int, reason: str) -> None:
        super().__init__(f"slot pointer 0x{pointer:04x} is invalid: {reason}")
        self.pointer = pointer
        self.reason = reason


class DuplicateFreeSlot(HeapImageError):
    def __init__(self, index: int, root: int) -> None:
        super().__init__(
            f"descriptor slot {index} referenced multiple times "
            f"(while walking free list root {root})"
        )
        self.index = index
        self.root = root


class CorruptHeaderRegion(HeapImageError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"corrupt header region: {reason}")
        self.reason = reason


class InvalidDescriptor(HeapImageError):
    def __init__(self, index: int, fields: dict[str, int], is_free: bool) -> None:
        shown = ", ".join(f"{name}=0x{value:04x}" for name, value in fields.items())
        state = "free" if is_free else "not free"
        super().__init__(f"descriptor slot {index} ({state}) matches no shape: {shown}")
        self.index = index
        self.fields = dict(fields)
        self.is_free = is_free


class UnusedWithinLiveRange(HeapImageError):
    def __init__(self, index: int, used_count: int) -> None:
        super().__init__(
            f"slot {index} is unused but lies inside the used prefix "
            f"of {used_count} slots"
        )
        self.index = index
        self.used_count = used_count


class OverlappingAllocations(HeapImageError):
    def __init__(self, findings: Sequence["Finding"]) -> None:
        first = findings[0]
        super().__init__(
            f"{len(findings)} overlapping allocation range(s); first: {first.message}"
        )
        self.findings = tuple(findings)


class ResidualMismatch(HeapImageError):
    def __init__(
        self,
        offset: int,
        index: int,
        expected: bytes,
        raw: bytes,
        overlay: tuple[int | None, ...],
    ) -> None:
        shown = bytes(b if b is not None else ord("?") for b in overlay)
        super().__init__(
            f"residual text at offset {offset} differs at index {index}: "
            f"expected {expected!r}, image {raw!r}, overlay {shown!r}"
        )
        self.offset = offset
        self.index = index
        self.expected = expected
        self.raw = raw
        self.overlay = overlay


NOT_FOUND = "not-found"
EMPTY_STRING = "empty-string"
OVERLAPPING_ALLOCATIONS = "overlapping-allocations"
OVERLAPPING_LABELS = "overlapping-labels"
FREED_PAST_END = "freed-past-end"


@dataclass(frozen=True)
class Finding:
    code: str
    message: str
    offset: int | None = None

    def to_json(self) -> dict:
        return {"code": self.code, "message": self.message, "offset": self.offset}


__all__ = [
    "HeapImageError",
    "TruncatedImage",
    "ImageTooLarge",
    "InvalidSlotPointer",
    "DuplicateFreeSlot",
    "CorruptHeaderRegion",
    "InvalidDescriptor",
    "UnusedWithinLiveRange",
    "OverlappingAllocations",
    "ResidualMismatch",
    "Finding",
    "NOT_FOUND",
    "EMPTY_STRING",
    "OVERLAPPING_ALLOCATIONS",
    "OVERLAPPING_LABELS",
    "FREED_PAST_END",
]
