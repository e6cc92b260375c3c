"""
Gapless partitioning of the image from classified descriptor slots.

Claimed ranges (allocated text, slack, freed blocks) are sorted and walked
with a coverage cursor; whatever lies between them becomes an ``unknown``
segment, so the result covers every byte from the origin to the end of the
image. Overlaps are recorded as findings, never merged away.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence

from .classify import Alloc, Classification, Freed
from .errors import (
    FREED_PAST_END,
    OVERLAPPING_ALLOCATIONS,
    Finding,
    OverlappingAllocations,
)

LOG = logging.getLogger(__name__)

ALLOC = "alloc"
SLACK = "slack"
FREED = "freed"
UNKNOWN = "unknown"

SEGMENT_KINDS = (ALLOC, SLACK, FREED, UNKNOWN)


@dataclass(frozen=True)
class Segment:
    start: int
    end: int
    kind: str
    data: bytes = field(default=b"", repr=False)
    slot: int | None = None
    nominal_end: int | None = None

    @property
    def length(self) -> int:
        return self.end - self.start

    @property
    def truncated(self) -> bool:
        return self.nominal_end is not None and self.nominal_end > self.end


def tile(
    spans: Iterable,
    *,
    origin: int,
    limit: int,
    make_gap: Callable[[int, int], object],
) -> tuple[list, list]:
    """
    Walk pre-sorted spans and fill every gap between them.

    Spans only need ``start`` and ``end`` attributes. Returns the tiled
    sequence and a list of ``(span, cursor)`` pairs for spans that started
    before the coverage cursor had reached them.
    """

    tiled = []
    overlaps = []
    cursor = origin
    for span in spans:
        if span.start > cursor:
            tiled.append(make_gap(cursor, span.start))
        elif span.start < cursor:
            overlaps.append((span, cursor))
        tiled.append(span)
        cursor = max(cursor, span.end)
    if cursor < limit:
        tiled.append(make_gap(cursor, limit))
    return tiled, overlaps


@dataclass
class SegmentMap:
    origin: int
    image_length: int
    segments: list[Segment]
    findings: list[Finding]

    def by_kind(self, kind: str) -> list[Segment]:
        return [seg for seg in self.segments if seg.kind == kind]

    @property
    def overlaps(self) -> list[Finding]:
        return [f for f in self.findings if f.code == OVERLAPPING_ALLOCATIONS]

    def raise_for_overlaps(self) -> None:
        if self.overlaps:
            raise OverlappingAllocations(self.overlaps)

    def overlay(self) -> dict[int, int]:
        """Bytes recovered from non-allocated space, keyed by image offset."""

        recovered: dict[int, int] = {}
        for seg in self.segments:
            if seg.kind not in (SLACK, FREED):
                continue
            for idx, byte in enumerate(seg.data):
                recovered[seg.start + idx] = byte
        return recovered

    def summary(self) -> dict[str, int]:
        totals = {kind: 0 for kind in SEGMENT_KINDS}
        for seg in self.segments:
            totals[seg.kind] += seg.length
        return totals


def _claimed_ranges(
    slots: Sequence[Classification], image: bytes, findings: list[Finding]
) -> list[Segment]:
    image_length = len(image)
    claimed: list[Segment] = []
    for index, shape in enumerate(slots):
        if isinstance(shape, Alloc):
            text_end = shape.ptr + shape.length
            claimed.append(
                Segment(
                    start=shape.ptr,
                    end=text_end,
                    kind=ALLOC,
                    data=bytes(image[shape.ptr : text_end]),
                    slot=index,
                )
            )
            if shape.length < shape.capacity:
                cap_end = shape.ptr + shape.capacity
                claimed.append(
                    Segment(
                        start=text_end,
                        end=cap_end,
                        kind=SLACK,
                        data=bytes(image[text_end:cap_end]),
                        slot=index,
                    )
                )
        elif isinstance(shape, Freed):
            nominal_end = shape.ptr + shape.capacity
            start = min(shape.ptr, image_length)
            end = min(nominal_end, image_length)
            if nominal_end > image_length:
                message = (
                    f"freed slot {index} claims [{shape.ptr}, {nominal_end}) "
                    f"past image end {image_length}"
                )
                LOG.warning("%s", message)
                findings.append(Finding(FREED_PAST_END, message, shape.ptr))
            if end > start:
                claimed.append(
                    Segment(
                        start=start,
                        end=end,
                        kind=FREED,
                        data=bytes(image[start:end]),
                        slot=index,
                        nominal_end=nominal_end if nominal_end > end else None,
                    )
                )
    return claimed


def segment_allocations(
    slots: Sequence[Classification],
    image: bytes,
    *,
    origin: int = 0,
) -> SegmentMap:
    """
    Partition ``image[origin:]`` into typed segments from the used slots.

    ``slots`` should be the used prefix returned by the trimmer. Freed
    blocks reaching past the image end are clipped and flagged.
    """

    findings: list[Finding] = []
    claimed = _claimed_ranges(slots, image, findings)
    claimed.sort(key=lambda seg: (seg.start, seg.end))

    def unknown(start: int, end: int) -> Segment:
        return Segment(start=start, end=end, kind=UNKNOWN, data=bytes(image[start:end]))

    segments, overlaps = tile(
        claimed, origin=origin, limit=len(image), make_gap=unknown
    )
    for seg, cursor in overlaps:
        message = (
            f"{seg.kind} segment [{seg.start}, {seg.end}) of slot {seg.slot} "
            f"starts before covered offset {cursor}"
        )
        LOG.warning("%s", message)
        findings.append(Finding(OVERLAPPING_ALLOCATIONS, message, seg.start))

    return SegmentMap(
        origin=origin,
        image_length=len(image),
        segments=segments,
        findings=findings,
    )


__all__ = [
    "ALLOC",
    "SLACK",
    "FREED",
    "UNKNOWN",
    "SEGMENT_KINDS",
    "Segment",
    "SegmentMap",
    "segment_allocations",
    "tile",
]
