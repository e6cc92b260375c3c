"""
Pattern evidence: known strings and 16-bit back-references.

Candidate strings are located by exact byte match (overlapping matches
included). Every match offset is then encoded as a little-endian 16-bit
word and searched across the whole image; each hit is a probable pointer to
that string. The resulting labels are tiled over ``[0, len(image))`` with the
same cursor walk used for allocation segments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from .errors import (
    EMPTY_STRING,
    NOT_FOUND,
    OVERLAPPING_LABELS,
    Finding,
    ImageTooLarge,
)
from .layout import MAX_IMAGE_SIZE
from .segments import tile

LOG = logging.getLogger(__name__)

STRING = "string"
POINTER = "pointer"
UNKNOWN = "unknown"


@dataclass(frozen=True)
class Label:
    offset: int
    length: int
    kind: str
    data: bytes = field(default=b"", repr=False)
    target: int | None = None

    @property
    def start(self) -> int:
        return self.offset

    @property
    def end(self) -> int:
        return self.offset + self.length

    @property
    def description(self) -> str:
        if self.kind == POINTER:
            return f"pointer->{self.target}"
        return f"{self.kind}:{self.data.decode('latin-1')}"


def find_occurrences(haystack: bytes, needle: bytes) -> list[int]:
    """Every offset where ``needle`` starts, overlapping matches included."""

    hits: list[int] = []
    start = 0
    while True:
        idx = haystack.find(needle, start)
        if idx == -1:
            return hits
        hits.append(idx)
        start = idx + 1


@dataclass
class Correlation:
    labels: list[Label]
    findings: list[Finding]
    matches: dict[bytes, list[int]]

    @property
    def not_found(self) -> list[bytes]:
        return [s for s, offsets in self.matches.items() if not offsets]


def correlate(image: bytes, strings: Iterable[bytes]) -> Correlation:
    """Find string labels and the pointer labels that refer to them."""

    if len(image) > MAX_IMAGE_SIZE:
        raise ImageTooLarge(len(image))

    labels: list[Label] = []
    findings: list[Finding] = []
    matches: dict[bytes, list[int]] = {}
    targets: list[int] = []
    seen_targets: set[int] = set()

    for needle in strings:
        if not needle:
            LOG.warning("skipping empty candidate string")
            findings.append(Finding(EMPTY_STRING, "empty candidate string skipped"))
            continue
        if needle in matches:
            continue
        offsets = find_occurrences(image, needle)
        matches[needle] = offsets
        if not offsets:
            message = f"not found: {needle!r}"
            LOG.warning("%s", message)
            findings.append(Finding(NOT_FOUND, message))
            continue
        for offset in offsets:
            labels.append(
                Label(offset=offset, length=len(needle), kind=STRING, data=needle)
            )
            if offset not in seen_targets:
                seen_targets.add(offset)
                targets.append(offset)

    for target in targets:
        word = target.to_bytes(2, "little")
        for offset in find_occurrences(image, word):
            labels.append(
                Label(offset=offset, length=2, kind=POINTER, data=word, target=target)
            )

    LOG.debug(
        "%d string label(s), %d pointer label(s)",
        sum(1 for label in labels if label.kind == STRING),
        sum(1 for label in labels if label.kind == POINTER),
    )
    return Correlation(labels=labels, findings=findings, matches=matches)


def label_sort_key(label: Label) -> tuple[int, int, str]:
    """Longest label first at a shared offset, then by description."""

    return (label.offset, -label.length, label.description)


@dataclass
class LabelMap:
    image_length: int
    labels: list[Label]
    findings: list[Finding]

    def by_kind(self, kind: str) -> list[Label]:
        return [label for label in self.labels if label.kind == kind]

    @property
    def overlaps(self) -> list[Finding]:
        return [f for f in self.findings if f.code == OVERLAPPING_LABELS]


def segment_labels(labels: Sequence[Label], image: bytes) -> LabelMap:
    """Tile ``labels`` over the whole image, filling gaps with unknowns."""

    ordered = sorted(labels, key=label_sort_key)

    def unknown(start: int, end: int) -> Label:
        return Label(
            offset=start, length=end - start, kind=UNKNOWN, data=bytes(image[start:end])
        )

    tiled, overlaps = tile(ordered, origin=0, limit=len(image), make_gap=unknown)

    findings: list[Finding] = []
    for label, cursor in overlaps:
        message = (
            f"overlapping labels: {label.description} at {label.offset} "
            f"(len {label.length}) starts before covered offset {cursor}"
        )
        LOG.warning("%s", message)
        findings.append(Finding(OVERLAPPING_LABELS, message, label.offset))

    return LabelMap(image_length=len(image), labels=tiled, findings=findings)


def label_image(image: bytes, strings: Iterable[bytes]) -> LabelMap:
    """Run the correlator and the label segmenter in one step."""

    correlation = correlate(image, strings)
    label_map = segment_labels(correlation.labels, image)
    label_map.findings[:0] = correlation.findings
    return label_map


__all__ = [
    "STRING",
    "POINTER",
    "UNKNOWN",
    "Label",
    "Correlation",
    "LabelMap",
    "find_occurrences",
    "correlate",
    "label_sort_key",
    "segment_labels",
    "label_image",
]
