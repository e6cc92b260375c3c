"""End-to-end reconstruction of a heap capture."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from .classify import Classification, check_header_region, classify_slots, trim_unused
from .errors import Finding
from .freelist import FreeListWalk, walk_free_lists
from .layout import DEFAULT_LAYOUT, HeaderRegion, LayoutConfig, decode_header
from .residual import ResidualCheck, ResidualExpectation, check_residuals
from .segments import SegmentMap, segment_allocations

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reconstruction:
    image: bytes
    header: HeaderRegion
    walk: FreeListWalk
    slots: list[Classification]
    used_count: int
    segment_map: SegmentMap

    @property
    def layout(self) -> LayoutConfig:
        return self.header.layout

    @property
    def used_slots(self) -> Sequence[Classification]:
        return self.slots[: self.used_count]

    @property
    def findings(self) -> list[Finding]:
        return self.segment_map.findings

    def check_residuals(
        self, expectations: Iterable[ResidualExpectation]
    ) -> list[ResidualCheck]:
        return check_residuals(self.segment_map.overlay(), expectations, self.image)


def reconstruct(
    image: bytes,
    layout: LayoutConfig = DEFAULT_LAYOUT,
    *,
    lenient_sentinel: bool = False,
    origin: int = 0,
) -> Reconstruction:
    """
    Decode, walk, classify, trim and segment ``image``.

    ``origin`` is where the coverage cursor starts. With the default of 0 the
    header region shows up as the first unknown segment; pass
    ``layout.data_base`` to tile only the data area.
    """

    header = decode_header(image, layout)
    check_header_region(header)
    walk = walk_free_lists(header)
    slots = classify_slots(
        header, walk, len(image), lenient_sentinel=lenient_sentinel
    )
    used_count = trim_unused(slots, layout)
    segment_map = segment_allocations(slots[:used_count], image, origin=origin)
    LOG.debug(
        "%d segment(s), %d free slot(s), %d finding(s)",
        len(segment_map.segments),
        walk.free_count,
        len(segment_map.findings),
    )
    return Reconstruction(
        image=bytes(image),
        header=header,
        walk=walk,
        slots=slots,
        used_count=used_count,
        segment_map=segment_map,
    )


__all__ = ["Reconstruction", "reconstruct"]
