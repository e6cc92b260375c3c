import pytest

from conftest import alloc_fields, build_image
from heapmap_tool.classify import Alloc, Freed
from heapmap_tool.errors import FREED_PAST_END, OverlappingAllocations
from heapmap_tool.layout import DEFAULT_LAYOUT, LAYOUT_PRESETS
from heapmap_tool.reconstruct import reconstruct
from heapmap_tool.segments import (
    ALLOC,
    FREED,
    SLACK,
    UNKNOWN,
    Segment,
    segment_allocations,
    tile,
)

LAYOUT = DEFAULT_LAYOUT
BASE = LAYOUT.data_base


def _spans(segment_map) -> list[tuple[int, int, str]]:
    return [(seg.start, seg.end, seg.kind) for seg in segment_map.segments]


def _assert_tiles(segment_map, start: int, end: int) -> None:
    segments = segment_map.segments
    assert segments[0].start == start
    assert segments[-1].end == end
    for left, right in zip(segments, segments[1:]):
        assert left.end == right.start


def test_single_allocation_scenario() -> None:
    image = bytes(LAYOUT.data_end)
    segment_map = segment_allocations([Alloc(ptr=6144, length=5, capacity=16)], image)
    assert _spans(segment_map) == [
        (0, 6144, UNKNOWN),
        (6144, 6149, ALLOC),
        (6149, 6160, SLACK),
        (6160, 38912, UNKNOWN),
    ]
    assert segment_map.findings == []


def test_known_allocations_round_trip() -> None:
    layout = LAYOUT_PRESETS["compact"]
    base = layout.data_base
    allocations = [(base + 64, 10, 16), (base, 32, 32), (base + 128, 1, 64)]
    image = build_image(
        layout,
        descriptors={
            index: alloc_fields(start, length, capacity)
            for index, (start, length, capacity) in enumerate(allocations)
        },
        data={start: b"x" * length for start, length, _ in allocations},
    )

    recon = reconstruct(image, layout)

    assert recon.used_count == len(allocations)
    assert recon.walk.free_count == 0
    assert list(recon.used_slots) == [
        Alloc(ptr=s, length=n, capacity=c) for s, n, c in allocations
    ]
    segment_map = recon.segment_map
    assert _spans(segment_map) == [
        (0, base, UNKNOWN),
        (base, base + 32, ALLOC),
        (base + 32, base + 64, UNKNOWN),
        (base + 64, base + 74, ALLOC),
        (base + 74, base + 80, SLACK),
        (base + 80, base + 128, UNKNOWN),
        (base + 128, base + 129, ALLOC),
        (base + 129, base + 192, SLACK),
        (base + 192, layout.data_end, UNKNOWN),
    ]
    _assert_tiles(segment_map, 0, layout.data_end)
    assert segment_map.by_kind(ALLOC)[0].data == b"x" * 32
    assert segment_map.findings == []


def test_origin_at_data_base_tiles_data_area_only() -> None:
    image = bytes(LAYOUT.data_end)
    segment_map = segment_allocations(
        [Alloc(ptr=BASE + 16, length=16, capacity=16)], image, origin=BASE
    )
    assert _spans(segment_map) == [
        (BASE, BASE + 16, UNKNOWN),
        (BASE + 16, BASE + 32, ALLOC),
        (BASE + 32, LAYOUT.data_end, UNKNOWN),
    ]
    _assert_tiles(segment_map, BASE, LAYOUT.data_end)


def test_no_slots_yields_one_unknown_segment() -> None:
    image = bytes(LAYOUT.data_end)
    segment_map = segment_allocations([], image, origin=BASE)
    assert _spans(segment_map) == [(BASE, LAYOUT.data_end, UNKNOWN)]


def test_freed_block_and_truncation() -> None:
    image = bytearray(BASE + 40)
    image[BASE + 32 : BASE + 40] = b"leftover"
    slots = [
        Alloc(ptr=BASE, length=8, capacity=8),
        Freed(next=0, ptr=BASE + 32, capacity=32),
    ]
    segment_map = segment_allocations(slots, bytes(image), origin=BASE)

    assert _spans(segment_map) == [
        (BASE, BASE + 8, ALLOC),
        (BASE + 8, BASE + 32, UNKNOWN),
        (BASE + 32, BASE + 40, FREED),
    ]
    freed = segment_map.by_kind(FREED)[0]
    assert freed.truncated
    assert freed.nominal_end == BASE + 64
    assert freed.data == b"leftover"
    assert [f.code for f in segment_map.findings] == [FREED_PAST_END]
    _assert_tiles(segment_map, BASE, len(image))


def test_freed_block_entirely_past_image_end_is_dropped() -> None:
    image = bytes(BASE + 8)
    slots = [Freed(next=0, ptr=BASE + 16, capacity=16)]
    segment_map = segment_allocations(slots, image, origin=BASE)
    assert _spans(segment_map) == [(BASE, BASE + 8, UNKNOWN)]
    assert [f.code for f in segment_map.findings] == [FREED_PAST_END]


def test_overlap_is_reported_not_merged() -> None:
    image = bytes(LAYOUT.data_end)
    slots = [
        Alloc(ptr=BASE, length=16, capacity=16),
        Freed(next=0, ptr=BASE + 8, capacity=8),
    ]
    segment_map = segment_allocations(slots, image, origin=BASE)

    assert _spans(segment_map) == [
        (BASE, BASE + 16, ALLOC),
        (BASE + 8, BASE + 16, FREED),
        (BASE + 16, LAYOUT.data_end, UNKNOWN),
    ]
    assert len(segment_map.overlaps) == 1
    assert segment_map.overlaps[0].offset == BASE + 8
    with pytest.raises(OverlappingAllocations) as excinfo:
        segment_map.raise_for_overlaps()
    assert len(excinfo.value.findings) == 1


def test_overlay_holds_only_non_allocated_bytes() -> None:
    image = bytearray(LAYOUT.data_end)
    image[BASE : BASE + 8] = b"live!old"
    image[BASE + 8 : BASE + 12] = b"gone"
    slots = [
        Alloc(ptr=BASE, length=5, capacity=8),
        Freed(next=0, ptr=BASE + 8, capacity=4),
    ]
    overlay = segment_allocations(slots, bytes(image)).overlay()

    assert BASE not in overlay
    assert bytes(overlay[BASE + i] for i in range(5, 12)) == b"oldgone"
    assert len(overlay) == 7


def test_summary_counts_bytes_per_kind() -> None:
    image = bytes(LAYOUT.data_end)
    segment_map = segment_allocations([Alloc(ptr=BASE, length=3, capacity=4)], image)
    totals = segment_map.summary()
    assert totals[ALLOC] == 3
    assert totals[SLACK] == 1
    assert totals[FREED] == 0
    assert sum(totals.values()) == LAYOUT.data_end


def test_tile_fills_gaps_between_generic_spans() -> None:
    spans = [Segment(2, 4, ALLOC), Segment(6, 7, ALLOC)]
    tiled, overlaps = tile(
        spans, origin=0, limit=9, make_gap=lambda s, e: Segment(s, e, UNKNOWN)
    )
    assert [(s.start, s.end, s.kind) for s in tiled] == [
        (0, 2, UNKNOWN),
        (2, 4, ALLOC),
        (4, 6, UNKNOWN),
        (6, 7, ALLOC),
        (7, 9, UNKNOWN),
    ]
    assert overlaps == []
