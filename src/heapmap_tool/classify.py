"""
Descriptor classification against the allocator's structural invariants.

Every slot is one of three shapes:

* ``Alloc``  - a live block, ``start <= read <= write <= end``.
* ``Freed``  - a block on a free list; ``write`` is the next free link.
* ``Unused`` - a slot never handed out. Either the sentinel shape
  (``start == end == data_base``) or an all-zero pristine slot that no free list reaches.

Capacities are powers of two and every block lies inside the data area.
A slot matching none of the shapes is a hard error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Union

from .errors import CorruptHeaderRegion, InvalidDescriptor, UnusedWithinLiveRange
from .freelist import FreeListWalk
from .layout import HeaderRegion, LayoutConfig, RawDescriptor

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class Alloc:
    ptr: int
    length: int
    capacity: int

    kind = "alloc"

    @property
    def slack(self) -> int:
        return self.capacity - self.length


@dataclass(frozen=True)
class Freed:
    next: int
    ptr: int
    capacity: int

    kind = "freed"


@dataclass(frozen=True)
class Unused:
    next: int

    kind = "unused"


Classification = Union[Alloc, Freed, Unused]


def is_power_of_two(value: int) -> bool:
    return value > 0 and value & (value - 1) == 0


def _in_data_area(desc: RawDescriptor, layout: LayoutConfig) -> bool:
    return (
        layout.data_base <= desc.start <= desc.end <= layout.data_end
        and is_power_of_two(desc.end - desc.start)
    )


def classify_descriptor(
    desc: RawDescriptor,
    is_free: bool,
    image_length: int,
    layout: LayoutConfig,
    *,
    lenient_sentinel: bool = False,
) -> Classification | None:
    """Return the shape ``desc`` matches, or ``None`` if it matches none."""

    base = layout.data_base

    if desc.is_zero and not is_free:
        return Unused(next=0)

    if desc.start == base and desc.end == base:
        accepted = (base, 0) if lenient_sentinel else (base,)
        if desc.read in accepted:
            return Unused(next=desc.write)

    if not _in_data_area(desc, layout):
        return None

    if is_free:
        if desc.read in (base, 0):
            return Freed(next=desc.write, ptr=desc.start, capacity=desc.end - desc.start)
        return None

    if (
        desc.end <= image_length
        and desc.start <= desc.read <= desc.write <= desc.end
    ):
        return Alloc(
            ptr=desc.start,
            length=desc.write - desc.start,
            capacity=desc.end - desc.start,
        )
    return None


def check_header_region(header: HeaderRegion) -> None:
    """Assert the region-wide invariants: discriminant and zero padding."""

    layout = header.layout
    if header.discriminant != layout.table_offset:
        raise CorruptHeaderRegion(
            f"discriminant is 0x{header.discriminant:04x}, "
            f"expected table offset 0x{layout.table_offset:04x}"
        )
    if any(header.padding):
        first = next(idx for idx, byte in enumerate(header.padding) if byte)
        raise CorruptHeaderRegion(
            f"padding byte at offset {layout.table_end + first} is "
            f"0x{header.padding[first]:02x}, expected zero"
        )


def classify_slots(
    header: HeaderRegion,
    walk: FreeListWalk,
    image_length: int,
    *,
    lenient_sentinel: bool = False,
) -> list[Classification]:
    slots: list[Classification] = []
    for desc, is_free in zip(header.descriptors, walk.free):
        shape = classify_descriptor(
            desc,
            is_free,
            image_length,
            header.layout,
            lenient_sentinel=lenient_sentinel,
        )
        if shape is None:
            raise InvalidDescriptor(desc.index, desc.fields, is_free)
        slots.append(shape)
    return slots


def trim_unused(slots: Sequence[Classification], layout: LayoutConfig) -> int:
    """
    Return how many leading slots were ever used.

    Trimming starts only when the last slot is ``Unused`` with a zero link.
    Walking backward, an ``Unused`` predecessor at index ``i`` extends the
    trailing run when its link is ``slot_offset(i + 1)``, or zero while the
    run is still pristine. Any ``Unused`` slot left inside the used prefix
    raises ``UnusedWithinLiveRange``.
    """

    used = len(slots)
    last = slots[-1] if slots else None
    if isinstance(last, Unused) and last.next == 0:
        used -= 1
        threaded = False
        while used > 0:
            prev = slots[used - 1]
            if not isinstance(prev, Unused):
                break
            if prev.next == layout.slot_offset(used):
                threaded = True
            elif prev.next != 0 or threaded:
                break
            used -= 1

    for index in range(used):
        if isinstance(slots[index], Unused):
            raise UnusedWithinLiveRange(index, used)

    LOG.debug("used prefix: %d of %d slot(s)", used, len(slots))
    return used


__all__ = [
    "Alloc",
    "Freed",
    "Unused",
    "Classification",
    "is_power_of_two",
    "classify_descriptor",
    "check_header_region",
    "classify_slots",
    "trim_unused",
]
