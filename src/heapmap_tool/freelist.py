"""Free-list traversal over a decoded header region."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

from .errors import DuplicateFreeSlot
from .layout import HeaderRegion

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class FreeListWalk:
    free: Tuple[bool, ...]
    chains: Tuple[Tuple[int, ...], ...]

    @property
    def free_count(self) -> int:
        return sum(self.free)

    def chain_for_root(self, root: int) -> Tuple[int, ...]:
        return self.chains[root]


def walk_free_lists(header: HeaderRegion) -> FreeListWalk:
    """
    Follow every free-list root and flag the slots it reaches.

    Each root is walked on its own, in array order. A zero pointer ends a
    chain; otherwise the pointer names a descriptor slot whose ``write`` word
    holds the next link. Reaching a slot that is already flagged, whether in
    the same chain or an earlier one, raises ``DuplicateFreeSlot``; the visited
    set is bounded by the table size so the walk always terminates.
    """

    layout = header.layout
    free = [False] * header.slot_count
    chains: list[tuple[int, ...]] = []

    for root, pointer in enumerate(header.roots):
        chain: list[int] = []
        while pointer:
            index = layout.slot_index(pointer)
            if free[index]:
                raise DuplicateFreeSlot(index, root)
            free[index] = True
            chain.append(index)
            pointer = header.descriptors[index].write
        if chain:
            LOG.debug("free list root %d: %d slot(s)", root, len(chain))
        chains.append(tuple(chain))

    return FreeListWalk(free=tuple(free), chains=tuple(chains))


__all__ = ["FreeListWalk", "walk_free_lists"]
