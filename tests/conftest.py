from __future__ import annotations

import importlib.util
import struct
import sys
from pathlib import Path
from typing import Mapping


def repo_src_path() -> Path:
    """Return the repository's ``src`` directory."""

    return Path(__file__).resolve().parents[1] / "src"


def _ensure_repo_on_path() -> None:
    if importlib.util.find_spec("heapmap_tool") is None:
        sys.path.insert(0, str(repo_src_path()))


_ensure_repo_on_path()

from heapmap_tool.layout import DEFAULT_LAYOUT, LayoutConfig  # noqa: E402


def build_image(
    layout: LayoutConfig = DEFAULT_LAYOUT,
    *,
    descriptors: Mapping[int, tuple[int, int, int, int]] | None = None,
    roots: Mapping[int, int] | None = None,
    discriminant: int | None = None,
    data: Mapping[int, bytes] | None = None,
    length: int | None = None,
) -> bytes:
    """
    Build a synthetic heap image.

    ``descriptors`` maps slot index to ``(write, read, start, end)``;
    ``roots`` maps root index to a slot pointer. The discriminant defaults to
    the table offset so the header region passes its checks.
    """

    size = layout.data_end if length is None else length
    image = bytearray(max(size, layout.header_size))
    for root, pointer in (roots or {}).items():
        struct.pack_into("<H", image, 2 * root, pointer)
    struct.pack_into(
        "<H",
        image,
        layout.discriminant_offset,
        layout.table_offset if discriminant is None else discriminant,
    )
    for index, fields in (descriptors or {}).items():
        struct.pack_into("<4H", image, layout.slot_offset(index), *fields)
    for offset, chunk in (data or {}).items():
        image[offset : offset + len(chunk)] = chunk
    return bytes(image[:size])


def alloc_fields(start: int, length: int, capacity: int, read: int | None = None):
    """Descriptor words for a live block."""

    return (start + length, start if read is None else read, start, start + capacity)


def sentinel_fields(layout: LayoutConfig, next_ptr: int = 0):
    base = layout.data_base
    return (next_ptr, base, base, base)
