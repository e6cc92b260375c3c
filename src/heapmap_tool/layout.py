"""
Header region layout and decoder for fixed-size heap captures.

The captured image starts with a header region: an array of free-list roots
(one per power-of-two size class plus one sentinel), a discriminant word that
should hold the byte offset of the descriptor table, the descriptor table
itself and zero padding up to the data area. Every field is a little-endian
16-bit word. Decoding here only checks sizes; semantic checks live in
``classify``.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

from .errors import ImageTooLarge, InvalidSlotPointer, TruncatedImage

MAX_IMAGE_SIZE = 0xFFFF
DESCRIPTOR_FIELDS = ("write", "read", "start", "end")
_WORD = struct.Struct("<H")
_DESCRIPTOR = struct.Struct("<4H")


@dataclass(frozen=True)
class LayoutConfig:
    header_size: int = 6144
    data_size: int = 32768
    descriptor_size: int = 8
    root_count: int = 17

    def __post_init__(self) -> None:
        if self.descriptor_size < _DESCRIPTOR.size:
            raise ValueError(
                f"descriptor_size must be at least {_DESCRIPTOR.size} bytes"
            )
        if self.root_count < 1:
            raise ValueError("root_count must be >= 1")
        if self.data_size < 0:
            raise ValueError("data_size must be >= 0")
        if self.header_size + self.data_size > MAX_IMAGE_SIZE + 1:
            raise ValueError(
                "header_size + data_size exceeds the 16-bit address space"
            )
        if self.slot_count < 1:
            raise ValueError("header_size leaves no room for a descriptor table")

    @property
    def discriminant_offset(self) -> int:
        return 2 * self.root_count

    @property
    def table_offset(self) -> int:
        return self.discriminant_offset + _WORD.size

    @property
    def slot_count(self) -> int:
        return (self.header_size - self.table_offset) // self.descriptor_size

    @property
    def table_end(self) -> int:
        return self.slot_offset(self.slot_count)

    @property
    def padding_size(self) -> int:
        return self.header_size - self.table_end

    @property
    def data_base(self) -> int:
        return self.header_size

    @property
    def data_end(self) -> int:
        return self.header_size + self.data_size

    @property
    def sentinel_root(self) -> int:
        """Index of the root that heads the never-used chain."""
        return self.root_count - 1

    def slot_offset(self, index: int) -> int:
        return self.table_offset + index * self.descriptor_size

    def slot_index(self, pointer: int) -> int:
        """Map a slot pointer back to its table index."""

        rel = pointer - self.table_offset
        if rel < 0 or pointer >= self.table_end:
            raise InvalidSlotPointer(pointer, "outside the descriptor table")
        index, rem = divmod(rel, self.descriptor_size)
        if rem:
            raise InvalidSlotPointer(pointer, "not aligned to a descriptor")
        return index

    def to_json(self) -> dict:
        return {
            "header_size": self.header_size,
            "data_size": self.data_size,
            "descriptor_size": self.descriptor_size,
            "root_count": self.root_count,
            "table_offset": self.table_offset,
            "slot_count": self.slot_count,
            "padding_size": self.padding_size,
        }


DEFAULT_LAYOUT = LayoutConfig()

LAYOUT_PRESETS = {
    "default": DEFAULT_LAYOUT,
    "compact": LayoutConfig(header_size=1024, data_size=4096),
}


@dataclass(frozen=True)
class RawDescriptor:
    index: int
    offset: int
    write: int
    read: int
    start: int
    end: int

    @property
    def fields(self) -> dict[str, int]:
        return {name: getattr(self, name) for name in DESCRIPTOR_FIELDS}

    @property
    def is_zero(self) -> bool:
        return not (self.write or self.read or self.start or self.end)


@dataclass(frozen=True)
class HeaderRegion:
    layout: LayoutConfig
    roots: Tuple[int, ...]
    discriminant: int
    descriptors: Tuple[RawDescriptor, ...]
    padding: bytes

    @property
    def slot_count(self) -> int:
        return len(self.descriptors)

    @classmethod
    def from_file(
        cls, path: Path | str, layout: LayoutConfig = DEFAULT_LAYOUT
    ) -> "HeaderRegion":
        return cls.from_bytes(Path(path).read_bytes(), layout)

    @classmethod
    def from_bytes(
        cls, data: bytes, layout: LayoutConfig = DEFAULT_LAYOUT
    ) -> "HeaderRegion":
        if len(data) > MAX_IMAGE_SIZE:
            raise ImageTooLarge(len(data))
        if len(data) < layout.header_size:
            raise TruncatedImage(len(data), layout.header_size)

        roots = tuple(
            _read_word(data, idx * _WORD.size) for idx in range(layout.root_count)
        )
        discriminant = _read_word(data, layout.discriminant_offset)

        descriptors = []
        for index in range(layout.slot_count):
            offset = layout.slot_offset(index)
            write, read, start, end = _DESCRIPTOR.unpack_from(data, offset)
            descriptors.append(
                RawDescriptor(
                    index=index,
                    offset=offset,
                    write=write,
                    read=read,
                    start=start,
                    end=end,
                )
            )

        return cls(
            layout=layout,
            roots=roots,
            discriminant=discriminant,
            descriptors=tuple(descriptors),
            padding=bytes(data[layout.table_end : layout.header_size]),
        )


def _read_word(data: bytes, offset: int) -> int:
    return _WORD.unpack_from(data, offset)[0]


def decode_header(data: bytes, layout: LayoutConfig = DEFAULT_LAYOUT) -> HeaderRegion:
    """Decode the header region at the start of ``data``."""

    return HeaderRegion.from_bytes(data, layout)


__all__ = [
    "LayoutConfig",
    "DEFAULT_LAYOUT",
    "LAYOUT_PRESETS",
    "MAX_IMAGE_SIZE",
    "RawDescriptor",
    "HeaderRegion",
    "decode_header",
]
