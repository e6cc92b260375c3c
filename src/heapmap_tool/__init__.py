"""
Top-level package for fixed-size heap capture reconstruction.

This package decodes the header table of a captured heap image, walks its
free lists, classifies every descriptor slot and partitions the image into
typed segments. A separate pass labels known strings and the 16-bit words
that point at them.
"""

from .classify import (
    Alloc,
    Freed,
    Unused,
    check_header_region,
    classify_descriptor,
    classify_slots,
    trim_unused,
)
from .errors import (
    CorruptHeaderRegion,
    DuplicateFreeSlot,
    Finding,
    HeapImageError,
    ImageTooLarge,
    InvalidDescriptor,
    InvalidSlotPointer,
    OverlappingAllocations,
    ResidualMismatch,
    TruncatedImage,
    UnusedWithinLiveRange,
)
from .freelist import FreeListWalk, walk_free_lists
from .layout import (
    DEFAULT_LAYOUT,
    LAYOUT_PRESETS,
    HeaderRegion,
    LayoutConfig,
    RawDescriptor,
    decode_header,
)
from .patterns import Label, LabelMap, correlate, label_image, segment_labels
from .reconstruct import Reconstruction, reconstruct
from .residual import ResidualExpectation, check_residuals
from .segments import Segment, SegmentMap, segment_allocations

__all__ = [
    "__version__",
    "LayoutConfig",
    "DEFAULT_LAYOUT",
    "LAYOUT_PRESETS",
    "RawDescriptor",
    "HeaderRegion",
    "decode_header",
    "FreeListWalk",
    "walk_free_lists",
    "Alloc",
    "Freed",
    "Unused",
    "classify_descriptor",
    "classify_slots",
    "check_header_region",
    "trim_unused",
    "Segment",
    "SegmentMap",
    "segment_allocations",
    "Label",
    "LabelMap",
    "correlate",
    "segment_labels",
    "label_image",
    "ResidualExpectation",
    "check_residuals",
    "Reconstruction",
    "reconstruct",
    "Finding",
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
]

__version__ = "0.0.1"
