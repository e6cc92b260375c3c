"""Text and JSON rendering for reconstruction and label results."""

from __future__ import annotations

from typing import Sequence

from .classify import Alloc, Freed, Unused
from .errors import Finding
from .patterns import POINTER, LabelMap
from .reconstruct import Reconstruction
from .residual import ResidualCheck
from .segments import SegmentMap


def _text(data: bytes) -> str:
    return data.decode("ascii", errors="replace")


def _finding_lines(findings: Sequence[Finding]) -> list[str]:
    return [f"// {finding.code}: {finding.message}" for finding in findings]


def render_segments(segment_map: SegmentMap) -> str:
    lines: list[str] = []
    for seg in segment_map.segments:
        line = (
            f"offset={seg.start}, len={seg.length}, kind={seg.kind}, "
            f"text={_text(seg.data)!r}"
        )
        if seg.truncated:
            line += f"  (truncated, nominal end {seg.nominal_end})"
        lines.append(line)
    lines.extend(_finding_lines(segment_map.findings))
    return "\n".join(lines) + "\n"


def render_labels(label_map: LabelMap) -> str:
    lines: list[str] = []
    for label in label_map.labels:
        kind = f"pointer({label.target})" if label.kind == POINTER else label.kind
        lines.append(
            f"offset={label.offset}, len={label.length}, kind={kind}, "
            f"text={_text(label.data)!r}"
        )
    lines.extend(_finding_lines(label_map.findings))
    return "\n".join(lines) + "\n"


def render_slots(recon: Reconstruction) -> str:
    """One line per descriptor slot, marking the trimmed tail."""

    lines = [
        f"table @0x{recon.layout.table_offset:04x}, "
        f"{len(recon.slots)} slot(s), {recon.used_count} used, "
        f"{recon.walk.free_count} free"
    ]
    for desc, shape, is_free in zip(recon.header.descriptors, recon.slots, recon.walk.free):
        raw = " ".join(f"{name}=0x{value:04x}" for name, value in desc.fields.items())
        if isinstance(shape, Alloc):
            info = f"alloc ptr={shape.ptr} len={shape.length} cap={shape.capacity}"
        elif isinstance(shape, Freed):
            info = f"freed ptr={shape.ptr} cap={shape.capacity} next=0x{shape.next:04x}"
        else:
            info = f"unused next=0x{shape.next:04x}"
        tail = "" if desc.index < recon.used_count else "  [trailing]"
        mark = "F" if is_free else " "
        lines.append(f"[{desc.index:4d}] {mark} {raw} -> {info}{tail}")
    return "\n".join(lines) + "\n"


def _slot_json(shape: Alloc | Freed | Unused) -> dict:
    if isinstance(shape, Alloc):
        return {
            "kind": shape.kind,
            "ptr": shape.ptr,
            "len": shape.length,
            "capacity": shape.capacity,
        }
    if isinstance(shape, Freed):
        return {
            "kind": shape.kind,
            "next": shape.next,
            "ptr": shape.ptr,
            "capacity": shape.capacity,
        }
    return {"kind": shape.kind, "next": shape.next}


def reconstruction_to_json(
    recon: Reconstruction, residual_checks: Sequence[ResidualCheck] | None = None
) -> dict:
    segment_map = recon.segment_map
    data: dict = {
        "layout": recon.layout.to_json(),
        "image_length": len(recon.image),
        "summary": {
            "slots": len(recon.slots),
            "used_slots": recon.used_count,
            "free_slots": recon.walk.free_count,
            "bytes_by_kind": segment_map.summary(),
        },
        "free_lists": [list(chain) for chain in recon.walk.chains],
        "slots": [_slot_json(shape) for shape in recon.used_slots],
        "segments": [
            {
                "start": seg.start,
                "end": seg.end,
                "kind": seg.kind,
                "slot": seg.slot,
                "truncated": seg.truncated,
                "nominal_end": seg.nominal_end,
                "text": _text(seg.data),
            }
            for seg in segment_map.segments
        ],
        "findings": [finding.to_json() for finding in segment_map.findings],
    }
    if residual_checks is not None:
        data["residuals"] = [
            {
                "offset": check.offset,
                "length": check.length,
                "compared": check.compared,
                "skipped": check.skipped,
            }
            for check in residual_checks
        ]
    return data


def label_map_to_json(label_map: LabelMap) -> dict:
    counts: dict[str, int] = {}
    for label in label_map.labels:
        counts[label.kind] = counts.get(label.kind, 0) + 1
    return {
        "image_length": label_map.image_length,
        "summary": {"labels_by_kind": counts, "findings": len(label_map.findings)},
        "labels": [
            {
                "offset": label.offset,
                "len": label.length,
                "kind": label.kind,
                "target": label.target,
                "text": _text(label.data),
            }
            for label in label_map.labels
        ],
        "findings": [finding.to_json() for finding in label_map.findings],
    }


__all__ = [
    "render_segments",
    "render_labels",
    "render_slots",
    "reconstruction_to_json",
    "label_map_to_json",
]
