"""Command-line interface for heap capture reconstruction."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from .errors import HeapImageError
from .layout import LAYOUT_PRESETS, LayoutConfig
from .loaders import load_image, load_residuals, load_strings
from .patterns import label_image
from .reconstruct import reconstruct
from .report import (
    label_map_to_json,
    reconstruction_to_json,
    render_labels,
    render_segments,
    render_slots,
)

LOG = logging.getLogger("heapmap_tool")


def _layout_from_args(args: argparse.Namespace) -> LayoutConfig:
    layout = LAYOUT_PRESETS[args.layout]
    overrides = {
        name: getattr(args, name)
        for name in ("header_size", "data_size", "descriptor_size", "root_count")
        if getattr(args, name) is not None
    }
    if overrides:
        layout = dataclasses.replace(layout, **overrides)
    return layout


def _emit(text: str, path: Path | None) -> None:
    if path is None:
        sys.stdout.write(text)
    else:
        path.write_text(text)


def _add_layout_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("image", type=Path, help="Captured heap image")
    parser.add_argument(
        "--layout",
        choices=sorted(LAYOUT_PRESETS),
        default="default",
        help="Header layout preset",
    )
    parser.add_argument("--header-size", type=int, help="Override header region size")
    parser.add_argument("--data-size", type=int, help="Override data area size")
    parser.add_argument(
        "--descriptor-size", type=int, help="Override descriptor record size"
    )
    parser.add_argument("--root-count", type=int, help="Override free-list root count")
    parser.add_argument(
        "--lenient-sentinel",
        action="store_true",
        help="Accept read=0 on never-used sentinel descriptors",
    )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="heapmap_tool")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Only log errors"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    recon = subparsers.add_parser(
        "reconstruct",
        help="Rebuild the allocation map of a heap image",
    )
    _add_layout_args(recon)
    recon.add_argument(
        "--origin",
        choices=["image", "data"],
        default="image",
        help="Start coverage at the image start or at the data area",
    )
    recon.add_argument(
        "--residuals",
        type=Path,
        help="JSON list of [offset, text] pairs expected in freed space",
    )
    recon.add_argument(
        "--allow-overlaps",
        action="store_true",
        help="Report overlapping allocations without failing",
    )
    recon.add_argument("--out", type=Path, help="Write JSON results here")
    recon.add_argument(
        "--report", type=Path, help="Write the segment listing here (default stdout)"
    )

    labels = subparsers.add_parser(
        "labels",
        help="Label known strings and 16-bit references to them",
    )
    labels.add_argument("image", type=Path, help="Captured heap image")
    labels.add_argument(
        "--strings",
        required=True,
        type=Path,
        help="Candidate strings (.json array or one per line)",
    )
    labels.add_argument("--out", type=Path, help="Write JSON results here")
    labels.add_argument(
        "--report", type=Path, help="Write the label listing here (default stdout)"
    )

    slots = subparsers.add_parser(
        "slots",
        help="List every descriptor slot and its classification",
    )
    _add_layout_args(slots)

    return parser


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.WARNING
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _run(args: argparse.Namespace) -> int:
    if args.command == "labels":
        image = load_image(args.image)
        label_map = label_image(image, load_strings(args.strings))
        _emit(render_labels(label_map), args.report)
        if args.out:
            args.out.write_text(json.dumps(label_map_to_json(label_map), indent=2))
        return 0

    layout = _layout_from_args(args)
    image = load_image(args.image)

    if args.command == "slots":
        recon = reconstruct(image, layout, lenient_sentinel=args.lenient_sentinel)
        sys.stdout.write(render_slots(recon))
        return 0

    origin = 0 if args.origin == "image" else layout.data_base
    recon = reconstruct(
        image, layout, lenient_sentinel=args.lenient_sentinel, origin=origin
    )
    if not args.allow_overlaps:
        recon.segment_map.raise_for_overlaps()

    residual_checks = None
    if args.residuals:
        residual_checks = recon.check_residuals(load_residuals(args.residuals))
        LOG.info("%d residual expectation(s) consistent", len(residual_checks))

    _emit(render_segments(recon.segment_map), args.report)
    if args.out:
        args.out.write_text(
            json.dumps(reconstruction_to_json(recon, residual_checks), indent=2)
        )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    _configure_logging(args)

    try:
        return _run(args)
    except HeapImageError as exc:
        LOG.debug("reconstruction aborted", exc_info=True)
        sys.stderr.write(f"error: {exc}\n")
        return 2
    except (OSError, ValueError) as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 2


__all__ = ["main", "build_arg_parser"]
