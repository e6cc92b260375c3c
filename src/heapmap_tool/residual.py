"""Cross-check externally recorded freed text against recovered slack/freed bytes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from .errors import ResidualMismatch


@dataclass(frozen=True)
class ResidualExpectation:
    offset: int
    text: bytes


@dataclass(frozen=True)
class ResidualCheck:
    offset: int
    length: int
    compared: int
    skipped: int

    @property
    def fully_known(self) -> bool:
        return self.skipped == 0


def check_residuals(
    overlay: Mapping[int, int],
    expectations: Iterable[ResidualExpectation],
    image: bytes,
) -> list[ResidualCheck]:
    """
    Compare each expectation byte by byte against ``overlay``.

    Offsets missing from the overlay are unknown and skipped. The first
    recorded byte that differs raises ``ResidualMismatch`` carrying the
    expected text, the raw image bytes and the overlay bytes for the window.
    """

    results: list[ResidualCheck] = []
    for expectation in expectations:
        offset, text = expectation.offset, expectation.text
        compared = 0
        for index, expected in enumerate(text):
            actual = overlay.get(offset + index)
            if actual is None:
                continue
            if actual != expected:
                window = range(offset, offset + len(text))
                raise ResidualMismatch(
                    offset,
                    index,
                    expected=text,
                    raw=bytes(image[offset : offset + len(text)]),
                    overlay=tuple(overlay.get(pos) for pos in window),
                )
            compared += 1
        results.append(
            ResidualCheck(
                offset=offset,
                length=len(text),
                compared=compared,
                skipped=len(text) - compared,
            )
        )
    return results


__all__ = ["ResidualExpectation", "ResidualCheck", "check_residuals"]
