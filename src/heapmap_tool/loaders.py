"""Input loaders for images, candidate strings and residual expectations."""

from __future__ import annotations

import json
from pathlib import Path

from .errors import ImageTooLarge
from .layout import MAX_IMAGE_SIZE
from .residual import ResidualExpectation


def load_image(path: Path | str) -> bytes:
    data = Path(path).read_bytes()
    if len(data) > MAX_IMAGE_SIZE:
        raise ImageTooLarge(len(data))
    return data


def load_strings(path: Path | str) -> list[bytes]:
    """
    Load candidate strings as UTF-8 bytes.

    ``.json`` files hold a JSON array of strings; anything else is read as
    one string per non-blank line.
    """

    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        values = json.loads(text)
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise ValueError(f"{path} must contain a JSON array of strings")
    else:
        values = [line for line in text.splitlines() if line.strip()]
    return [value.encode("utf-8") for value in values]


def load_residuals(path: Path | str) -> list[ResidualExpectation]:
    """Load ``[[offset, text], ...]`` (or ``{"offset", "text"}`` objects)."""

    path = Path(path)
    entries = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(entries, list):
        raise ValueError(f"{path} must contain a JSON array")

    expectations: list[ResidualExpectation] = []
    for idx, entry in enumerate(entries):
        if isinstance(entry, dict):
            offset, text = entry.get("offset"), entry.get("text")
        elif isinstance(entry, list) and len(entry) == 2:
            offset, text = entry
        else:
            raise ValueError(f"{path}: entry {idx} is not an [offset, text] pair")
        if not isinstance(offset, int) or isinstance(offset, bool) or offset < 0:
            raise ValueError(f"{path}: entry {idx} has invalid offset {offset!r}")
        if not isinstance(text, str):
            raise ValueError(f"{path}: entry {idx} has non-string text")
        expectations.append(ResidualExpectation(offset=offset, text=text.encode("utf-8")))
    return expectations


__all__ = ["load_image", "load_strings", "load_residuals"]
