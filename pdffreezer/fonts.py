"""Embedded overlay typeface and its metrics."""

from __future__ import annotations

import logging
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Iterator

from PIL import ImageFont

from .exceptions import FontError

LOGGER = logging.getLogger("pdffreezer.fonts")

FONT_PACKAGE = "pdffreezer.resources"
FONT_RESOURCE = "SourceCodePro-Regular.ttf"

# Glyph space used by PDF /Widths arrays.
UNITS_PER_EM = 1000
FIRST_CHAR = 32
LAST_CHAR = 255
TEXT_ENCODING = "cp1252"  # matches /WinAnsiEncoding


def read_embedded_font() -> bytes:
    """Return the bytes of the bundled TrueType font."""

    try:
        return resources.files(FONT_PACKAGE).joinpath(FONT_RESOURCE).read_bytes()
    except (OSError, ModuleNotFoundError) as exc:
        raise FontError(f"Embedded font {FONT_RESOURCE} is unavailable: {exc}") from exc


@contextmanager
def materialized_font(data: bytes | None = None) -> Iterator[Path]:
    """Write the font to a temporary ``.ttf`` file and yield its path.

    The file is removed when the context exits, whatever the outcome.
    """

    payload = read_embedded_font() if data is None else data
    try:
        handle = tempfile.NamedTemporaryFile(prefix="font-", suffix=".ttf", delete=False)
    except OSError as exc:
        raise FontError(f"Failed to create font temp file: {exc}") from exc

    path = Path(handle.name)
    try:
        try:
            with handle:
                handle.write(payload)
        except OSError as exc:
            raise FontError(f"Failed to write font data: {exc}") from exc
        LOGGER.debug("Materialized overlay font at %s", path)
        yield path
    finally:
        path.unlink(missing_ok=True)


@dataclass(frozen=True)
class FontMetrics:
    """What a PDF TrueType font dictionary needs, in 1/1000 em units."""

    base_name: str
    data: bytes
    widths: tuple[int, ...]  # FIRST_CHAR..LAST_CHAR
    ascent: int
    descent: int  # negative, below the baseline
    fixed_pitch: bool

    @property
    def bbox(self) -> tuple[int, int, int, int]:
        return (0, self.descent, max(self.widths), self.ascent)

    def encode(self, text: str) -> bytes:
        """Encode *text* for a ``/WinAnsiEncoding`` font; raises :class:`FontError`."""

        try:
            encoded = text.encode(TEXT_ENCODING)
        except UnicodeEncodeError as exc:
            raise FontError(f"Overlay text {text!r} cannot be rendered with the overlay font") from exc
        if any(byte < FIRST_CHAR for byte in encoded):
            raise FontError(f"Overlay text {text!r} contains control characters")
        return encoded

    def text_width(self, text: str, size: float) -> float:
        """Width of *text* in points when set at *size*."""

        units = sum(self.widths[byte - FIRST_CHAR] for byte in self.encode(text))
        return units * size / UNITS_PER_EM


def load_font(path: str | Path, size: int) -> ImageFont.FreeTypeFont:
    try:
        return ImageFont.truetype(str(path), size)
    except (OSError, ValueError) as exc:
        raise FontError(f"Failed to load font {path}: {exc}") from exc


def load_font_metrics(path: str | Path) -> FontMetrics:
    """Measure the TrueType font at *path* for embedding."""

    font = load_font(path, UNITS_PER_EM)
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise FontError(f"Failed to read font {path}: {exc}") from exc

    widths = []
    for code in range(FIRST_CHAR, LAST_CHAR + 1):
        char = bytes([code]).decode(TEXT_ENCODING, errors="replace")
        widths.append(round(font.getlength(char)))

    ascent, descent = font.getmetrics()
    family, style = font.getname()
    base_name = f"{family or 'Overlay'}-{style or 'Regular'}".replace(" ", "")
    printable = widths[: 127 - FIRST_CHAR]
    return FontMetrics(
        base_name=base_name,
        data=data,
        widths=tuple(widths),
        ascent=ascent,
        descent=-abs(descent),
        fixed_pitch=len(set(printable)) == 1,
    )


__all__ = [
    "FONT_RESOURCE",
    "FontMetrics",
    "load_font",
    "load_font_metrics",
    "materialized_font",
    "read_embedded_font",
]
