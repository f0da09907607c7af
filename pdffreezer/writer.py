"""Rebuild a PDF from per-page JPEG images.

Each page is sized from its image: ``pixels * 72 / dpi`` points on both axes,
so the output has the physical dimensions of the source document. The JPEG
data is embedded unchanged (``/DCTDecode``) and drawn over the whole page.
"""

from __future__ import annotations

import io
import logging
import os
import tempfile
import zlib
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from pypdf import PdfWriter
from pypdf.errors import PyPdfError
from pypdf.generic import (
    ArrayObject,
    DictionaryObject,
    FloatObject,
    IndirectObject,
    NameObject,
    NumberObject,
    StreamObject,
)

from .exceptions import FontError, ImageDecodeError, WriteError
from .fonts import FIRST_CHAR, LAST_CHAR, FontMetrics, load_font_metrics
from .rasterizer import PageImage
from .settings import DEFAULT_CORNER, OverlayCorner, resolve_corner
from .utils import copy_target_mode, ensure_parent_dir

LOGGER = logging.getLogger("pdffreezer.writer")

POINTS_PER_INCH = 72.0
OVERLAY_FONT_SIZE = 12
OVERLAY_MARGIN = 1.0
OVERLAY_COLOR = (1.0, 0.0, 0.0)

_COLOR_SPACES = {
    "L": "/DeviceGray",
    "RGB": "/DeviceRGB",
    "CMYK": "/DeviceCMYK",
}


def page_size_points(width_px: int, height_px: int, dpi: int) -> tuple[float, float]:
    """Physical page size in points for an image rasterized at *dpi*."""

    if dpi <= 0:
        raise ValueError("dpi must be a positive integer")
    return width_px * POINTS_PER_INCH / dpi, height_px * POINTS_PER_INCH / dpi


def overlay_origin(
    corner: OverlayCorner,
    page_width: float,
    page_height: float,
    text_width: float,
    *,
    font_size: float = OVERLAY_FONT_SIZE,
    margin: float = OVERLAY_MARGIN,
) -> tuple[float, float]:
    """Baseline origin of the overlay text in PDF user space (origin bottom-left).

    Top corners drop the baseline by *font_size* to leave room for the ascent.
    """

    x = page_width - text_width - margin if corner.is_right else margin
    y = page_height - margin - font_size if corner.is_top else margin
    return x, y


def _fmt(value: float) -> str:
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return text if text not in ("", "-0") else "0"


class PDFWriter:
    """Accumulates image pages in memory and writes them out in one go.

    Args:
        font_path: TrueType font used for overlay text. A font that fails to
            load only breaks pages that actually carry overlay text.
    """

    def __init__(self, font_path: str | os.PathLike[str] | None = None) -> None:
        self._writer = PdfWriter()
        self._writer.add_metadata({"/Producer": "pdf-freezer"})
        self._metrics: FontMetrics | None = None
        self._font_error: str | None = None
        self._font_ref: IndirectObject | None = None
        self._page_count = 0

        if font_path is None:
            self._font_error = "no overlay font configured"
            return
        try:
            self._metrics = load_font_metrics(font_path)
        except FontError as exc:
            LOGGER.warning("Failed to load overlay font: %s", exc)
            self._font_error = str(exc)

    @property
    def page_count(self) -> int:
        return self._page_count

    def add_page(
        self,
        image_path: str | os.PathLike[str],
        overlay_text: str = "",
        corner: OverlayCorner | str = DEFAULT_CORNER,
        dpi: int = 300,
    ) -> None:
        """Append a page showing the JPEG at *image_path*.

        Raises:
            ImageDecodeError: the file is missing or not a readable JPEG
            FontError: *overlay_text* is set but the font is unusable
            WriteError: the page objects could not be created
        """

        data, width_px, height_px, color_space = self._read_jpeg(Path(image_path))
        width_pt, height_pt = page_size_points(width_px, height_px, dpi)

        operations = [f"q {_fmt(width_pt)} 0 0 {_fmt(height_pt)} 0 0 cm /Im0 Do Q"]
        font_ref: IndirectObject | None = None
        if overlay_text:
            metrics = self._require_font()
            encoded = metrics.encode(overlay_text)
            text_width = metrics.text_width(overlay_text, OVERLAY_FONT_SIZE)
            x, y = overlay_origin(resolve_corner(corner), width_pt, height_pt, text_width)
            red, green, blue = OVERLAY_COLOR
            operations.append(
                f"q {_fmt(red)} {_fmt(green)} {_fmt(blue)} rg BT /F1 {OVERLAY_FONT_SIZE} Tf "
                f"{_fmt(x)} {_fmt(y)} Td <{encoded.hex()}> Tj ET Q"
            )
            font_ref = self._embed_font(metrics)

        try:
            image_stream = StreamObject()
            image_stream.update(
                {
                    NameObject("/Type"): NameObject("/XObject"),
                    NameObject("/Subtype"): NameObject("/Image"),
                    NameObject("/Width"): NumberObject(width_px),
                    NameObject("/Height"): NumberObject(height_px),
                    NameObject("/ColorSpace"): NameObject(color_space),
                    NameObject("/BitsPerComponent"): NumberObject(8),
                    NameObject("/Filter"): NameObject("/DCTDecode"),
                }
            )
            image_stream._data = data
            image_ref = self._writer._add_object(image_stream)

            resources = DictionaryObject(
                {NameObject("/XObject"): DictionaryObject({NameObject("/Im0"): image_ref})}
            )
            if font_ref is not None:
                resources[NameObject("/Font")] = DictionaryObject({NameObject("/F1"): font_ref})

            content = StreamObject()
            content._data = "\n".join(operations).encode("ascii")
            content[NameObject("/Length")] = NumberObject(len(content._data))

            page = self._writer.add_blank_page(width=width_pt, height=height_pt)
            page[NameObject("/Resources")] = resources
            page[NameObject("/Contents")] = self._writer._add_object(content)
        except (PyPdfError, ValueError, TypeError) as exc:
            raise WriteError(f"Failed to add page for {image_path}: {exc}") from exc

        self._page_count += 1
        LOGGER.debug(
            "Added page %d from %s (%dx%d px -> %.2fx%.2f pt)",
            self._page_count,
            image_path,
            width_px,
            height_px,
            width_pt,
            height_pt,
        )

    def add_page_image(
        self,
        page: PageImage,
        overlay_text: str = "",
        corner: OverlayCorner | str = DEFAULT_CORNER,
    ) -> None:
        """Append *page* at the resolution it was rasterized with."""

        self.add_page(page.path, overlay_text, corner, page.dpi)

    def save(self, output_path: str | os.PathLike[str]) -> Path:
        """Write the document to *output_path*.

        The bytes go to a temporary sibling first and are renamed into place,
        so *output_path* never holds a partial document.
        """

        destination = Path(output_path)
        tmp_name: str | None = None
        try:
            ensure_parent_dir(destination)
            with tempfile.NamedTemporaryFile(
                dir=destination.parent,
                prefix=f".{destination.stem}-",
                suffix=".pdf.tmp",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                self._writer.write(handle)
            copy_target_mode(tmp_name, destination)
            os.replace(tmp_name, destination)
        except (OSError, PyPdfError, ValueError) as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise WriteError(f"Failed to save output {destination}: {exc}") from exc

        LOGGER.info("Wrote %d pages to %s", self._page_count, destination)
        return destination

    def _require_font(self) -> FontMetrics:
        if self._metrics is None:
            raise FontError(f"failed to set font: {self._font_error}")
        return self._metrics

    def _read_jpeg(self, path: Path) -> tuple[bytes, int, int, str]:
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise ImageDecodeError(f"Failed to read page image {path}: {exc}") from exc

        # Only the header is parsed; pixel data stays compressed.
        try:
            with Image.open(io.BytesIO(data)) as image:
                image_format = image.format
                width, height = image.size
                mode = image.mode
        except (OSError, UnidentifiedImageError) as exc:
            raise ImageDecodeError(f"Failed to decode page image {path}: {exc}") from exc

        if image_format != "JPEG":
            raise ImageDecodeError(f"Page image {path} is {image_format}, expected JPEG")
        color_space = _COLOR_SPACES.get(mode)
        if color_space is None:
            raise ImageDecodeError(f"Unsupported JPEG colour mode {mode!r} in {path}")
        return data, width, height, color_space

    def _embed_font(self, metrics: FontMetrics) -> IndirectObject:
        if self._font_ref is not None:
            return self._font_ref

        try:
            font_file = StreamObject()
            font_file._data = zlib.compress(metrics.data)
            font_file.update(
                {
                    NameObject("/Filter"): NameObject("/FlateDecode"),
                    NameObject("/Length1"): NumberObject(len(metrics.data)),
                }
            )
            font_file_ref = self._writer._add_object(font_file)

            flags = 32 | (1 if metrics.fixed_pitch else 0)  # nonsymbolic, fixed pitch
            descriptor = DictionaryObject(
                {
                    NameObject("/Type"): NameObject("/FontDescriptor"),
                    NameObject("/FontName"): NameObject(f"/{metrics.base_name}"),
                    NameObject("/Flags"): NumberObject(flags),
                    NameObject("/FontBBox"): ArrayObject(NumberObject(v) for v in metrics.bbox),
                    NameObject("/ItalicAngle"): NumberObject(0),
                    NameObject("/Ascent"): NumberObject(metrics.ascent),
                    NameObject("/Descent"): NumberObject(metrics.descent),
                    NameObject("/CapHeight"): NumberObject(metrics.ascent),
                    NameObject("/StemV"): NumberObject(80),
                    NameObject("/FontFile2"): font_file_ref,
                }
            )
            descriptor_ref = self._writer._add_object(descriptor)

            font = DictionaryObject(
                {
                    NameObject("/Type"): NameObject("/Font"),
                    NameObject("/Subtype"): NameObject("/TrueType"),
                    NameObject("/BaseFont"): NameObject(f"/{metrics.base_name}"),
                    NameObject("/FirstChar"): NumberObject(FIRST_CHAR),
                    NameObject("/LastChar"): NumberObject(LAST_CHAR),
                    NameObject("/Widths"): ArrayObject(FloatObject(w) for w in metrics.widths),
                    NameObject("/Encoding"): NameObject("/WinAnsiEncoding"),
                    NameObject("/FontDescriptor"): descriptor_ref,
                }
            )
            self._font_ref = self._writer._add_object(font)
        except (PyPdfError, ValueError, TypeError) as exc:
            raise WriteError(f"Failed to embed overlay font: {exc}") from exc
        return self._font_ref


__all__ = [
    "OVERLAY_FONT_SIZE",
    "OVERLAY_MARGIN",
    "PDFWriter",
    "overlay_origin",
    "page_size_points",
]
