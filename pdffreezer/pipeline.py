"""Orchestration of a single freeze job: number, rasterize, rebuild, save."""

from __future__ import annotations

import dataclasses
import logging
import os
import tempfile
import threading
from pathlib import Path

from .counter import SequenceManager
from .exceptions import EmptyDocumentError, PageAssemblyError
from .fonts import materialized_font
from .rasterizer import GhostscriptRasterizer, Rasterizer, describe_pages
from .settings import (
    DEFAULT_CORNER,
    DEFAULT_TIER,
    CompressionTier,
    OverlayCorner,
    normalize_tier,
    resolve_corner,
    resolve_tier,
)
from .utils import resolve_path
from .writer import PDFWriter

LOGGER = logging.getLogger("pdffreezer.pipeline")

DEFAULT_PREFIX = "AR"
SERIAL_WIDTH = 4
TEMP_DIR_PREFIX = "pdf-freezer-"


def format_serial_label(prefix: str, number: int) -> str:
    """Return ``prefix`` followed by *number* zero-padded to four digits.

    Numbers wider than four digits are kept whole: ``("AR", 12345)`` gives
    ``"AR12345"``.
    """

    return f"{prefix}{number:0{SERIAL_WIDTH}d}"


@dataclasses.dataclass(frozen=True)
class ConversionJob:
    """Immutable description of one freeze run."""

    input_path: Path
    output_path: Path
    overlay: bool = True
    prefix: str = DEFAULT_PREFIX
    corner: OverlayCorner = DEFAULT_CORNER
    tier: CompressionTier = DEFAULT_TIER

    @classmethod
    def create(
        cls,
        input_path: str | os.PathLike[str],
        output_path: str | os.PathLike[str],
        *,
        overlay: bool = True,
        prefix: str | None = None,
        corner: str | OverlayCorner | None = None,
        tier: str | CompressionTier | None = None,
    ) -> "ConversionJob":
        return cls(
            input_path=resolve_path(input_path),
            output_path=resolve_path(output_path),
            overlay=overlay,
            prefix=prefix or DEFAULT_PREFIX,
            corner=resolve_corner(corner),
            tier=normalize_tier(tier),
        )


@dataclasses.dataclass(slots=True)
class ConversionResult:
    """Outcome of a successful job."""

    input_path: Path
    output_path: Path
    serial_number: int
    serial_label: str
    page_count: int
    tier: CompressionTier
    dpi: int
    quality: int
    overlay_applied: bool

    @property
    def output_size(self) -> int:
        return self.output_path.stat().st_size


class Pipeline:
    """Runs freeze jobs against a shared counter.

    Args:
        counter: Issues the serial number, one per job. The number is
            consumed even when the job fails later on.
        rasterizer: Page extraction engine; Ghostscript by default.
    """

    def __init__(self, counter: SequenceManager, rasterizer: Rasterizer | None = None) -> None:
        self.counter = counter
        self.rasterizer = rasterizer or GhostscriptRasterizer()

    def process(
        self,
        job: ConversionJob,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ConversionResult:
        """Execute *job*; every failure aborts the job and propagates.

        Only the rasterization step observes *timeout* and *cancel_event*.
        """

        self.rasterizer.check_dependencies()

        # Not guarded by the counter's file lock; see SequenceManager.
        number = self.counter.get_next()
        label = format_serial_label(job.prefix or DEFAULT_PREFIX, number)
        settings = resolve_tier(job.tier)
        LOGGER.info(
            "Freezing %s as %s (tier=%s, dpi=%d, quality=%d)",
            job.input_path,
            label,
            settings.tier.value,
            settings.dpi,
            settings.quality,
        )

        with tempfile.TemporaryDirectory(prefix=TEMP_DIR_PREFIX) as work_dir:
            images = self.rasterizer.extract_pages(
                job.input_path,
                work_dir,
                settings.dpi,
                settings.quality,
                timeout=timeout,
                cancel_event=cancel_event,
            )
            if not images:
                raise EmptyDocumentError(f"No pages extracted from {job.input_path}")

            pages = describe_pages(images, settings.dpi)
            with materialized_font() as font_path:
                writer = PDFWriter(font_path)
                for page in pages:
                    overlay_text = label if page.index == 1 and job.overlay else ""
                    try:
                        writer.add_page_image(page, overlay_text, job.corner)
                    except PageAssemblyError as exc:
                        raise type(exc)(f"Failed to write page {page.index}: {exc.message}") from exc
                writer.save(job.output_path)

        LOGGER.info("Froze %d pages into %s", len(images), job.output_path)
        return ConversionResult(
            input_path=job.input_path,
            output_path=job.output_path,
            serial_number=number,
            serial_label=label,
            page_count=len(images),
            tier=settings.tier,
            dpi=settings.dpi,
            quality=settings.quality,
            overlay_applied=job.overlay,
        )


__all__ = ["ConversionJob", "ConversionResult", "DEFAULT_PREFIX", "Pipeline", "format_serial_label"]
