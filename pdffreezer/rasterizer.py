"""Ghostscript integration turning PDF pages into ordered JPEG files."""

from __future__ import annotations

import logging
import os
import re
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from PIL import Image, UnidentifiedImageError

from .exceptions import DependencyMissingError, ImageDecodeError, RasterizationError
from .utils import CommandAborted, resolve_path, run_subprocess, which

LOGGER = logging.getLogger("pdffreezer.rasterizer")

# macOS GUI launches do not inherit the shell PATH, so fixed locations are
# searched before PATH.
GHOSTSCRIPT_PATHS: tuple[str, ...] = (
    "/usr/local/bin/gs",
    "/opt/homebrew/bin/gs",
    "/usr/bin/gs",
)
GHOSTSCRIPT_NAMES: tuple[str, ...] = (
    "gs",
    "gswin64c",
    "gswin32c",
    "gswin64c.exe",
    "gswin32c.exe",
)
FALLBACK_EXECUTABLE = "gs"

PAGE_PATTERN = "page-%d.jpg"
_PAGE_FILE_RE = re.compile(r"^page-(\d+)\.jpg$")


@dataclass(frozen=True)
class PageImage:
    """One rasterized page of a document."""

    index: int  # 1-indexed
    path: Path
    width_px: int
    height_px: int
    dpi: int


def find_ghostscript(
    paths: Sequence[str] = GHOSTSCRIPT_PATHS,
    names: Sequence[str] = GHOSTSCRIPT_NAMES,
) -> str:
    """Locate the Ghostscript executable.

    Fixed installation *paths* are tried first, then each of *names* on
    ``PATH``. When nothing is found the bare ``gs`` name is returned so the
    failure surfaces when the command is run.
    """

    for candidate in paths:
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            LOGGER.debug("Found Ghostscript at %s", candidate)
            return candidate
    found = which(names)
    if found:
        return found
    LOGGER.debug("Ghostscript not found, falling back to %r", FALLBACK_EXECUTABLE)
    return FALLBACK_EXECUTABLE


def page_number(path: str | Path) -> int | None:
    """Return ``N`` for a ``page-N.jpg`` file name, otherwise ``None``."""

    match = _PAGE_FILE_RE.match(Path(path).name)
    if match is None:
        return None
    return int(match.group(1))


def collect_page_images(out_dir: Path) -> list[Path]:
    """Return the ``page-N.jpg`` files in *out_dir* ordered by ``N``.

    Ordering is numeric: ``page-2.jpg`` comes before ``page-10.jpg``.
    """

    numbered: list[tuple[int, Path]] = []
    for entry in out_dir.iterdir():
        number = page_number(entry)
        if number is None or not entry.is_file():
            continue
        numbered.append((number, entry.resolve()))
    numbered.sort(key=lambda item: item[0])
    return [path for _, path in numbered]


def describe_pages(paths: Iterable[Path], dpi: int) -> list[PageImage]:
    """Build :class:`PageImage` records, reading only each image header."""

    pages: list[PageImage] = []
    for index, path in enumerate(paths, start=1):
        try:
            with Image.open(path) as image:
                width, height = image.size
        except (OSError, UnidentifiedImageError) as exc:
            raise ImageDecodeError(f"Failed to read page {index} image {path}: {exc}") from exc
        pages.append(PageImage(index=index, path=Path(path), width_px=width, height_px=height, dpi=dpi))
    return pages


class Rasterizer(ABC):
    """Turns a PDF into one image file per page."""

    @abstractmethod
    def check_dependencies(self) -> str:
        """Raise :class:`DependencyMissingError` unless the engine can run."""

    @abstractmethod
    def extract_pages(
        self,
        source: str | os.PathLike[str],
        out_dir: str | os.PathLike[str],
        dpi: int,
        quality: int,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> list[Path]:
        """Rasterize every page of *source* into *out_dir*, in page order."""


class GhostscriptRasterizer(Rasterizer):
    """Rasterizer backed by the Ghostscript command-line tool."""

    def __init__(self, executable: str | None = None) -> None:
        self.executable = executable or find_ghostscript()

    def check_dependencies(self) -> str:
        """Run ``gs --version`` and return the reported version."""

        try:
            completed = run_subprocess([self.executable, "--version"], timeout=30, check=False)
        except (OSError, CommandAborted) as exc:
            raise DependencyMissingError(f"Ghostscript not found or not working: {exc}") from exc
        if completed.returncode != 0:
            raise DependencyMissingError(
                f"Ghostscript not found or not working: exit status {completed.returncode}"
            )
        version = completed.stdout.strip()
        LOGGER.debug("Ghostscript %s available at %s", version, self.executable)
        return version

    def build_command(self, source: Path, out_dir: Path, dpi: int, quality: int) -> list[str]:
        """Construct the Ghostscript JPEG rendering command."""

        return [
            self.executable,
            "-dNOPAUSE",
            "-dBATCH",
            "-dSAFER",
            "-sDEVICE=jpeg",
            f"-dJPEGQ={quality}",
            f"-r{dpi}",
            f"-sOutputFile={out_dir / PAGE_PATTERN}",
            str(source),
        ]

    def extract_pages(
        self,
        source: str | os.PathLike[str],
        out_dir: str | os.PathLike[str],
        dpi: int,
        quality: int,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> list[Path]:
        source_path = resolve_path(source)
        out_path = resolve_path(out_dir)
        command = self.build_command(source_path, out_path, dpi, quality)

        LOGGER.info("Rasterizing %s at %d DPI (quality %d)", source_path, dpi, quality)
        try:
            completed = run_subprocess(
                command,
                timeout=timeout,
                cancel_event=cancel_event,
                check=False,
            )
        except CommandAborted as exc:
            raise RasterizationError(f"ghostscript {exc.reason}", output=exc.output) from exc
        except OSError as exc:
            raise DependencyMissingError(f"Ghostscript could not be started: {exc}") from exc

        if completed.returncode != 0:
            raise RasterizationError(
                f"ghostscript failed: exit status {completed.returncode}",
                output=completed.stdout,
                returncode=completed.returncode,
            )

        pages = collect_page_images(out_path)
        LOGGER.debug("Ghostscript produced %d page images", len(pages))
        return pages


__all__ = [
    "GHOSTSCRIPT_NAMES",
    "GHOSTSCRIPT_PATHS",
    "GhostscriptRasterizer",
    "PAGE_PATTERN",
    "PageImage",
    "Rasterizer",
    "collect_page_images",
    "describe_pages",
    "find_ghostscript",
    "page_number",
]
