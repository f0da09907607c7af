from __future__ import annotations

import shutil
import threading
from pathlib import Path
from typing import Callable, Iterator, Sequence
import sys

import pytest
from PIL import Image
from pypdf import PdfWriter

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pdffreezer.app import FreezerApp  # noqa: E402
from pdffreezer.rasterizer import Rasterizer, collect_page_images  # noqa: E402


class FakeRasterizer(Rasterizer):
    """Copies pre-rendered JPEGs into the output directory instead of running Ghostscript."""

    def __init__(self, images: Sequence[Path] = (), *, version: str = "10.02.1") -> None:
        self.images = list(images)
        self.version = version
        self.executable = "fake-gs"
        self.calls: list[dict[str, object]] = []
        self.dependency_error: Exception | None = None

    def check_dependencies(self) -> str:
        if self.dependency_error is not None:
            raise self.dependency_error
        return self.version

    def extract_pages(
        self,
        source,
        out_dir,
        dpi: int,
        quality: int,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> list[Path]:
        out_path = Path(out_dir)
        self.calls.append(
            {
                "source": Path(source),
                "out_dir": out_path,
                "dpi": dpi,
                "quality": quality,
                "timeout": timeout,
                "cancel_event": cancel_event,
            }
        )
        for number, image in enumerate(self.images, start=1):
            shutil.copyfile(image, out_path / f"page-{number}.jpg")
        return collect_page_images(out_path)


@pytest.fixture()
def jpeg_factory(tmp_path: Path) -> Callable[..., Path]:
    counter = {"n": 0}

    def _create(width: int = 850, height: int = 1100, *, name: str | None = None, mode: str = "RGB") -> Path:
        counter["n"] += 1
        folder = tmp_path / "images"
        folder.mkdir(exist_ok=True)
        path = folder / (name or f"image-{counter['n']}.jpg")
        Image.new(mode, (width, height), "white").save(path, format="JPEG", quality=80)
        return path

    return _create


@pytest.fixture()
def sample_pdf(tmp_path: Path) -> Path:
    pdf_path = tmp_path / "sample.pdf"
    writer = PdfWriter()
    for _ in range(3):
        writer.add_blank_page(width=612, height=792)
    writer.add_metadata({"/Producer": "pdffreezer-tests", "/Title": "Sample"})
    with pdf_path.open("wb") as stream:
        writer.write(stream)
    return pdf_path


@pytest.fixture()
def config_dir(tmp_path: Path) -> Path:
    return tmp_path / "config"


@pytest.fixture()
def three_pages(jpeg_factory: Callable[..., Path]) -> list[Path]:
    return [jpeg_factory(850, 1100), jpeg_factory(850, 1100), jpeg_factory(1100, 850)]


@pytest.fixture()
def fake_rasterizer(three_pages: list[Path]) -> FakeRasterizer:
    return FakeRasterizer(three_pages)


@pytest.fixture()
def rasterizer_factory() -> Callable[..., FakeRasterizer]:
    return FakeRasterizer


@pytest.fixture()
def app(config_dir: Path, fake_rasterizer: FakeRasterizer) -> Iterator[FreezerApp]:
    instance = FreezerApp(config_dir, rasterizer=fake_rasterizer)
    yield instance
    instance.close()
