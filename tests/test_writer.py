from __future__ import annotations

import os
import stat
import sys
from pathlib import Path

import pytest
from PIL import Image
from pypdf import PdfReader

from pdffreezer.exceptions import FontError, ImageDecodeError, WriteError
from pdffreezer.fonts import load_font_metrics, materialized_font
from pdffreezer.rasterizer import describe_pages
from pdffreezer.settings import OverlayCorner
from pdffreezer.writer import OVERLAY_FONT_SIZE, PDFWriter, overlay_origin, page_size_points


@pytest.fixture()
def font_path():
    with materialized_font() as path:
        yield path


def _page_sizes(path: Path) -> list[tuple[float, float]]:
    reader = PdfReader(str(path))
    return [(round(float(page.mediabox.width), 2), round(float(page.mediabox.height), 2)) for page in reader.pages]


@pytest.mark.parametrize(
    ("pixels", "dpi", "expected"),
    [
        ((850, 1100), 100, (612.0, 792.0)),
        ((2550, 3300), 300, (612.0, 792.0)),
        ((1275, 1650), 150, (612.0, 792.0)),
        ((1700, 2200), 200, (612.0, 792.0)),
    ],
)
def test_page_size_points(pixels, dpi, expected) -> None:
    assert page_size_points(*pixels, dpi) == pytest.approx(expected)


def test_page_size_points_rejects_zero_dpi() -> None:
    with pytest.raises(ValueError):
        page_size_points(100, 100, 0)


@pytest.mark.parametrize(
    ("corner", "expected"),
    [
        (OverlayCorner.TOP_LEFT, (1.0, 792.0 - 1.0 - OVERLAY_FONT_SIZE)),
        (OverlayCorner.TOP_RIGHT, (612.0 - 40.0 - 1.0, 792.0 - 1.0 - OVERLAY_FONT_SIZE)),
        (OverlayCorner.BOTTOM_LEFT, (1.0, 1.0)),
        (OverlayCorner.BOTTOM_RIGHT, (612.0 - 40.0 - 1.0, 1.0)),
    ],
)
def test_overlay_origin(corner, expected) -> None:
    assert overlay_origin(corner, 612.0, 792.0, 40.0) == pytest.approx(expected)


def test_pages_keep_physical_size(tmp_path: Path, jpeg_factory, font_path: Path) -> None:
    writer = PDFWriter(font_path)
    writer.add_page(jpeg_factory(850, 1100), dpi=100)
    writer.add_page(jpeg_factory(1100, 850), dpi=100)
    writer.add_page(jpeg_factory(425, 550), dpi=100)

    output = writer.save(tmp_path / "out.pdf")

    assert writer.page_count == 3
    assert _page_sizes(output) == [(612.0, 792.0), (792.0, 612.0), (306.0, 396.0)]


def test_image_is_embedded_unchanged(tmp_path: Path, jpeg_factory, font_path: Path) -> None:
    image = jpeg_factory(200, 300)
    writer = PDFWriter(font_path)
    writer.add_page(image, dpi=72)
    output = writer.save(tmp_path / "out.pdf")

    page = PdfReader(str(output)).pages[0]
    xobject = page["/Resources"]["/XObject"]["/Im0"].get_object()

    assert xobject["/Filter"] == "/DCTDecode"
    assert xobject["/ColorSpace"] == "/DeviceRGB"
    assert (xobject["/Width"], xobject["/Height"]) == (200, 300)
    assert xobject._data == image.read_bytes()


def test_grayscale_jpeg_uses_device_gray(tmp_path: Path, jpeg_factory, font_path: Path) -> None:
    writer = PDFWriter(font_path)
    writer.add_page(jpeg_factory(100, 100, mode="L"), dpi=72)
    output = writer.save(tmp_path / "gray.pdf")

    xobject = PdfReader(str(output)).pages[0]["/Resources"]["/XObject"]["/Im0"].get_object()
    assert xobject["/ColorSpace"] == "/DeviceGray"


def test_overlay_text_only_on_requested_page(tmp_path: Path, jpeg_factory, font_path: Path) -> None:
    writer = PDFWriter(font_path)
    writer.add_page(jpeg_factory(), "AR0007", OverlayCorner.BOTTOM_RIGHT, dpi=100)
    writer.add_page(jpeg_factory(), dpi=100)
    output = writer.save(tmp_path / "stamped.pdf")

    reader = PdfReader(str(output))
    first, second = reader.pages

    assert "AR0007" in first.extract_text()
    assert "AR0007" not in second.extract_text()
    assert "/Font" in first["/Resources"]
    assert "/Font" not in second["/Resources"]
    content = first["/Contents"].get_object().get_data()
    assert b"1 0 0 rg" in content
    assert b"/F1 12 Tf" in content


def test_overlay_position_in_content_stream(tmp_path: Path, jpeg_factory, font_path: Path) -> None:
    metrics = load_font_metrics(font_path)
    width = metrics.text_width("AR0042", OVERLAY_FONT_SIZE)
    writer = PDFWriter(font_path)
    writer.add_page(jpeg_factory(850, 1100), "AR0042", "top-right", dpi=100)
    output = writer.save(tmp_path / "corner.pdf")

    content = PdfReader(str(output)).pages[0]["/Contents"].get_object().get_data().decode("ascii")
    x, y = overlay_origin(OverlayCorner.TOP_RIGHT, 612.0, 792.0, width)

    assert f"{y:.4f}".rstrip("0").rstrip(".") in content
    assert f"{x:.4f}".rstrip("0").rstrip(".") in content
    assert x + width == pytest.approx(611.0)


def test_font_embedded_once(tmp_path: Path, jpeg_factory, font_path: Path) -> None:
    writer = PDFWriter(font_path)
    writer.add_page(jpeg_factory(), "AR0001", dpi=100)
    writer.add_page(jpeg_factory(), "AR0002", dpi=100)
    output = writer.save(tmp_path / "fonts.pdf")

    reader = PdfReader(str(output))
    refs = {page["/Resources"]["/Font"].raw_get("/F1").idnum for page in reader.pages}
    font = reader.pages[0]["/Resources"]["/Font"]["/F1"].get_object()

    assert len(refs) == 1
    assert font["/Subtype"] == "/TrueType"
    assert font["/Encoding"] == "/WinAnsiEncoding"
    assert "/FontFile2" in font["/FontDescriptor"].get_object()


def test_missing_font_only_breaks_stamped_pages(tmp_path: Path, jpeg_factory) -> None:
    writer = PDFWriter(tmp_path / "missing.ttf")
    writer.add_page(jpeg_factory(), dpi=100)

    with pytest.raises(FontError) as excinfo:
        writer.add_page(jpeg_factory(), "AR0001", dpi=100)

    assert "failed to set font" in str(excinfo.value)
    assert writer.page_count == 1


def test_unencodable_overlay_text(jpeg_factory, font_path: Path) -> None:
    writer = PDFWriter(font_path)
    with pytest.raises(FontError):
        writer.add_page(jpeg_factory(), "AR一", dpi=100)


def test_non_jpeg_page_is_rejected(tmp_path: Path, font_path: Path) -> None:
    png = tmp_path / "page-1.jpg"
    Image.new("RGB", (10, 10), "white").save(png, format="PNG")
    writer = PDFWriter(font_path)

    with pytest.raises(ImageDecodeError):
        writer.add_page(png, dpi=100)


@pytest.mark.parametrize("content", [None, b"", b"garbage"])
def test_unreadable_page_is_rejected(tmp_path: Path, font_path: Path, content) -> None:
    path = tmp_path / "page-1.jpg"
    if content is not None:
        path.write_bytes(content)
    writer = PDFWriter(font_path)

    with pytest.raises(ImageDecodeError):
        writer.add_page(path, dpi=100)


def test_save_failure_leaves_nothing_behind(
    tmp_path: Path, jpeg_factory, font_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    writer = PDFWriter(font_path)
    writer.add_page(jpeg_factory(), dpi=100)
    target = tmp_path / "out" / "result.pdf"

    def failing_replace(*_: object) -> None:
        raise OSError("read-only file system")

    monkeypatch.setattr("pdffreezer.writer.os.replace", failing_replace)

    with pytest.raises(WriteError):
        writer.save(target)

    assert not target.exists()
    assert list(target.parent.iterdir()) == []


def test_save_replaces_existing_file(tmp_path: Path, jpeg_factory, font_path: Path) -> None:
    target = tmp_path / "result.pdf"
    target.write_bytes(b"old")
    writer = PDFWriter(font_path)
    writer.add_page(jpeg_factory(), dpi=100)

    writer.save(target)

    assert target.read_bytes().startswith(b"%PDF-")
    assert len(PdfReader(str(target)).pages) == 1


@pytest.fixture()
def umask_022():
    previous = os.umask(0o022)
    yield
    os.umask(previous)


@pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX permissions")
def test_saved_file_gets_default_permissions(tmp_path: Path, jpeg_factory, umask_022) -> None:
    writer = PDFWriter(None)
    writer.add_page(jpeg_factory(), dpi=100)

    output = writer.save(tmp_path / "out.pdf")

    assert stat.S_IMODE(output.stat().st_mode) == 0o644


@pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX permissions")
def test_overwrite_keeps_existing_permissions(tmp_path: Path, jpeg_factory, umask_022) -> None:
    target = tmp_path / "shared.pdf"
    target.write_bytes(b"old")
    target.chmod(0o664)
    writer = PDFWriter(None)
    writer.add_page(jpeg_factory(), dpi=100)

    writer.save(target)

    assert stat.S_IMODE(target.stat().st_mode) == 0o664


def test_add_page_image_uses_rasterized_dpi(tmp_path: Path, jpeg_factory, font_path: Path) -> None:
    pages = describe_pages([jpeg_factory(850, 1100), jpeg_factory(1275, 1650)], dpi=150)
    writer = PDFWriter(font_path)
    writer.add_page_image(pages[0], "AR0003")
    writer.add_page_image(pages[1])

    output = writer.save(tmp_path / "described.pdf")

    assert _page_sizes(output) == [(408.0, 528.0), (612.0, 792.0)]
    assert "AR0003" in PdfReader(str(output)).pages[0].extract_text()
