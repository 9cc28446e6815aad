"""Shared test configuration and fixtures for PageForge test suite."""

import io
import sys
from pathlib import Path

import pytest

# Add backend to Python path so imports work
backend_dir = str(Path(__file__).parent.parent / "backend")
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)


def make_image_bytes(width: int, height: int, fmt: str = "PNG", mode: str = "RGB", color=(200, 60, 40)) -> bytes:
    """Encode a solid-colour image in memory."""
    from PIL import Image

    if mode == "RGBA" and len(color) == 3:
        color = (*color, 128)
    img = Image.new(mode, (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_oriented_jpeg(orientation: int = 6) -> bytes:
    """
    400x200 stored JPEG, left half red and right half blue, tagged with an
    EXIF orientation. Orientation 6 displays it as 200x400 with red on top.
    """
    from PIL import Image

    img = Image.new("RGB", (400, 200), (220, 20, 20))
    img.paste((20, 20, 220), (200, 0, 400, 200))
    exif = Image.Exif()
    exif[0x0112] = orientation
    buf = io.BytesIO()
    img.save(buf, format="JPEG", exif=exif, quality=95)
    return buf.getvalue()


def make_pdf_bytes(page_sizes_pt: list[tuple[float, float]]) -> bytes:
    """Build a PDF with one page per (width, height) in points, each with a line of text."""
    import fitz

    doc = fitz.open()
    for i, (w, h) in enumerate(page_sizes_pt, start=1):
        page = doc.new_page(width=w, height=h)
        page.insert_text((36, 72), f"Page {i}", fontsize=24)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture(scope="session")
def project_root():
    return Path(__file__).parent.parent


@pytest.fixture
def png_bytes():
    return make_image_bytes(400, 300, "PNG")


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes(300, 600, "JPEG")


@pytest.fixture
def webp_bytes():
    return make_image_bytes(200, 200, "WEBP")


@pytest.fixture
def rgba_png_bytes():
    return make_image_bytes(120, 80, "PNG", mode="RGBA")


@pytest.fixture
def sample_pdf():
    """Two A4 portrait pages and one landscape Letter page."""
    return make_pdf_bytes([(595.28, 841.89), (595.28, 841.89), (792.0, 612.0)])
