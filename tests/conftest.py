"""
Pytest configuration and fixtures.
"""
import base64
import io
import os
import sys
import tempfile

import pytest

# Add package root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import fitz  # PyMuPDF  # noqa: E402
from PIL import Image  # noqa: E402

from fieldstamp.config import Settings  # noqa: E402

# US Letter in points
LETTER_WIDTH = 612.0
LETTER_HEIGHT = 792.0


def make_pdf(page_count: int = 1, width: float = LETTER_WIDTH, height: float = LETTER_HEIGHT) -> bytes:
    """Build a PDF with labelled pages."""
    doc = fitz.open()
    for number in range(page_count):
        page = doc.new_page(width=width, height=height)
        page.insert_text((50, 100), f"Page {number + 1}", fontsize=24)
    data = doc.tobytes()
    doc.close()
    return data


def make_png(width: int, height: int, color=(255, 0, 0, 255)) -> bytes:
    """Build a solid-color RGBA PNG."""
    buffer = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def to_data_url(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode()}"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def settings():
    """Settings with defaults, independent of the environment."""
    return Settings(
        ENVIRONMENT="test",
        FONT_REGULAR_PATH=None,
        FONT_BOLD_PATH=None,
        ALLOWED_ORIGINS=[],
    )


@pytest.fixture
def sample_pdf():
    """Single-page US Letter PDF."""
    return make_pdf(1)


@pytest.fixture
def three_page_pdf():
    """Three-page US Letter PDF."""
    return make_pdf(3)


@pytest.fixture
def signature_png():
    """Opaque 200x100 PNG (2:1 aspect)."""
    return make_png(200, 100)


@pytest.fixture
def signature_data_url(signature_png):
    return to_data_url(signature_png)
