"""
Coordinate conversion between the three systems a field passes through.

- Web space: origin top-left, Y increases downward (caller's field positions).
- Document space: origin bottom-left, Y increases upward (PDF user space).
- Page space: PyMuPDF drawing coordinates, origin top-left of page.rect.

Renderers work in document space. Only the drawing surface maps document
space onto PyMuPDF's page space. No clamping is applied anywhere:
out-of-bounds placements produce off-page marks.
"""
from dataclasses import dataclass
from typing import Tuple

import fitz  # PyMuPDF


@dataclass(frozen=True)
class Placement:
    """
    Field bounding box in document space, in points.

    (x, y) is the lower-left corner of the box.
    """
    x: float
    y: float
    w: float
    h: float

    @classmethod
    def from_web(
        cls,
        x: float,
        y: float,
        w: float,
        h: float,
        page_height: float,
    ) -> "Placement":
        """Create placement from a top-left-origin web position."""
        x_doc, y_doc = to_document_space(x, y, w, h, page_height)
        return cls(x=x_doc, y=y_doc, w=w, h=h)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}


def to_document_space(
    x: float,
    y: float,
    width: float,
    height: float,
    page_height: float,
) -> Tuple[float, float]:
    """
    Convert a web-space box to the document-space lower-left corner.

    x_doc = x
    y_doc = page_height - y - height
    """
    return x, page_height - y - height


def to_page_rect(
    x_doc: float,
    y_doc: float,
    width: float,
    height: float,
    page_height: float,
) -> fitz.Rect:
    """Document-space box to a PyMuPDF rectangle (x0, y0 top, x1, y1 bottom)."""
    y_top = page_height - y_doc - height
    return fitz.Rect(x_doc, y_top, x_doc + width, y_top + height)


def to_page_point(x_doc: float, y_doc: float, page_height: float) -> fitz.Point:
    """Document-space point to a PyMuPDF point."""
    return fitz.Point(x_doc, page_height - y_doc)
