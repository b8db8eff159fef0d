"""
Drawing surface for one page.

Renderers call the surface with document-space coordinates; the surface
converts them to PyMuPDF page space, draws, and records a RenderedMark for
each primitive so callers and tests can inspect what a field produced.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple

import fitz  # PyMuPDF

from fieldstamp.pdf.coordinates import Placement, to_page_point, to_page_rect
from fieldstamp.pdf.fonts import FontHandle, FontResources

Color = Tuple[float, float, float]

BLACK: Color = (0, 0, 0)
WHITE: Color = (1, 1, 1)
GRAY: Color = (0.5, 0.5, 0.5)


@dataclass(frozen=True)
class RenderedMark:
    """One drawing primitive in document space."""
    kind: str  # "rect" | "text" | "circle" | "image"
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0
    radius: Optional[float] = None
    text: Optional[str] = None
    font: Optional[str] = None
    font_size: Optional[float] = None
    image_format: Optional[str] = None


class PageSurface:
    """Document-space drawing operations on a single PyMuPDF page."""

    def __init__(self, page: fitz.Page, fonts: FontResources):
        self.page = page
        self.fonts = fonts
        self.page_height = page.rect.height
        self.marks: List[RenderedMark] = []

    def place(self, x: float, y: float, width: float, height: float) -> Placement:
        """Web-space box to a document-space placement on this page."""
        return Placement.from_web(x, y, width, height, self.page_height)

    def draw_rect(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        border_color: Color = BLACK,
        border_width: float = 1.0,
        fill: Optional[Color] = None,
    ) -> None:
        rect = to_page_rect(x, y, width, height, self.page_height)
        shape = self.page.new_shape()
        shape.draw_rect(rect)
        shape.finish(color=border_color, fill=fill, width=border_width)
        shape.commit()
        self.marks.append(RenderedMark("rect", x, y, width, height))

    def draw_circle(
        self,
        center_x: float,
        center_y: float,
        radius: float,
        border_color: Optional[Color] = BLACK,
        border_width: float = 1.0,
        fill: Optional[Color] = None,
    ) -> None:
        center = to_page_point(center_x, center_y, self.page_height)
        shape = self.page.new_shape()
        shape.draw_circle(center, radius)
        shape.finish(color=border_color, fill=fill, width=border_width if border_color else 0)
        shape.commit()
        self.marks.append(RenderedMark("circle", center_x, center_y, radius=radius))

    def draw_text(
        self,
        text: str,
        x: float,
        y: float,
        font: FontHandle,
        font_size: float,
        color: Color = BLACK,
    ) -> None:
        """Draw text with its baseline starting at document-space (x, y)."""
        fontname = self.fonts.use(self.page, font)
        self.page.insert_text(
            to_page_point(x, y, self.page_height),
            text,
            fontname=fontname,
            fontsize=font_size,
            color=color,
        )
        self.marks.append(
            RenderedMark("text", x, y, text=text, font=font.name, font_size=font_size)
        )

    def draw_image(
        self,
        data: bytes,
        x: float,
        y: float,
        width: float,
        height: float,
        image_format: str = "png",
    ) -> None:
        rect = to_page_rect(x, y, width, height, self.page_height)
        self.page.insert_image(rect, stream=data, keep_proportion=False)
        self.marks.append(
            RenderedMark("image", x, y, width, height, image_format=image_format)
        )
