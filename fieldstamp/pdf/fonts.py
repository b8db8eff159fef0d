"""
Font resources for a single overlay call.

Exactly one regular and one bold face are loaded per call. Each page gets the
font through Page.insert_font() with the same buffer, which MuPDF resolves to a
single embedded font object shared by every page of the document.
"""
import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional, Set

import fitz  # PyMuPDF

from fieldstamp.config import Settings

logger = logging.getLogger(__name__)

# Unicode-capable system fonts, in order of preference
FONT_PATHS = {
    "regular": [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    ],
    "bold": [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/truetype/freefont/FreeSansBold.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    ],
}

# PDF Base-14 fallbacks built into MuPDF (Helvetica, Helvetica-Bold)
BUILTIN_FONTS = {
    "regular": "helv",
    "bold": "hebo",
}

# Resource names for embedded faces
EMBEDDED_NAMES = {
    "regular": "FSReg",
    "bold": "FSBold",
}


def _find_font(style: str = "regular", override: Optional[str] = None) -> Optional[str]:
    """Find a font file for the style, preferring an explicit override."""
    if override:
        if os.path.exists(override):
            return override
        logger.warning(f"Configured {style} font not found: {override}")
    for path in FONT_PATHS.get(style, FONT_PATHS["regular"]):
        if os.path.exists(path):
            return path
    return None


@dataclass(frozen=True)
class FontHandle:
    """A font face usable on any page of the current document."""
    name: str
    font: fitz.Font
    buffer: Optional[bytes] = None
    source: str = "builtin"

    @property
    def is_builtin(self) -> bool:
        return self.buffer is None

    def text_length(self, text: str, fontsize: float) -> float:
        """Advance width of text at the given size, in points."""
        return self.font.text_length(text, fontsize=fontsize)


def _load_handle(style: str, override: Optional[str]) -> FontHandle:
    path = _find_font(style, override)
    if path:
        try:
            with open(path, "rb") as f:
                buffer = f.read()
            return FontHandle(
                name=EMBEDDED_NAMES[style],
                font=fitz.Font(fontbuffer=buffer),
                buffer=buffer,
                source=path,
            )
        except Exception as e:
            logger.warning(f"Font {path} failed: {e}")

    builtin = BUILTIN_FONTS[style]
    return FontHandle(name=builtin, font=fitz.Font(builtin))


class FontResources:
    """Regular and bold font handles shared by every renderer of one call."""

    def __init__(self, regular: FontHandle, bold: FontHandle):
        self.regular = regular
        self.bold = bold
        self._registered: Dict[int, Set[str]] = {}

    @classmethod
    def load(cls, settings: Settings) -> "FontResources":
        resources = cls(
            regular=_load_handle("regular", settings.font_regular_path),
            bold=_load_handle("bold", settings.font_bold_path),
        )
        logger.debug(
            f"Fonts loaded: regular={resources.regular.source}, bold={resources.bold.source}"
        )
        return resources

    def use(self, page: fitz.Page, handle: FontHandle) -> str:
        """
        Make the font available on the page and return its resource name.

        Embedded faces are registered once per page; builtin faces need no
        registration because insert_text() resolves Base-14 names itself.
        """
        if handle.is_builtin:
            return handle.name

        names = self._registered.setdefault(page.number, set())
        if handle.name not in names:
            page.insert_font(fontname=handle.name, fontbuffer=handle.buffer)
            names.add(handle.name)
        return handle.name
