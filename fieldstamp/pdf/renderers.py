"""
Field renderers: one per field type.

Each renderer draws a single field onto a PageSurface and returns True when
something was drawn, False when the field had nothing to draw. Failures are
raised as FieldError (or any other exception) and isolated by the dispatcher.
"""
import logging
from typing import Callable, Dict, Union

from fieldstamp.config import Settings
from fieldstamp.models import (
    CheckboxField,
    DateField,
    FieldDescriptor,
    FieldType,
    ImageField,
    RadioField,
    SignatureField,
    TextField,
    UnknownField,
)
from fieldstamp.pdf.errors import FieldError
from fieldstamp.pdf.image_fit import DATA_URL_PREFIX, decode_data_url, fit_image, to_jpeg
from fieldstamp.pdf.surface import BLACK, GRAY, WHITE, PageSurface

logger = logging.getLogger(__name__)

TEXT_MAX_FONT_SIZE = 12
TEXT_PADDING_X = 5
CHECK_MARK = "X"
CHECK_MARK_SCALE = 0.8
RADIO_DOT_SCALE = 0.5
CONTROL_BORDER_WIDTH = 1.5
TEXT_BORDER_WIDTH = 0.5


def render_text(surface: PageSurface, field: Union[TextField, DateField], settings: Settings) -> bool:
    """Bordered white box with the value vertically centered, left padded."""
    if not field.value:
        return False

    box = surface.place(field.position.x, field.position.y, field.size.width, field.size.height)
    surface.draw_rect(box.x, box.y, box.w, box.h, border_color=GRAY, border_width=TEXT_BORDER_WIDTH, fill=WHITE)

    font_size = min(TEXT_MAX_FONT_SIZE, box.h * 0.5)
    baseline_y = box.y + box.h / 2 - font_size / 2
    surface.draw_text(field.value, box.x + TEXT_PADDING_X, baseline_y, surface.fonts.regular, font_size)
    return True


def render_checkbox(surface: PageSurface, field: CheckboxField, settings: Settings) -> bool:
    """Square box; a bold centered X when checked."""
    box = surface.place(field.position.x, field.position.y, field.size.width, field.size.height)
    side = min(box.w, box.h)
    surface.draw_rect(box.x, box.y, side, side, border_color=BLACK, border_width=CONTROL_BORDER_WIDTH, fill=WHITE)

    if field.checked:
        bold = surface.fonts.bold
        mark_size = side * CHECK_MARK_SCALE
        glyph_width = bold.text_length(CHECK_MARK, mark_size)
        surface.draw_text(
            CHECK_MARK,
            box.x + side / 2 - glyph_width / 2,
            box.y + side / 2 - mark_size / 2,
            bold,
            mark_size,
        )
    return True


def render_radio(surface: PageSurface, field: RadioField, settings: Settings) -> bool:
    """Circle inscribed in the box's lower-left square; a solid dot when checked."""
    box = surface.place(field.position.x, field.position.y, field.size.width, field.size.height)
    radius = min(box.w, box.h) / 2
    center_x = box.x + radius
    center_y = box.y + radius
    surface.draw_circle(center_x, center_y, radius, border_color=BLACK, border_width=CONTROL_BORDER_WIDTH, fill=WHITE)

    if field.checked:
        surface.draw_circle(center_x, center_y, radius * RADIO_DOT_SCALE, border_color=None, fill=BLACK)
    return True


def render_image(surface: PageSurface, field: Union[SignatureField, ImageField], settings: Settings) -> bool:
    """
    Letterbox the data URL image into the field box and stamp it.

    PNG keeps the transparent padding; JPEG is used only when the PNG
    cannot be embedded.
    """
    if not field.value or not field.value.startswith(DATA_URL_PREFIX):
        return False

    box = surface.place(field.position.x, field.position.y, field.size.width, field.size.height)
    raw = decode_data_url(field.value, max_bytes=settings.max_image_bytes)
    png = fit_image(raw, box.w, box.h)

    try:
        surface.draw_image(png, box.x, box.y, box.w, box.h, image_format="png")
    except Exception as png_error:
        logger.warning(f"PNG embed failed, retrying as JPEG: {png_error}")
        try:
            surface.draw_image(to_jpeg(png), box.x, box.y, box.w, box.h, image_format="jpeg")
        except Exception as e:
            raise FieldError(f"Failed to embed image: {e}", code="IMAGE_EMBED_FAILED") from e
    return True


def render_unknown(surface: PageSurface, field: UnknownField, settings: Settings) -> bool:
    return False


Renderer = Callable[[PageSurface, FieldDescriptor, Settings], bool]

RENDERERS: Dict[FieldType, Renderer] = {
    FieldType.TEXT: render_text,
    FieldType.DATE: render_text,
    FieldType.CHECKBOX: render_checkbox,
    FieldType.RADIO: render_radio,
    FieldType.SIGNATURE: render_image,
    FieldType.IMAGE: render_image,
}


def get_renderer(field: FieldDescriptor) -> Renderer:
    """Renderer for a parsed descriptor. Unknown types get the no-op renderer."""
    if isinstance(field, UnknownField):
        return render_unknown
    try:
        return RENDERERS[FieldType(field.type)]
    except (KeyError, ValueError):
        raise FieldError(f"No renderer for field type {field.type!r}", code="UNSUPPORTED_FIELD")
