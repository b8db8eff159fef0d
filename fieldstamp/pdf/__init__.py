# PDF module
from fieldstamp.pdf.errors import OverlayError, InputError, FieldError
from fieldstamp.pdf.overlay import (
    FieldOverlayEngine,
    OverlayResult,
    overlay_fields,
    parse_field,
)
from fieldstamp.pdf.image_fit import compute_letterbox, fit_image

__all__ = [
    "OverlayError",
    "InputError",
    "FieldError",
    "FieldOverlayEngine",
    "OverlayResult",
    "overlay_fields",
    "parse_field",
    "compute_letterbox",
    "fit_image",
]
