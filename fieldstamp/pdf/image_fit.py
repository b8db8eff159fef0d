"""
Signature/image payload handling: data URL decoding, letterbox fitting and
the lossy fallback encoding used when a PNG cannot be embedded.
"""
import base64
import binascii
import io
import logging
import math
import re
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from fieldstamp.pdf.errors import FieldError

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:image"
_DATA_URL_HEADER = re.compile(r"^data:image/[\w.+-]+;base64,", re.IGNORECASE)

# Fully transparent RGBA
TRANSPARENT = (0, 0, 0, 0)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def decode_data_url(value: str, max_bytes: Optional[int] = None) -> bytes:
    """
    Decode a data:image/...;base64,... URI to raw image bytes.

    Args:
        value: Data URL from the field descriptor
        max_bytes: Optional upper bound for the decoded payload

    Returns:
        Raw image bytes

    Raises:
        FieldError: If the URL is malformed, the payload is not valid base64,
            is empty or exceeds max_bytes
    """
    match = _DATA_URL_HEADER.match(value or "")
    if not match:
        raise FieldError("Image value is not a base64 data:image URL", code="INVALID_IMAGE")

    payload = "".join(value[match.end():].split())
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise FieldError(f"Failed to decode image payload: {e}", code="INVALID_IMAGE") from e

    if not data:
        raise FieldError("Image payload is empty", code="INVALID_IMAGE")
    if max_bytes is not None and len(data) > max_bytes:
        raise FieldError(
            f"Image payload is {len(data)} bytes, limit is {max_bytes}",
            code="IMAGE_TOO_LARGE",
        )
    return data


def compute_letterbox(
    source_width: int,
    source_height: int,
    target_width: int,
    target_height: int,
) -> Tuple[int, int, int, int]:
    """
    Fit a source image inside a target box without cropping.

    Returns:
        (resize_width, resize_height, offset_x, offset_y) where the offsets
        center the resized image inside the target box.
    """
    source_aspect = source_width / source_height
    target_aspect = target_width / target_height

    offset_x = offset_y = 0
    if source_aspect > target_aspect:
        # Width-constrained
        resize_width = target_width
        resize_height = max(1, _round_half_up(target_width / source_aspect))
        offset_y = _round_half_up((target_height - resize_height) / 2)
    else:
        # Height-constrained
        resize_height = target_height
        resize_width = max(1, _round_half_up(target_height * source_aspect))
        offset_x = _round_half_up((target_width - resize_width) / 2)

    return resize_width, resize_height, offset_x, offset_y


def fit_image(data: bytes, target_width: float, target_height: float) -> bytes:
    """
    Letterbox an image into an exact target_width x target_height PNG.

    The source keeps its aspect ratio, is centered, and the padding is
    fully transparent.

    Raises:
        FieldError: If the box is smaller than 1x1 or the image cannot be decoded
    """
    width = _round_half_up(target_width)
    height = _round_half_up(target_height)
    if width < 1 or height < 1:
        raise FieldError(
            f"Image box {target_width}x{target_height} is too small to render",
            code="INVALID_IMAGE",
        )

    try:
        with Image.open(io.BytesIO(data)) as source:
            source.load()
            rgba = source.convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise FieldError(f"Failed to read image: {e}", code="INVALID_IMAGE") from e

    resize_width, resize_height, offset_x, offset_y = compute_letterbox(
        rgba.width, rgba.height, width, height
    )
    resized = rgba.resize((resize_width, resize_height), Image.Resampling.LANCZOS)

    canvas = Image.new("RGBA", (width, height), TRANSPARENT)
    canvas.paste(resized, (offset_x, offset_y))

    buffer = io.BytesIO()
    canvas.save(buffer, format="PNG")
    logger.debug(
        f"Fitted {rgba.width}x{rgba.height} image into {width}x{height} "
        f"(resized {resize_width}x{resize_height} at +{offset_x}+{offset_y})"
    )
    return buffer.getvalue()


def to_jpeg(png_data: bytes, quality: int = 90) -> bytes:
    """Re-encode an image as JPEG, flattening transparency onto white."""
    with Image.open(io.BytesIO(png_data)) as image:
        rgba = image.convert("RGBA")
    background = Image.new("RGB", rgba.size, (255, 255, 255))
    background.paste(rgba, mask=rgba.getchannel("A"))

    buffer = io.BytesIO()
    background.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()
