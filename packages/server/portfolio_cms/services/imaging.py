"""
Image codec helpers for gallery images and thumbnails.

Every function takes raw upload bytes and returns re-encoded bytes in the
configured output format. Orientation is fixed from EXIF before resizing
and metadata is dropped on save. Undecodable input raises
`ImageProcessingFailed` (a client error, never a crash).
"""

from __future__ import annotations

import io
import re

from PIL import Image, ImageOps, UnidentifiedImageError

from portfolio_cms.core.errors import ImageProcessingFailed

DEFAULT_BACKGROUND = "#222222"
MAX_PADDING_PERCENT = 40

_SHORT_HEX_RE = re.compile(r"^#([0-9a-fA-F]{3})$")
_LONG_HEX_RE = re.compile(r"^#([0-9a-fA-F]{6})$")

_PIL_FORMATS = {"webp": "WEBP", "png": "PNG", "jpeg": "JPEG"}


def normalize_hex_color(value: object, fallback: str = DEFAULT_BACKGROUND) -> str:
    """`#abc` / `#AABBCC` -> `#aabbcc`; anything else -> fallback."""
    text = str(value or "").strip()
    short = _SHORT_HEX_RE.match(text)
    if short:
        return "#" + "".join(ch * 2 for ch in short.group(1)).lower()
    full = _LONG_HEX_RE.match(text)
    if full:
        return "#" + full.group(1).lower()
    return fallback


def clamp_padding(value: object, default: float = 15) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return max(0.0, min(float(MAX_PADDING_PERCENT), number))


def _open(data: bytes, what: str) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
        return ImageOps.exif_transpose(image)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageProcessingFailed(f"Could not process the uploaded {what}.") from exc


def _encode(image: Image.Image, fmt: str, quality: int) -> bytes:
    pil_format = _PIL_FORMATS[fmt]
    if pil_format == "JPEG":
        if image.mode in ("RGBA", "LA", "P"):
            image = image.convert("RGBA")
            background = Image.new("RGB", image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[-1])
            image = background
        elif image.mode != "RGB":
            image = image.convert("RGB")
    elif image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA" if "A" in image.getbands() or image.mode == "P" else "RGB")

    buffer = io.BytesIO()
    save_kwargs: dict = {}
    if pil_format == "WEBP":
        save_kwargs = {"quality": quality, "method": 4}
    elif pil_format == "JPEG":
        save_kwargs = {"quality": quality, "optimize": True}
    elif pil_format == "PNG":
        save_kwargs = {"optimize": True}
    image.save(buffer, format=pil_format, **save_kwargs)
    return buffer.getvalue()


def fit_to_width(data: bytes, max_width: int, fmt: str = "webp", quality: int = 82) -> bytes:
    """Gallery image: shrink to `max_width` keeping aspect; never enlarge."""
    image = _open(data, "image")
    if image.width > max_width:
        height = max(1, round(image.height * max_width / image.width))
        image = image.resize((max_width, height), Image.LANCZOS)
    return _encode(image, fmt, quality)


def cover_thumbnail(data: bytes, width: int, height: int, fmt: str = "webp", quality: int = 82) -> bytes:
    """Thumbnail: scale and center-crop to exactly width x height."""
    image = _open(data, "thumbnail")
    image = ImageOps.fit(image, (width, height), method=Image.LANCZOS, centering=(0.5, 0.5))
    return _encode(image, fmt, quality)


def logo_on_background(
    data: bytes,
    width: int,
    height: int,
    background: str = DEFAULT_BACKGROUND,
    padding_percent: float = 15,
    fmt: str = "webp",
    quality: int = 82,
) -> bytes:
    """Thumbnail from a transparent logo centered on a solid color.

    Padding is a percentage of the smaller target side; the logo is scaled
    down to fit the padded box and never enlarged.
    """
    color = normalize_hex_color(background)
    padding_px = round(min(width, height) * clamp_padding(padding_percent) / 100)
    box = (max(1, width - padding_px * 2), max(1, height - padding_px * 2))

    logo = _open(data, "logo").convert("RGBA")
    logo.thumbnail(box, Image.LANCZOS)

    canvas = Image.new("RGBA", (width, height), color)
    offset = ((width - logo.width) // 2, (height - logo.height) // 2)
    canvas.paste(logo, offset, mask=logo)
    return _encode(canvas, fmt, quality)
