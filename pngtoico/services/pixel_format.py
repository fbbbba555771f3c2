from __future__ import annotations

from enum import Enum

import numpy as np
from PIL import Image


class PixelFormat(str, Enum):
    """Pillow image modes that can reach the encoder."""

    MONO = "1"
    GRAYSCALE = "L"
    PALETTE = "P"
    GRAYSCALE_ALPHA = "LA"
    GRAYSCALE_PREMULTIPLIED = "La"
    PALETTE_ALPHA = "PA"
    INT16 = "I;16"
    INT16_LE = "I;16L"
    INT16_BE = "I;16B"
    INT16_NATIVE = "I;16N"
    RGB = "RGB"
    YCBCR = "YCbCr"
    LAB = "LAB"
    HSV = "HSV"
    RGBA = "RGBA"
    RGBA_PREMULTIPLIED = "RGBa"
    RGBX = "RGBX"
    CMYK = "CMYK"
    INT32 = "I"
    FLOAT32 = "F"

    @property
    def bits_per_pixel(self) -> int:
        return _BITS_PER_PIXEL[self]

    @classmethod
    def of(cls, image: Image.Image) -> PixelFormat:
        try:
            return cls(image.mode)
        except ValueError as exc:
            raise ValueError(f"Unsupported pixel format: {image.mode}") from exc


_BITS_PER_PIXEL = {
    PixelFormat.MONO: 1,
    PixelFormat.GRAYSCALE: 8,
    PixelFormat.PALETTE: 8,
    PixelFormat.GRAYSCALE_ALPHA: 16,
    PixelFormat.GRAYSCALE_PREMULTIPLIED: 16,
    PixelFormat.PALETTE_ALPHA: 16,
    PixelFormat.INT16: 16,
    PixelFormat.INT16_LE: 16,
    PixelFormat.INT16_BE: 16,
    PixelFormat.INT16_NATIVE: 16,
    PixelFormat.RGB: 24,
    PixelFormat.YCBCR: 24,
    PixelFormat.LAB: 24,
    PixelFormat.HSV: 24,
    PixelFormat.RGBA: 32,
    PixelFormat.RGBA_PREMULTIPLIED: 32,
    PixelFormat.RGBX: 32,
    PixelFormat.CMYK: 32,
    PixelFormat.INT32: 32,
    PixelFormat.FLOAT32: 32,
}

CANONICAL_FORMAT = PixelFormat.RGBA


def bits_per_pixel(image: Image.Image) -> int:
    """Return the colour depth recorded for ``image`` in icon directories."""

    return PixelFormat.of(image).bits_per_pixel


# Greyscale modes whose samples do not fit a byte. Values are read on a
# 16-bit scale and narrowed proportionally.
_WIDE_GRAYSCALE = frozenset(
    {
        PixelFormat.INT16.value,
        PixelFormat.INT16_LE.value,
        PixelFormat.INT16_BE.value,
        PixelFormat.INT16_NATIVE.value,
        PixelFormat.INT32.value,
        PixelFormat.FLOAT32.value,
    }
)
_WIDE_SAMPLE_MAX = 0xFFFF

# Pillow has no direct conversion from these modes to RGBA.
_CONVERSION_ROUTES = {
    PixelFormat.GRAYSCALE_PREMULTIPLIED.value: PixelFormat.GRAYSCALE_ALPHA.value,
}


def _narrow_grayscale(image: Image.Image) -> Image.Image:
    samples = np.clip(np.asarray(image, dtype=np.float64), 0, _WIDE_SAMPLE_MAX)
    scaled = np.rint(samples * (255 / _WIDE_SAMPLE_MAX)).astype(np.uint8)
    return Image.fromarray(scaled)


def to_canonical(image: Image.Image) -> Image.Image:
    """Return a new copy of ``image`` in the canonical RGBA format.

    Wide greyscale samples are scaled down to 8 bits rather than clamped, so a
    16-bit mid grey stays mid grey.
    """

    if image.mode in _WIDE_GRAYSCALE:
        intermediate = _narrow_grayscale(image)
    elif image.mode in _CONVERSION_ROUTES:
        intermediate = image.convert(_CONVERSION_ROUTES[image.mode])
    else:
        return image.convert(CANONICAL_FORMAT.value)

    try:
        return intermediate.convert(CANONICAL_FORMAT.value)
    finally:
        intermediate.close()
