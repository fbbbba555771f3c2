from __future__ import annotations

import logging
import math
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np
from PIL import Image

from pngtoico.services.pixel_format import CANONICAL_FORMAT, to_canonical

logger = logging.getLogger(__name__)

MEMORY_LIMIT_BYTES = 0x80000000 if sys.maxsize > 2**32 else 0x40000000
DEFAULT_FIT_INDICATOR = 1024

# Bicubic kernels read two source pixels on each side per unit of scale.
_BICUBIC_SUPPORT = 2.0


@dataclass(frozen=True)
class ResampleProfile:
    resample: Image.Resampling
    mirror_edges: bool
    reducing_gap: Optional[float] = None


class ResampleQuality(str, Enum):
    ANTI_ALIAS = "antialias"
    HIGH_QUALITY = "high_quality"
    HIGH_SPEED = "high_speed"

    @property
    def profile(self) -> ResampleProfile:
        mapping = {
            ResampleQuality.ANTI_ALIAS: ResampleProfile(Image.Resampling.BICUBIC, True, reducing_gap=3.0),
            ResampleQuality.HIGH_QUALITY: ResampleProfile(Image.Resampling.BICUBIC, True),
            ResampleQuality.HIGH_SPEED: ResampleProfile(Image.Resampling.NEAREST, False),
        }
        return mapping[self]


def max_dimension(bits_per_pixel: int, memory_limit: int = MEMORY_LIMIT_BYTES) -> int:
    """Largest side length a canvas of the given depth may have."""

    return math.floor(math.sqrt(memory_limit / (bits_per_pixel * 0.125)))


def size_is_valid(width: int, height: int, bits_per_pixel: int = CANONICAL_FORMAT.bits_per_pixel) -> bool:
    bound = max_dimension(bits_per_pixel)
    return 1 <= width <= bound and 1 <= height <= bound


def _mirror_padding(source: Image.Image, width: int, height: int) -> int:
    scale = max(source.width / width, source.height / height, 1.0)
    return math.ceil(_BICUBIC_SUPPORT * scale) + 1


def _resample(source: Image.Image, width: int, height: int, profile: ResampleProfile) -> Image.Image:
    if not profile.mirror_edges:
        return source.resize((width, height), profile.resample, reducing_gap=profile.reducing_gap)

    pad = _mirror_padding(source, width, height)
    array = np.asarray(source)
    padded = Image.fromarray(np.pad(array, ((pad, pad), (pad, pad), (0, 0)), mode="symmetric"))
    try:
        box = (pad, pad, pad + source.width, pad + source.height)
        return padded.resize((width, height), profile.resample, box=box, reducing_gap=profile.reducing_gap)
    finally:
        padded.close()


def resize(
    image: Image.Image,
    width: int,
    height: int,
    quality: ResampleQuality = ResampleQuality.HIGH_QUALITY,
) -> Image.Image:
    """Redraw ``image`` onto a new RGBA canvas of exactly ``width`` x ``height``.

    Targets outside the memory bound are not an error: the original image is
    returned untouched.
    """

    if not size_is_valid(width, height):
        logger.warning(
            "Resize target out of range, keeping original image",
            extra={"target": [width, height], "source": list(image.size)},
        )
        return image

    source = image if image.mode == CANONICAL_FORMAT.value else to_canonical(image)
    try:
        resized = _resample(source, width, height, quality.profile)
    finally:
        if source is not image:
            source.close()

    if "dpi" in image.info:
        resized.info["dpi"] = image.info["dpi"]
    return resized


def resize_to_fit(
    image: Image.Image,
    indicator: int = DEFAULT_FIT_INDICATOR,
    quality: ResampleQuality = ResampleQuality.HIGH_QUALITY,
) -> Image.Image:
    """Shrink ``image`` so neither side exceeds ``indicator``.

    Both sides are scaled by the same whole percentage, so the aspect ratio
    can drift slightly from an exact proportional scale.
    """

    size = [image.width, image.height]
    if indicator <= 0 or (indicator >= size[0] and indicator >= size[1]):
        return image

    for value in size:
        if value <= indicator:
            continue
        percent = math.floor(100 / value * indicator)
        size[0] = int(size[0] * (percent / 100))
        size[1] = int(size[1] * (percent / 100))
        break

    return resize(image, size[0], size[1], quality)
