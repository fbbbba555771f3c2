from __future__ import annotations

import io
import logging
from typing import Iterable, List, Optional

from PIL import Image

from pngtoico.services.ico_layout import MAX_SIZE, MIN_SIZE
from pngtoico.services.pixel_format import CANONICAL_FORMAT, to_canonical
from pngtoico.services.resize import resize

logger = logging.getLogger(__name__)

CANONICAL_ENCODING = "PNG"


def _square_canvas(image: Image.Image) -> Image.Image:
    if image.width > MAX_SIZE or image.height > MAX_SIZE:
        return resize(image, MAX_SIZE, MAX_SIZE)
    if image.width != image.height:
        side = max(image.width, image.height)
        return resize(image, side, side)
    return image


def _reencode(image: Image.Image) -> Image.Image:
    buffer = io.BytesIO()
    image.save(buffer, format=CANONICAL_ENCODING)
    buffer.seek(0)
    reloaded = Image.open(buffer)
    reloaded.load()
    return reloaded


def is_canonical(image: Image.Image) -> bool:
    return (
        image.mode == CANONICAL_FORMAT.value
        and image.format == CANONICAL_ENCODING
        and image.width == image.height
        and MIN_SIZE <= image.width <= MAX_SIZE
    )


def normalize(image: Optional[Image.Image]) -> Optional[Image.Image]:
    """Bring ``image`` into canonical form: square RGBA, at most 256px, PNG encoded.

    Images smaller than the minimum icon size are rejected with ``None``.
    Non-square images are stretched onto the square canvas.
    """

    if image is None or image.width < MIN_SIZE or image.height < MIN_SIZE:
        logger.debug(
            "Dropping undersized image",
            extra={"size": list(image.size) if image is not None else None},
        )
        return None

    current = image
    steps = [to_canonical] if image.mode != CANONICAL_FORMAT.value else []
    steps.append(_square_canvas)
    try:
        for step in steps:
            current = _replace(image, current, step(current))
        if current.format != CANONICAL_ENCODING:
            current = _replace(image, current, _reencode(current))
    except Exception:
        if current is not image:
            current.close()
        raise
    return current


def _replace(source: Image.Image, previous: Image.Image, result: Image.Image) -> Image.Image:
    # Intermediates are ours to release; the caller's source never is.
    if previous is not source and previous is not result:
        previous.close()
    return result


def normalize_all(images: Iterable[Optional[Image.Image]]) -> List[Image.Image]:
    """Normalize every image, dropping the ones that were rejected."""

    normalized = (normalize(image) for image in images)
    return [image for image in normalized if image is not None]
