from __future__ import annotations

from enum import Enum
from typing import Iterable, List, Sequence, Tuple

from PIL import Image

from pngtoico.services.ico_layout import MAX_SIZE, MIN_SIZE


class SizeProfile(str, Enum):
    APPLICATION = "application"
    GENERIC = "generic"

    @property
    def sizes(self) -> Tuple[int, ...]:
        mapping = {
            SizeProfile.APPLICATION: (256, 128, 64, 48, 32, 24, 16),
            SizeProfile.GENERIC: (256, 128, 96, 64, 48, 40, 32, 24, 22, 20, 16, 14, 10, 8),
        }
        return mapping[self]


def resolve_sizes(sizes: Iterable[int]) -> Tuple[int, ...]:
    """Validate target sizes, collapsing duplicates while keeping their order."""

    resolved: List[int] = []
    for size in sizes:
        if not MIN_SIZE <= size <= MAX_SIZE:
            raise ValueError(f"Icon sizes must be between {MIN_SIZE} and {MAX_SIZE} pixels, got {size}")
        if size not in resolved:
            resolved.append(size)
    return tuple(resolved)


def parse_sizes(raw: str) -> Tuple[int, ...]:
    """Parse a comma separated size list such as ``"16,32,256"``."""

    try:
        values = [int(part) for part in raw.split(",") if part.strip()]
    except ValueError as exc:
        raise ValueError("Icon sizes must be a comma separated list of integers") from exc
    return resolve_sizes(values)


def sort_by_size(images: Iterable[Image.Image]) -> List[Image.Image]:
    return sorted(images, key=lambda image: (image.width, image.height))


def pick_source(target: int, ordered: Sequence[Image.Image]) -> Image.Image:
    """Return the smallest candidate at least ``target`` wide.

    ``ordered`` must be sorted ascending (see :func:`sort_by_size`). When every
    candidate is narrower than the target, the largest one is used.
    """

    if not ordered:
        raise ValueError("No source images to choose from")
    for image in ordered:
        if image.width >= target:
            return image
    return ordered[-1]
