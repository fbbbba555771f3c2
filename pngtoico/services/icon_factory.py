from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional, Sequence, Union

from PIL import Image

from pngtoico.services import encoder
from pngtoico.services.ico_layout import IconDirectoryEntry
from pngtoico.services.normalize import normalize, normalize_all
from pngtoico.services.resize import ResampleQuality, resize
from pngtoico.services.sizes import SizeProfile, pick_source, resolve_sizes, sort_by_size

logger = logging.getLogger(__name__)


def _require(value: object, name: str) -> None:
    if value is None:
        raise ValueError(f"{name} must not be None")


def _release(images: Iterable[Image.Image], owned_elsewhere: Iterable[Image.Image]) -> None:
    keep = {id(image) for image in owned_elsewhere}
    for image in images:
        if id(image) not in keep:
            image.close()


def convert(
    images: Optional[Iterable[Image.Image]],
    sink: Optional[BinaryIO],
    sizes: Optional[Sequence[int]] = None,
    *,
    quality: ResampleQuality = ResampleQuality.HIGH_QUALITY,
    bottom_up: bool = False,
) -> List[IconDirectoryEntry]:
    """Pack ``images`` into a raw-bitmap icon written to ``sink``.

    With ``sizes`` every target is resized from the smallest source that is at
    least as wide; without, the normalized sources are written as they are.
    Images below the minimum icon size are skipped, so the result may be an
    icon with no entries.
    """

    _require(images, "images")
    _require(sink, "sink")
    targets = resolve_sizes(sizes) if sizes else ()

    sources = list(images)
    candidates = normalize_all(sources)
    entries: List[Image.Image] = []
    try:
        if targets and candidates:
            ordered = sort_by_size(candidates)
            entries = [resize(pick_source(size, ordered), size, size, quality) for size in targets]
        else:
            entries = list(candidates)
        if not entries:
            logger.warning("No usable source images", extra={"sources": len(sources)})
        return encoder.encode(entries, sink, bottom_up=bottom_up)
    finally:
        _release(entries, owned_elsewhere=sources + candidates)
        _release(candidates, owned_elsewhere=sources)


def profile_images(
    image: Image.Image,
    profile: SizeProfile,
    quality: ResampleQuality = ResampleQuality.HIGH_QUALITY,
) -> List[Image.Image]:
    """Resize ``image`` to every profile size it covers without upscaling."""

    largest = max(image.width, image.height)
    return [resize(image, size, size, quality) for size in profile.sizes if size <= largest]


def save(
    image: Optional[Image.Image],
    sink: Optional[BinaryIO],
    profile: SizeProfile = SizeProfile.APPLICATION,
    *,
    dispose: bool = False,
    quality: ResampleQuality = ResampleQuality.HIGH_QUALITY,
) -> List[IconDirectoryEntry]:
    """Write the ``profile`` sizes of a single image as a PNG-payload icon.

    ``dispose`` transfers ownership of ``image`` and ``sink`` to this call.
    """

    _require(image, "image")
    _require(sink, "sink")

    canonical = normalize(image)
    if canonical is None:
        raise ValueError("Image is too small to be used as an icon")

    sized: List[Image.Image] = []
    try:
        sized = profile_images(canonical, profile, quality)
        return encoder.save(sized, sink, dispose=dispose)
    finally:
        _release(sized, owned_elsewhere=[canonical])
        if canonical is not image:
            canonical.close()
        if dispose:
            image.close()


def save_images(
    images: Optional[Iterable[Image.Image]],
    sink: Optional[BinaryIO],
    *,
    dispose: bool = False,
) -> List[IconDirectoryEntry]:
    """Write an explicit list of images as a PNG-payload icon."""

    _require(images, "images")
    _require(sink, "sink")
    return encoder.save(images, sink, dispose=dispose)


def save_to_path(
    image: Optional[Image.Image],
    path: Union[str, Path, None],
    profile: SizeProfile = SizeProfile.APPLICATION,
) -> List[IconDirectoryEntry]:
    """Create or truncate ``path`` and write the profile icon into it."""

    _require(image, "image")
    if not path:
        raise ValueError("path must not be empty")
    with open(path, "wb") as stream:
        return save(image, stream, profile)
