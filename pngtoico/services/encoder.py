from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from functools import partial
from typing import BinaryIO, Callable, Iterable, List, Sequence

import numpy as np
from PIL import Image

from pngtoico.services.ico_layout import (
    BitmapInfoHeader,
    IconDirectoryEntry,
    IconHeader,
    container_size,
    first_payload_offset,
)
from pngtoico.services.normalize import CANONICAL_ENCODING, normalize_all
from pngtoico.services.pixel_format import CANONICAL_FORMAT, bits_per_pixel, to_canonical

logger = logging.getLogger(__name__)

MAX_ENTRIES = 0xFFFF

PayloadEncoder = Callable[[Image.Image], bytes]


class UnseekableSinkError(OSError):
    """Raised when a payload strategy needs random access the sink lacks."""


@dataclass(frozen=True)
class PlannedEntry:
    entry: IconDirectoryEntry
    payload: bytes


def encode_dib(image: Image.Image, *, bottom_up: bool = False) -> bytes:
    """Encode ``image`` as a bitmap header followed by BGRA pixel rows.

    Rows are written top-to-bottom unless ``bottom_up`` is set.
    """

    rgba = image if image.mode == CANONICAL_FORMAT.value else to_canonical(image)
    try:
        pixels = np.asarray(rgba)[:, :, [2, 1, 0, 3]]
    finally:
        if rgba is not image:
            rgba.close()
    if bottom_up:
        pixels = pixels[::-1]

    header = BitmapInfoHeader(image.width, image.height, bits_per_pixel(image))
    return header.pack() + np.ascontiguousarray(pixels).tobytes()


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=CANONICAL_ENCODING)
    return buffer.getvalue()


def plan_container(
    images: Sequence[Image.Image], encode_payload: PayloadEncoder
) -> List[PlannedEntry]:
    """Encode every payload and lay out directory entries with their offsets."""

    if len(images) > MAX_ENTRIES:
        raise ValueError(f"An icon holds at most {MAX_ENTRIES} images")

    planned = []
    offset = first_payload_offset(len(images))
    for image in images:
        payload = encode_payload(image)
        entry = IconDirectoryEntry(
            width=image.width,
            height=image.height,
            bit_count=bits_per_pixel(image),
            payload_size=len(payload),
            payload_offset=offset,
        )
        planned.append(PlannedEntry(entry=entry, payload=payload))
        offset += len(payload)
    return planned


def _is_seekable(sink: BinaryIO) -> bool:
    seekable = getattr(sink, "seekable", None)
    return bool(seekable and seekable())


def write_container(
    images: Iterable[Image.Image],
    sink: BinaryIO,
    encode_payload: PayloadEncoder,
    *,
    random_access: bool = False,
) -> List[IconDirectoryEntry]:
    """Write header, directory and payloads to ``sink``; return the directory.

    With ``random_access`` each payload is written by seeking to its planned
    offset, relative to the sink position at entry.
    """

    if random_access and not _is_seekable(sink):
        raise UnseekableSinkError("Output stream does not support seeking")

    planned = plan_container(list(images), encode_payload)
    start = sink.tell() if random_access else 0

    sink.write(IconHeader(count=len(planned)).pack())
    for item in planned:
        sink.write(item.entry.pack())
    for item in planned:
        if random_access:
            sink.seek(start + item.entry.payload_offset)
        sink.write(item.payload)

    total = container_size([item.entry.payload_size for item in planned])
    logger.info(
        "Icon container written",
        extra={
            "entries": len(planned),
            "bytes": total,
            "sizes": [[item.entry.width, item.entry.height] for item in planned],
        },
    )
    return [item.entry for item in planned]


def encode(
    images: Iterable[Image.Image], sink: BinaryIO, *, bottom_up: bool = False
) -> List[IconDirectoryEntry]:
    """Write ``images`` in input order as raw bitmap entries."""

    return write_container(images, sink, partial(encode_dib, bottom_up=bottom_up))


def save(
    images: Iterable[Image.Image], sink: BinaryIO, *, dispose: bool = False
) -> List[IconDirectoryEntry]:
    """Normalize ``images`` and write them, largest first, as PNG entries.

    ``dispose`` hands ownership of the images and the sink to this call; both
    are closed once writing finishes or fails.
    """

    sources = list(images)
    source_ids = {id(image) for image in sources}
    normalized: List[Image.Image] = []
    try:
        normalized = sorted(
            normalize_all(sources),
            key=lambda image: (image.width, image.height),
            reverse=True,
        )
        return write_container(normalized, sink, encode_png, random_access=True)
    finally:
        for image in normalized:
            if dispose or id(image) not in source_ids:
                image.close()
        if dispose:
            for image in sources:
                image.close()
            sink.close()
