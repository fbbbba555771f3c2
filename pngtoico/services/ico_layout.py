from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import List, Sequence

MIN_SIZE = 2
MAX_SIZE = 256

ICON_TYPE = 1
HEADER_FORMAT = "<HHH"
DIRECTORY_ENTRY_FORMAT = "<BBBBHHII"
BITMAP_INFO_HEADER_FORMAT = "<IIIHHII4I"

HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
DIRECTORY_ENTRY_SIZE = struct.calcsize(DIRECTORY_ENTRY_FORMAT)
BITMAP_INFO_HEADER_SIZE = struct.calcsize(BITMAP_INFO_HEADER_FORMAT)
BYTES_PER_DIB_PIXEL = 4
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class IconFormatError(ValueError):
    """Raised when a byte stream is not a well-formed icon container."""


def encode_dimension(value: int) -> int:
    """Map a pixel dimension to its directory byte; 256 is stored as 0."""

    if not 0 < value <= MAX_SIZE:
        raise ValueError(f"Icon dimension must be between 1 and {MAX_SIZE}, got {value}")
    return 0 if value == MAX_SIZE else value


def decode_dimension(value: int) -> int:
    return MAX_SIZE if value == 0 else value


def first_payload_offset(count: int) -> int:
    return HEADER_SIZE + DIRECTORY_ENTRY_SIZE * count


def dib_image_size(width: int, height: int) -> int:
    return width * height * BYTES_PER_DIB_PIXEL


def dib_payload_size(width: int, height: int) -> int:
    return BITMAP_INFO_HEADER_SIZE + dib_image_size(width, height)


def container_size(payload_sizes: Sequence[int]) -> int:
    """Total byte length of a container holding the given payloads."""

    return first_payload_offset(len(payload_sizes)) + sum(payload_sizes)


@dataclass(frozen=True)
class IconHeader:
    count: int
    reserved: int = 0
    type: int = ICON_TYPE

    def pack(self) -> bytes:
        return struct.pack(HEADER_FORMAT, self.reserved, self.type, self.count)

    @classmethod
    def unpack(cls, data: bytes) -> IconHeader:
        if len(data) < HEADER_SIZE:
            raise IconFormatError("Icon header is truncated")
        reserved, icon_type, count = struct.unpack_from(HEADER_FORMAT, data)
        return cls(count=count, reserved=reserved, type=icon_type)


@dataclass(frozen=True)
class IconDirectoryEntry:
    width: int
    height: int
    bit_count: int
    payload_size: int
    payload_offset: int
    color_count: int = 0
    reserved: int = 0
    planes: int = 1

    def pack(self) -> bytes:
        return struct.pack(
            DIRECTORY_ENTRY_FORMAT,
            encode_dimension(self.width),
            encode_dimension(self.height),
            self.color_count,
            self.reserved,
            self.planes,
            self.bit_count,
            self.payload_size,
            self.payload_offset,
        )

    @classmethod
    def unpack(cls, data: bytes, offset: int = 0) -> IconDirectoryEntry:
        (
            width,
            height,
            color_count,
            reserved,
            planes,
            bit_count,
            payload_size,
            payload_offset,
        ) = struct.unpack_from(DIRECTORY_ENTRY_FORMAT, data, offset)
        return cls(
            width=decode_dimension(width),
            height=decode_dimension(height),
            bit_count=bit_count,
            payload_size=payload_size,
            payload_offset=payload_offset,
            color_count=color_count,
            reserved=reserved,
            planes=planes,
        )


@dataclass(frozen=True)
class BitmapInfoHeader:
    """The 40-byte header in front of raw pixel payloads.

    ``height`` is the real image height; the packed value is doubled because
    icon readers expect room for the AND mask.
    """

    width: int
    height: int
    bit_count: int
    compression: int = 0
    planes: int = 1

    def pack(self) -> bytes:
        return struct.pack(
            BITMAP_INFO_HEADER_FORMAT,
            BITMAP_INFO_HEADER_SIZE,
            self.width,
            self.height * 2,
            self.planes,
            self.bit_count,
            self.compression,
            dib_image_size(self.width, self.height),
            0,
            0,
            0,
            0,
        )

    @classmethod
    def unpack(cls, data: bytes) -> BitmapInfoHeader:
        if len(data) < BITMAP_INFO_HEADER_SIZE:
            raise IconFormatError("Bitmap header is truncated")
        header_size, width, height, planes, bit_count, compression, *_ = struct.unpack_from(
            BITMAP_INFO_HEADER_FORMAT, data
        )
        if header_size != BITMAP_INFO_HEADER_SIZE:
            raise IconFormatError(f"Unexpected bitmap header size {header_size}")
        return cls(
            width=width,
            height=height // 2,
            bit_count=bit_count,
            compression=compression,
            planes=planes,
        )


@dataclass
class IconContainer:
    entries: List[IconDirectoryEntry] = field(default_factory=list)
    payloads: List[bytes] = field(default_factory=list)

    @property
    def header(self) -> IconHeader:
        return IconHeader(count=len(self.entries))

    @property
    def size(self) -> int:
        return container_size([entry.payload_size for entry in self.entries])


def read_icon(data: bytes) -> IconContainer:
    """Parse an icon container, validating its header and payload bounds."""

    header = IconHeader.unpack(data)
    if header.reserved != 0 or header.type != ICON_TYPE:
        raise IconFormatError("Not an icon container")

    directory_end = first_payload_offset(header.count)
    if len(data) < directory_end:
        raise IconFormatError("Icon directory is truncated")

    container = IconContainer()
    for index in range(header.count):
        entry = IconDirectoryEntry.unpack(data, HEADER_SIZE + index * DIRECTORY_ENTRY_SIZE)
        end = entry.payload_offset + entry.payload_size
        if entry.payload_offset < directory_end or end > len(data):
            raise IconFormatError(f"Entry {index} points outside the container")
        container.entries.append(entry)
        container.payloads.append(bytes(data[entry.payload_offset : end]))
    return container


def payload_format(payload: bytes) -> str:
    return "PNG" if payload.startswith(PNG_SIGNATURE) else "BMP"
