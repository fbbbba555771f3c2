from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class IconEntryResponse(BaseModel):
    width: int
    height: int
    bit_count: int
    payload_size: int = Field(..., description="Payload length in bytes")
    payload_offset: int = Field(..., description="File-relative payload offset")
    payload_format: str = Field(..., description="PNG for embedded images, BMP for raw bitmaps")


class IconResponse(BaseModel):
    count: int
    size: int = Field(..., description="Total container length in bytes")
    entries: List[IconEntryResponse]
