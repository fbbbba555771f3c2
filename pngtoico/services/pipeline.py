from __future__ import annotations

import asyncio
import io
import logging
from typing import List, Optional, Sequence, Tuple

from PIL import Image, UnidentifiedImageError

from pngtoico.core.config import settings
from pngtoico.services import icon_factory
from pngtoico.services.ico_layout import IconContainer, read_icon
from pngtoico.services.resize import ResampleQuality
from pngtoico.services.sizes import SizeProfile

logger = logging.getLogger(__name__)

Upload = Tuple[bytes, str]


class IconPipeline:
    """Turns uploaded image bytes into icon containers off the event loop."""

    def __init__(
        self,
        quality: ResampleQuality = ResampleQuality.HIGH_QUALITY,
        bottom_up: bool = False,
    ):
        self.quality = quality
        self.bottom_up = bottom_up

    async def convert(
        self,
        uploads: Sequence[Upload],
        sizes: Optional[Sequence[int]] = None,
        quality: Optional[ResampleQuality] = None,
    ) -> bytes:
        if not uploads:
            raise ValueError("At least one image is required")
        if len(uploads) > settings.max_upload_files:
            raise ValueError(f"At most {settings.max_upload_files} images can be combined")

        images: List[Image.Image] = []
        try:
            for content, name in uploads:
                images.append(await asyncio.to_thread(self._load_image, content, name))
            return await asyncio.to_thread(self._convert, images, sizes, quality or self.quality)
        finally:
            for image in images:
                image.close()

    async def save(
        self,
        content: bytes,
        filename: str,
        profile: SizeProfile = SizeProfile.APPLICATION,
    ) -> bytes:
        image = await asyncio.to_thread(self._load_image, content, filename)
        try:
            return await asyncio.to_thread(self._save, image, profile)
        finally:
            image.close()

    async def inspect(self, content: bytes) -> IconContainer:
        self._validate_size(content)
        return await asyncio.to_thread(read_icon, content)

    def _convert(
        self,
        images: List[Image.Image],
        sizes: Optional[Sequence[int]],
        quality: ResampleQuality,
    ) -> bytes:
        buffer = io.BytesIO()
        icon_factory.convert(images, buffer, sizes, quality=quality, bottom_up=self.bottom_up)
        return buffer.getvalue()

    def _save(self, image: Image.Image, profile: SizeProfile) -> bytes:
        buffer = io.BytesIO()
        icon_factory.save(image, buffer, profile, quality=self.quality)
        return buffer.getvalue()

    def _validate_size(self, content: bytes) -> None:
        if len(content) > settings.max_upload_size_bytes:
            raise ValueError("Uploaded file exceeds maximum size limit")

    def _load_image(self, content: bytes, filename: str) -> Image.Image:
        self._validate_size(content)
        try:
            with Image.open(io.BytesIO(content)) as candidate:
                candidate.verify()
                detected_format = candidate.format
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise ValueError(f"{filename} is not a valid image") from exc

        if detected_format not in settings.allowed_image_formats:
            allowed = ", ".join(settings.allowed_image_formats)
            raise ValueError(f"Unsupported image format. Allowed: {allowed}")

        image = Image.open(io.BytesIO(content))
        image.load()
        logger.debug(
            "Loaded upload",
            extra={"upload": filename, "format": detected_format, "size": list(image.size)},
        )
        return image
