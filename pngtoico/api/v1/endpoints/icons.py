from __future__ import annotations

from pathlib import Path
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response
from starlette import status

from pngtoico.core.config import settings
from pngtoico.core.deps import get_icon_pipeline
from pngtoico.models.responses import IconEntryResponse, IconResponse
from pngtoico.services.ico_layout import payload_format
from pngtoico.services.pipeline import IconPipeline
from pngtoico.services.resize import ResampleQuality
from pngtoico.services.sizes import SizeProfile, parse_sizes

router = APIRouter(prefix="/icons", tags=["icons"])

ICON_MEDIA_TYPE = "image/vnd.microsoft.icon"


def _icon_response(content: bytes, source_name: Optional[str]) -> Response:
    stem = Path(source_name or "icon").stem or "icon"
    headers = {"Content-Disposition": f"attachment; filename=\"{stem}.ico\""}
    return Response(content=content, media_type=ICON_MEDIA_TYPE, headers=headers)


@router.post("/convert", response_class=Response)
async def convert_icon(
    files: Annotated[List[UploadFile], File(..., description="Source images")],
    pipeline: Annotated[IconPipeline, Depends(get_icon_pipeline)],
    sizes: Annotated[
        Optional[str], Form(description="Comma separated target sizes, e.g. 16,32,256")
    ] = None,
    quality: Annotated[Optional[ResampleQuality], Form(description="Resample quality")] = None,
) -> Response:
    uploads = [(await upload.read(), upload.filename or "upload") for upload in files]

    try:
        targets = parse_sizes(sizes) if sizes else None
        ico_bytes = await pipeline.convert(uploads, targets, quality)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return _icon_response(ico_bytes, files[0].filename)


@router.post("/save", response_class=Response)
async def save_icon(
    file: Annotated[UploadFile, File(..., description="Source image")],
    pipeline: Annotated[IconPipeline, Depends(get_icon_pipeline)],
    profile: Annotated[Optional[SizeProfile], Form(description="Size profile")] = None,
) -> Response:
    content = await file.read()

    try:
        ico_bytes = await pipeline.save(
            content, file.filename or "upload", profile or settings.default_profile
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return _icon_response(ico_bytes, file.filename)


@router.post("/inspect", response_model=IconResponse)
async def inspect_icon(
    file: Annotated[UploadFile, File(..., description="Icon file")],
    pipeline: Annotated[IconPipeline, Depends(get_icon_pipeline)],
) -> IconResponse:
    content = await file.read()

    try:
        container = await pipeline.inspect(content)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return IconResponse(
        count=len(container.entries),
        size=container.size,
        entries=[
            IconEntryResponse(
                width=entry.width,
                height=entry.height,
                bit_count=entry.bit_count,
                payload_size=entry.payload_size,
                payload_offset=entry.payload_offset,
                payload_format=payload_format(payload),
            )
            for entry, payload in zip(container.entries, container.payloads)
        ],
    )
