from functools import lru_cache

from pngtoico.core.config import settings
from pngtoico.services.pipeline import IconPipeline


@lru_cache(maxsize=1)
def get_icon_pipeline() -> IconPipeline:
    return IconPipeline(quality=settings.resample_quality, bottom_up=settings.dib_bottom_up)
