from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from pngtoico.services.resize import ResampleQuality
from pngtoico.services.sizes import SizeProfile


class Settings(BaseSettings):
    """Service settings loaded from environment variables."""

    project_name: str = "PngToIco"
    api_prefix: str = "/api/v1"
    max_upload_size_bytes: int = 20 * 1024 * 1024
    max_upload_files: int = 16
    allowed_image_formats: tuple[str, ...] = ("PNG", "JPEG", "WEBP", "BMP", "GIF")
    resample_quality: ResampleQuality = ResampleQuality.HIGH_QUALITY
    default_profile: SizeProfile = SizeProfile.APPLICATION
    # Conventional DIBs store rows bottom-up; raw entries default to top-down.
    dib_bottom_up: bool = False
    request_id_header: str = "X-Request-ID"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="PNGTOICO_", extra="ignore"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


settings = get_settings()
