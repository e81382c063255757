"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class CleanupSettings(BaseSettings):
    """Settings needed by the uploads retention command."""

    uploads_dir: str = "uploads"
    cleanup_max_age_hours: int = 24
    cleanup_exclude_patterns: str = ".htaccess,index.php,default.*"

    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


class Settings(CleanupSettings):
    """Application settings loaded from environment variables."""

    webhook_url: str
    webhook_timeout_seconds: float = 30.0
    webhook_max_attempts: int = 3
    webhook_backoff_seconds: float = 1.0
    webhook_prompt: str = "Try on this jewelry bracelet on the user's wrist"

    max_file_size: int = 5 * 1024 * 1024
    allowed_extensions: str = "jpg,jpeg,png,gif"
    allowed_mime_types: str = "image/jpeg,image/jpg,image/png,image/gif"
    max_filename_length: int = 255
    max_error_message_length: int = 200
    file_permissions: int = 0o644

    image_max_width: int = 1920
    image_max_height: int = 1080
    image_jpeg_quality: int = 85
    image_png_compression: int = 6
    image_backup_original: bool = False
    thumbnail_size: int = 150

    session_ttl_seconds: int = 86400
    session_cookie_name: str = "tryon_session"

    @property
    def extensions(self) -> frozenset[str]:
        """Allowed lower-case file extensions without the dot."""
        return frozenset(parse_csv(self.allowed_extensions, lower=True))

    @property
    def mime_types(self) -> frozenset[str]:
        """Allowed content-sniffed MIME types."""
        return frozenset(parse_csv(self.allowed_mime_types, lower=True))


def parse_csv(raw: str | None, *, lower: bool = False) -> list[str]:
    """Split a comma-separated env value into trimmed, non-empty chunks."""
    if raw is None:
        return []
    values: list[str] = []
    for chunk in raw.split(","):
        value = chunk.strip()
        if not value:
            continue
        values.append(value.lower() if lower else value)
    return values
