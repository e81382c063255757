"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from jewelry_tryon.adapters.memory_session_repository import (
    InMemorySessionRepository,
)
from jewelry_tryon.adapters.webhook_client import HttpxWebhookClient
from jewelry_tryon.config import Settings
from jewelry_tryon.services.images import ImageTransformer
from jewelry_tryon.services.results_cache import ResultCache
from jewelry_tryon.services.sessions import SessionRepository, TryOnSessionService
from jewelry_tryon.services.storage import StoragePaths
from jewelry_tryon.services.validation import PhotoValidator
from jewelry_tryon.services.webhook import WebhookService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    storage: StoragePaths
    session_repository: SessionRepository
    session_service: TryOnSessionService
    close_resources: Callable[[], Awaitable[None]]


def build_storage(settings: Settings) -> StoragePaths:
    """Create the storage paths helper for the configured uploads root."""
    storage = StoragePaths(
        root=Path(settings.uploads_dir),
        max_filename_length=settings.max_filename_length,
        allowed_extensions=settings.extensions,
        allowed_mime_types=settings.mime_types,
        file_permissions=settings.file_permissions,
    )
    storage.ensure_layout()
    return storage


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    storage = build_storage(resolved_settings)
    webhook_client = HttpxWebhookClient.create(
        url=resolved_settings.webhook_url,
        prompt=resolved_settings.webhook_prompt,
        timeout_seconds=resolved_settings.webhook_timeout_seconds,
    )
    session_service = TryOnSessionService(
        storage=storage,
        validator=PhotoValidator(
            max_file_size=resolved_settings.max_file_size,
            allowed_extensions=resolved_settings.extensions,
            allowed_mime_types=resolved_settings.mime_types,
            max_message_length=resolved_settings.max_error_message_length,
        ),
        transformer=ImageTransformer(
            max_width=resolved_settings.image_max_width,
            max_height=resolved_settings.image_max_height,
            jpeg_quality=resolved_settings.image_jpeg_quality,
            png_compression=resolved_settings.image_png_compression,
            backup_original=resolved_settings.image_backup_original,
            thumbnail_size=resolved_settings.thumbnail_size,
            file_permissions=resolved_settings.file_permissions,
        ),
        cache=ResultCache(
            directory=storage.results_dir,
            file_permissions=resolved_settings.file_permissions,
        ),
        webhook=WebhookService(
            client=webhook_client,
            max_attempts=resolved_settings.webhook_max_attempts,
            backoff_seconds=resolved_settings.webhook_backoff_seconds,
        ),
        max_error_length=resolved_settings.max_error_message_length,
    )

    async def close_resources() -> None:
        await webhook_client.close()

    return AppContainer(
        settings=resolved_settings,
        storage=storage,
        session_repository=InMemorySessionRepository(
            ttl_seconds=resolved_settings.session_ttl_seconds
        ),
        session_service=session_service,
        close_resources=close_resources,
    )
