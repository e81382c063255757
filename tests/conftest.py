"""Shared test fixtures."""

import io
from dataclasses import dataclass, field
from pathlib import Path

import pytest
from PIL import Image

from jewelry_tryon.adapters.memory_session_repository import (
    InMemorySessionRepository,
)
from jewelry_tryon.adapters.webhook_client import WebhookClient, WebhookResult
from jewelry_tryon.config import Settings
from jewelry_tryon.containers import AppContainer, build_storage
from jewelry_tryon.services.images import ImageTransformer
from jewelry_tryon.services.results_cache import ResultCache
from jewelry_tryon.services.sessions import TryOnSessionService
from jewelry_tryon.services.storage import StoragePaths
from jewelry_tryon.services.validation import PhotoValidator
from jewelry_tryon.services.webhook import WebhookService


def image_bytes(
    width: int = 64,
    height: int = 48,
    fmt: str = "JPEG",
    color: tuple[int, int, int] = (200, 120, 40),
) -> bytes:
    """Return encoded bytes of a solid-colour test image."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


def write_image(
    path: Path, width: int = 64, height: int = 48, fmt: str = "JPEG"
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(image_bytes(width, height, fmt))
    return path


@dataclass
class FakeWebhookClient(WebhookClient):
    """Fake webhook client replaying scripted results."""

    results: list[WebhookResult | Exception] = field(default_factory=list)
    default: WebhookResult = field(
        default_factory=lambda: WebhookResult(content=image_bytes(32, 32, "PNG"))
    )
    calls: list[tuple[Path, Path]] = field(default_factory=list)
    closed: bool = False

    async def send(self, user_photo: Path, jewelry_photo: Path) -> WebhookResult:
        self.calls.append((user_photo, jewelry_photo))
        if not self.results:
            return self.default
        outcome = self.results.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.closed = True


@dataclass
class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    delays: list[float] = field(default_factory=list)

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        webhook_url="https://compose.example.test/webhook",
        uploads_dir=str(tmp_path / "uploads"),
        environment="local",
    )


@pytest.fixture
def storage(settings: Settings) -> StoragePaths:
    return build_storage(settings)


@pytest.fixture
def webhook_client() -> FakeWebhookClient:
    return FakeWebhookClient()


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def service(
    settings: Settings,
    storage: StoragePaths,
    webhook_client: FakeWebhookClient,
    sleeper: RecordingSleep,
) -> TryOnSessionService:
    return TryOnSessionService(
        storage=storage,
        validator=PhotoValidator(
            max_file_size=settings.max_file_size,
            allowed_extensions=settings.extensions,
            allowed_mime_types=settings.mime_types,
        ),
        transformer=ImageTransformer(
            max_width=settings.image_max_width,
            max_height=settings.image_max_height,
            thumbnail_size=settings.thumbnail_size,
        ),
        cache=ResultCache(directory=storage.results_dir),
        webhook=WebhookService(
            client=webhook_client,
            max_attempts=settings.webhook_max_attempts,
            backoff_seconds=settings.webhook_backoff_seconds,
            sleep=sleeper,
        ),
    )


@pytest.fixture
def container(
    settings: Settings,
    storage: StoragePaths,
    service: TryOnSessionService,
    webhook_client: FakeWebhookClient,
) -> AppContainer:
    return AppContainer(
        settings=settings,
        storage=storage,
        session_repository=InMemorySessionRepository(
            ttl_seconds=settings.session_ttl_seconds
        ),
        session_service=service,
        close_resources=webhook_client.close,
    )
