"""HTTP client for the external image-composition webhook."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import httpx

from jewelry_tryon.services.images import sniff_file_mime_type

_logger = logging.getLogger(__name__)

_FALLBACK_MIME = "application/octet-stream"


@dataclass(frozen=True)
class WebhookResult:
    """Outcome of one or more webhook calls."""

    content: bytes | None = None
    error: str | None = None
    detail: str | None = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.content is not None and self.error is None


class WebhookClient(Protocol):
    """Interface for the composition webhook."""

    async def send(self, user_photo: Path, jewelry_photo: Path) -> WebhookResult:
        """Post both photos and return the composed image bytes."""


@dataclass
class HttpxWebhookClient(WebhookClient):
    """Webhook client using httpx multipart uploads."""

    url: str
    prompt: str
    timeout_seconds: float
    http_client: httpx.AsyncClient

    @classmethod
    def create(
        cls, url: str, prompt: str, timeout_seconds: float = 30.0
    ) -> "HttpxWebhookClient":
        """Create a webhook client with a managed httpx session."""
        return cls(
            url=url,
            prompt=prompt,
            timeout_seconds=timeout_seconds,
            http_client=httpx.AsyncClient(verify=True, follow_redirects=True),
        )

    async def send(self, user_photo: Path, jewelry_photo: Path) -> WebhookResult:
        """Post both photos as multipart form data."""
        if not user_photo.is_file() or not jewelry_photo.is_file():
            return WebhookResult(error="Source files not found")
        try:
            files = {
                "user_photo": _file_part(user_photo),
                "jewelry_photo": _file_part(jewelry_photo),
            }
            _logger.info("Calling webhook %s", self.url)
            response = await self.http_client.post(
                self.url,
                data={"prompt": self.prompt},
                files=files,
                timeout=self.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            _logger.warning(
                "Webhook transport error: %s",
                exc,
                extra={"context": "webhook_call"},
            )
            return WebhookResult(error=f"transport error: {type(exc).__name__}: {exc}")
        except OSError as exc:
            return WebhookResult(error=f"failed to read source photo: {exc}")

        if response.status_code != httpx.codes.OK:
            _logger.warning(
                "Webhook returned HTTP %s",
                response.status_code,
                extra={"context": "webhook_call", "status_code": response.status_code},
            )
            return WebhookResult(error=f"HTTP error: {response.status_code}")

        _logger.info("Webhook call successful (%s bytes)", len(response.content))
        return WebhookResult(content=response.content)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def _file_part(path: Path) -> tuple[str, bytes, str]:
    mime_type = sniff_file_mime_type(path)
    if mime_type is None:
        _logger.warning(
            "Could not detect MIME type for %s, using %s", path.name, _FALLBACK_MIME
        )
        mime_type = _FALLBACK_MIME
    return path.name, path.read_bytes(), mime_type
