"""Retry policy around the composition webhook."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path

from jewelry_tryon.adapters.webhook_client import WebhookClient, WebhookResult
from jewelry_tryon.domain.errors import USER_MESSAGES, ErrorKind

_logger = logging.getLogger(__name__)


@dataclass
class WebhookService:
    """Calls the webhook with bounded attempts and linear backoff.

    After failed attempt ``n`` the service waits ``n`` backoff units before
    trying again.
    """

    client: WebhookClient
    max_attempts: int = 3
    backoff_seconds: float = 1.0
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    async def send_with_retry(
        self,
        user_photo: Path,
        jewelry_photo: Path,
        max_attempts: int | None = None,
    ) -> WebhookResult:
        """Return the first successful result, or one aggregated failure."""
        attempts = max(1, max_attempts or self.max_attempts)
        errors: list[str] = []

        for attempt in range(1, attempts + 1):
            try:
                result = await self.client.send(user_photo, jewelry_photo)
            except Exception as exc:
                _logger.exception(
                    "Exception on webhook attempt %s",
                    attempt,
                    extra={"context": "webhook", "attempt": attempt},
                )
                result = WebhookResult(error=f"{type(exc).__name__}: {exc}")

            if result.ok:
                return WebhookResult(content=result.content, attempts=attempt)

            errors.append(result.error or "unknown error")
            _logger.warning(
                "Webhook attempt %s/%s failed: %s",
                attempt,
                attempts,
                result.error,
                extra={"context": "webhook", "attempt": attempt},
            )
            if attempt < attempts:
                await self.sleep(attempt * self.backoff_seconds)

        detail = "; ".join(errors)
        _logger.error(
            "All %s webhook attempts failed: %s",
            attempts,
            detail,
            extra={"context": "webhook", "attempt": attempts},
        )
        return WebhookResult(
            error=USER_MESSAGES[ErrorKind.UPSTREAM],
            detail=detail,
            attempts=attempts,
        )
