"""Session state machine for the try-on flow."""

import logging
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from jewelry_tryon.domain.errors import (
    MISSING_PHOTOS_MESSAGE,
    TRYON_PATHS_MESSAGE,
    USER_MESSAGES,
    ErrorKind,
    StorageFailure,
    user_message,
)
from jewelry_tryon.domain.photos import IncomingPhoto, PhotoRole
from jewelry_tryon.domain.sessions import Action, Stage, TryOnSession
from jewelry_tryon.services.images import ImageTransformer
from jewelry_tryon.services.results_cache import ResultCache
from jewelry_tryon.services.storage import RESULTS_DIR, StoragePaths
from jewelry_tryon.services.validation import PhotoValidator, parse_action
from jewelry_tryon.services.webhook import WebhookService

_logger = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """Persistence interface for try-on sessions."""

    def get_session(self, session_id: str) -> TryOnSession | None:
        """Return a session by id, if present."""

    def save_session(self, session_id: str, session: TryOnSession) -> None:
        """Store the session under its id in a single write."""


@dataclass(frozen=True)
class UploadRequest:
    """Inputs of an upload: fresh files, gallery picks and pin flags."""

    user_upload: IncomingPhoto | None = None
    jewelry_upload: IncomingPhoto | None = None
    user_selected: str | None = None
    jewelry_selected: str | None = None
    pin_user: bool | None = None
    pin_jewelry: bool | None = None


class _TransitionFailed(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@dataclass
class TryOnSessionService:
    """Applies RESET, UPLOAD and TRYON transitions to a session."""

    storage: StoragePaths
    validator: PhotoValidator
    transformer: ImageTransformer
    cache: ResultCache
    webhook: WebhookService
    max_error_length: int = 200

    async def dispatch(
        self,
        session: TryOnSession,
        action: str | None,
        request: UploadRequest | None = None,
    ) -> TryOnSession:
        """Route a raw form action to its transition."""
        parsed = parse_action(action)
        if parsed is Action.RESET:
            return self.reset(session, request)
        if parsed is Action.UPLOAD and session.stage in {Stage.FORM, Stage.UPLOADED}:
            return self.upload(session, request or UploadRequest())
        if parsed is Action.TRYON and session.stage is Stage.UPLOADED:
            return await self.try_on(session)
        _logger.warning(
            "Action %r not allowed in stage %s",
            action,
            session.stage,
            extra={"context": "session"},
        )
        return replace(
            session,
            last_error=self._message(USER_MESSAGES[ErrorKind.ACTION]),
            last_activity=_now(),
        )

    def reset(
        self, session: TryOnSession, request: UploadRequest | None = None
    ) -> TryOnSession:
        """Return to the form, keeping only pinned photos."""
        pin_user, pin_jewelry = _pins(session, request)
        return replace(
            session,
            stage=Stage.FORM,
            user_photo=session.user_photo if pin_user else None,
            jewelry_photo=session.jewelry_photo if pin_jewelry else None,
            result_photo=None,
            pin_user=pin_user,
            pin_jewelry=pin_jewelry,
            last_error=None,
            last_activity=_now(),
        )

    def upload(self, session: TryOnSession, request: UploadRequest) -> TryOnSession:
        """Store or select both photos and move to the uploaded stage."""
        pin_user, pin_jewelry = _pins(session, request)
        try:
            user_ref = self._photo_for_role(
                PhotoRole.USER, request.user_upload, request.user_selected
            )
            jewelry_ref = self._photo_for_role(
                PhotoRole.JEWELRY, request.jewelry_upload, request.jewelry_selected
            )
        except _TransitionFailed as failure:
            return self._fail(session, failure.message, pin_user, pin_jewelry)
        except StorageFailure as exc:
            return self._fail(session, exc.user_message, pin_user, pin_jewelry)

        return replace(
            session,
            stage=Stage.UPLOADED,
            user_photo=user_ref,
            jewelry_photo=jewelry_ref,
            result_photo=None,
            pin_user=pin_user,
            pin_jewelry=pin_jewelry,
            last_error=None,
            last_activity=_now(),
        )

    async def try_on(self, session: TryOnSession) -> TryOnSession:
        """Compose the uploaded photos, using the result cache when possible."""
        user = self.storage.resolve(session.user_photo)
        jewelry = self.storage.resolve(session.jewelry_photo)
        if user.path is None or jewelry.path is None:
            _logger.warning(
                "Try-on with unresolved photos",
                extra={"context": "tryon"},
            )
            return self._fail(session, TRYON_PATHS_MESSAGE)

        user_name = user.path.name
        jewelry_name = jewelry.path.name
        cached = self.cache.lookup(user_name, jewelry_name)
        if cached is not None:
            return self._processed(session, cached)

        result = await self.webhook.send_with_retry(user.path, jewelry.path)
        if not result.ok or result.content is None:
            return self._fail(
                session, result.error or USER_MESSAGES[ErrorKind.UPSTREAM]
            )

        try:
            stored = self.cache.store(user_name, jewelry_name, result.content)
        except StorageFailure as exc:
            return self._fail(session, exc.user_message)
        return self._processed(session, stored)

    def _photo_for_role(
        self,
        role: PhotoRole,
        upload: IncomingPhoto | None,
        selected: str | None,
    ) -> str:
        if upload is not None:
            return self._store_upload(role, upload)
        if selected:
            resolution = self.storage.resolve(selected)
            if resolution.path is None:
                raise _TransitionFailed(USER_MESSAGES[ErrorKind.PATH_SECURITY])
            return self.storage.relative_ref(resolution.path)
        raise _TransitionFailed(MISSING_PHOTOS_MESSAGE)

    def _store_upload(self, role: PhotoRole, upload: IncomingPhoto) -> str:
        verdict = self.validator.validate(upload)
        if not verdict.ok:
            raise _TransitionFailed(
                verdict.message or USER_MESSAGES[ErrorKind.VALIDATION]
            )
        path = self.storage.save_upload(upload.content, upload.filename, role)
        if not self.transformer.optimize(path):
            _logger.warning("Keeping unoptimized upload %s", path.name)
        thumbnail = self.storage.thumbnail_path_for(path.name)
        if not self.transformer.thumbnail(path, thumbnail):
            _logger.warning("No thumbnail for upload %s", path.name)
        return self.storage.relative_ref(path)

    def _processed(self, session: TryOnSession, result: Path) -> TryOnSession:
        return replace(
            session,
            stage=Stage.PROCESSED,
            result_photo=f"{RESULTS_DIR}/{result.name}",
            last_error=None,
            last_activity=_now(),
        )

    def _fail(
        self,
        session: TryOnSession,
        message: str,
        pin_user: bool | None = None,
        pin_jewelry: bool | None = None,
    ) -> TryOnSession:
        return replace(
            session,
            stage=Stage.FORM,
            result_photo=None,
            pin_user=session.pin_user if pin_user is None else pin_user,
            pin_jewelry=session.pin_jewelry if pin_jewelry is None else pin_jewelry,
            last_error=self._message(message),
            last_activity=_now(),
        )

    def _message(self, message: str) -> str:
        return user_message(message, self.max_error_length)


def _pins(session: TryOnSession, request: UploadRequest | None) -> tuple[bool, bool]:
    if request is None:
        return session.pin_user, session.pin_jewelry
    pin_user = session.pin_user if request.pin_user is None else request.pin_user
    pin_jewelry = (
        session.pin_jewelry if request.pin_jewelry is None else request.pin_jewelry
    )
    return pin_user, pin_jewelry


def _now() -> datetime:
    return datetime.now(tz=UTC)
