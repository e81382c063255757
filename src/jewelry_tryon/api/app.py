"""FastAPI application factory."""

import logging
import secrets
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from jewelry_tryon.api.pages import render_page
from jewelry_tryon.app_logging import configure_logging
from jewelry_tryon.containers import AppContainer
from jewelry_tryon.domain.errors import USER_MESSAGES, ErrorKind
from jewelry_tryon.domain.photos import IncomingPhoto, UploadStatus
from jewelry_tryon.domain.sessions import Stage, TryOnSession
from jewelry_tryon.services.images import sniff_file_mime_type
from jewelry_tryon.services.sessions import UploadRequest
from jewelry_tryon.services.validation import sanitize_text

_FILE_CACHE_CONTROL = "private, max-age=3600"


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)
    cookie_name = container.settings.session_cookie_name
    max_field_length = container.settings.max_filename_length

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/", response_model=None)
    async def page(request: Request, file: str | None = None) -> Response:
        """Render the current stage, or serve a stored file when asked."""
        state_container: AppContainer = request.app.state.container
        if file is not None:
            storage = state_container.storage
            resolution = storage.resolve_ref(file)
            if resolution.path is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
            media_type = sniff_file_mime_type(resolution.path)
            if media_type not in storage.allowed_mime_types:
                logger.warning(
                    "Refusing to serve non-image file",
                    extra={"context": "file_serving", "path": str(resolution.path)},
                )
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
            return Response(
                content=resolution.path.read_bytes(),
                media_type=media_type,
                headers={"Cache-Control": _FILE_CACHE_CONTROL},
            )

        session_id, session = _load_session(request, state_container, cookie_name)
        response = HTMLResponse(render_page(session, state_container.storage))
        if session_id is not None:
            _set_session_cookie(response, cookie_name, session_id, state_container)
        return response

    @app.post("/")
    async def submit(  # noqa: PLR0913
        request: Request,
        action: str | None = Form(default=None),
        user_photo: UploadFile | None = File(default=None),
        jewelry_photo: UploadFile | None = File(default=None),
        user_photo_selected: str | None = Form(default=None),
        jewelry_photo_selected: str | None = Form(default=None),
        pins_submitted: str | None = Form(default=None),
        pin_user: str | None = Form(default=None),
        pin_jewelry: str | None = Form(default=None),
    ) -> RedirectResponse:
        """Apply a form action to the session and redirect back to the page."""
        state_container: AppContainer = request.app.state.container
        session_id, session = _load_session(request, state_container, cookie_name)
        if session_id is None:
            session_id = secrets.token_urlsafe(32)
        max_bytes = state_container.settings.max_file_size

        upload_request = UploadRequest(
            user_upload=await _read_upload(user_photo, max_bytes),
            jewelry_upload=await _read_upload(jewelry_photo, max_bytes),
            user_selected=sanitize_text(user_photo_selected, max_field_length) or None,
            jewelry_selected=(
                sanitize_text(jewelry_photo_selected, max_field_length) or None
            ),
            pin_user=bool(pin_user) if pins_submitted else None,
            pin_jewelry=bool(pin_jewelry) if pins_submitted else None,
        )
        try:
            updated = await state_container.session_service.dispatch(
                session, sanitize_text(action, 20), upload_request
            )
        except Exception:
            logger.exception(
                "Unhandled error while applying action",
                extra={"context": "request", "action": action},
            )
            updated = replace(
                session,
                stage=Stage.FORM,
                result_photo=None,
                last_error=USER_MESSAGES[ErrorKind.STORAGE],
            )

        state_container.session_repository.save_session(session_id, updated)
        response = RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
        _set_session_cookie(response, cookie_name, session_id, state_container)
        return response

    return app


def _load_session(
    request: Request, container: AppContainer, cookie_name: str
) -> tuple[str | None, TryOnSession]:
    """Return the cookie session, or an unsaved fresh one with no id."""
    session_id = request.cookies.get(cookie_name)
    if session_id:
        existing = container.session_repository.get_session(session_id)
        if existing is not None:
            return session_id, existing
    return None, TryOnSession()


def _set_session_cookie(
    response: Response, cookie_name: str, session_id: str, container: AppContainer
) -> None:
    response.set_cookie(
        cookie_name,
        session_id,
        max_age=container.settings.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=container.settings.environment != "local",
    )


async def _read_upload(
    upload: UploadFile | None, max_bytes: int
) -> IncomingPhoto | None:
    """Read at most ``max_bytes + 1`` bytes of a form upload."""
    if upload is None or not upload.filename:
        return None
    try:
        content = await upload.read(max_bytes + 1)
    except OSError:
        return IncomingPhoto(
            filename=upload.filename, content=b"", status=UploadStatus.FAILED
        )
    finally:
        await upload.close()
    if not content:
        return IncomingPhoto(
            filename=upload.filename, content=b"", status=UploadStatus.NO_FILE
        )
    return IncomingPhoto(
        filename=upload.filename, content=content, declared_size=upload.size
    )

