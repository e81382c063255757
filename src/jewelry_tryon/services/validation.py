"""Upload validation and form input sanitization."""

import html
import logging
from dataclasses import dataclass
from enum import StrEnum
from pathlib import PurePath

from jewelry_tryon.domain.errors import user_message
from jewelry_tryon.domain.photos import IncomingPhoto, UploadStatus
from jewelry_tryon.domain.sessions import Action
from jewelry_tryon.services.images import read_dimensions, sniff_mime_type
from jewelry_tryon.services.storage import strip_control_chars

_logger = logging.getLogger(__name__)

_TRANSPORT_MESSAGES = {
    UploadStatus.NO_FILE: "No file was uploaded. Please select a file.",
    UploadStatus.PARTIAL: "File upload was interrupted. Please try again.",
    UploadStatus.TOO_LARGE: "File is too large. Please choose a smaller file.",
    UploadStatus.FAILED: "An error occurred during file upload. Please try again.",
}


class RejectionReason(StrEnum):
    """Why an upload was refused."""

    UPLOAD_FAILED = "upload_failed"
    TOO_LARGE = "too_large"
    BAD_EXTENSION = "bad_extension"
    BAD_CONTENT = "bad_content"
    NOT_AN_IMAGE = "not_an_image"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one upload."""

    reason: RejectionReason | None = None
    message: str | None = None
    mime_type: str | None = None
    width: int | None = None
    height: int | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None


@dataclass
class PhotoValidator:
    """Checks uploads against transport, size, extension and content rules."""

    max_file_size: int = 5 * 1024 * 1024
    allowed_extensions: frozenset[str] = frozenset({"jpg", "jpeg", "png", "gif"})
    allowed_mime_types: frozenset[str] = frozenset(
        {"image/jpeg", "image/jpg", "image/png", "image/gif"}
    )
    max_message_length: int = 200

    def validate(self, upload: IncomingPhoto) -> ValidationResult:  # noqa: PLR0911
        """Validate an upload, stopping at the first failed check."""
        if upload.status is not UploadStatus.OK:
            return self._reject(
                RejectionReason.UPLOAD_FAILED,
                _TRANSPORT_MESSAGES.get(
                    upload.status, _TRANSPORT_MESSAGES[UploadStatus.FAILED]
                ),
                f"upload status {upload.status}",
            )

        size = max(len(upload.content), upload.declared_size or 0)
        if size > self.max_file_size:
            limit_mb = self.max_file_size / 1024 / 1024
            return self._reject(
                RejectionReason.TOO_LARGE,
                f"File is too large. Maximum size is {limit_mb:g}MB.",
                f"file size {size} exceeds limit {self.max_file_size}",
            )

        extension = PurePath(strip_control_chars(upload.filename)).suffix.lower()
        extension = extension.lstrip(".")
        if extension not in self.allowed_extensions:
            allowed = ", ".join(sorted(self.allowed_extensions))
            return self._reject(
                RejectionReason.BAD_EXTENSION,
                f"Invalid file type. Only {allowed} files are allowed.",
                f"unsupported extension {extension!r}",
            )

        mime_type = sniff_mime_type(upload.content)
        if mime_type not in self.allowed_mime_types:
            return self._reject(
                RejectionReason.BAD_CONTENT,
                "Invalid file format detected. "
                "Please ensure you're uploading a valid image.",
                f"detected MIME type {mime_type!r}",
            )

        dimensions = read_dimensions(upload.content)
        if dimensions is None:
            return self._reject(
                RejectionReason.NOT_AN_IMAGE,
                "File is not a valid image. Please upload a proper image file.",
                "image structure validation failed",
            )

        width, height = dimensions
        return ValidationResult(mime_type=mime_type, width=width, height=height)

    def _reject(
        self, reason: RejectionReason, message: str, detail: str
    ) -> ValidationResult:
        _logger.warning(
            "Upload rejected (%s): %s",
            reason,
            detail,
            extra={"context": "file_validation"},
        )
        return ValidationResult(
            reason=reason, message=user_message(message, self.max_message_length)
        )


def sanitize_text(value: object, max_length: int = 0) -> str:
    """Strip control characters, escape markup and trim form input."""
    if not isinstance(value, str):
        return ""
    cleaned = html.escape(strip_control_chars(value)).strip()
    if max_length > 0 and len(cleaned) > max_length:
        _logger.warning("Input trimmed to %s characters", max_length)
        cleaned = cleaned[:max_length]
    return cleaned


def parse_action(value: str | None) -> Action | None:
    """Return the action named by a form value, or None when unknown."""
    if not value:
        return None
    try:
        return Action(value.strip().lower())
    except ValueError:
        _logger.warning("Invalid action attempted: %r", value[:50])
        return None
