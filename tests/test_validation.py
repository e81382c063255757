"""Tests for upload validation and form sanitization."""

import pytest

from jewelry_tryon.domain.photos import IncomingPhoto, UploadStatus
from jewelry_tryon.domain.sessions import Action
from jewelry_tryon.services.validation import (
    PhotoValidator,
    RejectionReason,
    parse_action,
    sanitize_text,
)
from tests.conftest import image_bytes


@pytest.fixture
def validator() -> PhotoValidator:
    return PhotoValidator(max_file_size=1024 * 1024)


def test_valid_jpeg_reports_dimensions(validator: PhotoValidator) -> None:
    result = validator.validate(IncomingPhoto("wrist.jpg", image_bytes(120, 80)))

    assert result.ok
    assert result.mime_type == "image/jpeg"
    assert (result.width, result.height) == (120, 80)


def test_valid_png_and_gif(validator: PhotoValidator) -> None:
    assert validator.validate(IncomingPhoto("ring.png", image_bytes(fmt="PNG"))).ok
    assert validator.validate(IncomingPhoto("ring.gif", image_bytes(fmt="GIF"))).ok


@pytest.mark.parametrize(
    "status", [UploadStatus.NO_FILE, UploadStatus.PARTIAL, UploadStatus.FAILED]
)
def test_transport_failure_rejected_first(
    validator: PhotoValidator, status: UploadStatus
) -> None:
    result = validator.validate(IncomingPhoto("wrist.exe", b"", status=status))

    assert result.reason is RejectionReason.UPLOAD_FAILED
    assert result.message


def test_too_large_checked_before_extension(validator: PhotoValidator) -> None:
    content = b"x" * (1024 * 1024 + 1)

    result = validator.validate(IncomingPhoto("wrist.exe", content))

    assert result.reason is RejectionReason.TOO_LARGE
    assert "1MB" in (result.message or "")


def test_declared_size_counts_towards_limit(validator: PhotoValidator) -> None:
    upload = IncomingPhoto(
        "wrist.jpg", image_bytes(), declared_size=2 * 1024 * 1024
    )

    assert validator.validate(upload).reason is RejectionReason.TOO_LARGE


def test_disallowed_extension(validator: PhotoValidator) -> None:
    result = validator.validate(IncomingPhoto("wrist.bmp", image_bytes(fmt="BMP")))

    assert result.reason is RejectionReason.BAD_EXTENSION


def test_renamed_file_fails_content_sniffing(validator: PhotoValidator) -> None:
    result = validator.validate(IncomingPhoto("script.jpg", b"<?php echo 1; ?>"))

    assert result.reason is RejectionReason.BAD_CONTENT


def test_disallowed_content_type_with_allowed_extension(
    validator: PhotoValidator,
) -> None:
    result = validator.validate(IncomingPhoto("photo.png", image_bytes(fmt="BMP")))

    assert result.reason is RejectionReason.BAD_CONTENT


def test_truncated_image_is_not_an_image(validator: PhotoValidator) -> None:
    content = image_bytes(fmt="PNG")[:40]

    result = validator.validate(IncomingPhoto("ring.png", content))

    assert result.reason in {RejectionReason.NOT_AN_IMAGE, RejectionReason.BAD_CONTENT}


def test_messages_are_bounded() -> None:
    validator = PhotoValidator(max_message_length=10)

    result = validator.validate(IncomingPhoto("x.bmp", image_bytes()))

    assert result.message is not None
    assert len(result.message) <= 10


def test_sanitize_text() -> None:
    assert sanitize_text("  <b>ring</b>\n") == "&lt;b&gt;ring&lt;/b&gt;"
    assert sanitize_text("abc\0def") == "abcdef"
    assert sanitize_text("abcdef", max_length=3) == "abc"
    assert sanitize_text(None) == ""
    assert sanitize_text(42) == ""


def test_parse_action() -> None:
    assert parse_action("reset") is Action.RESET
    assert parse_action(" TryOn ") is Action.TRYON
    assert parse_action("delete") is None
    assert parse_action(None) is None
