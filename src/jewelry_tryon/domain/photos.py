"""Domain models for stored and incoming photos."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from pathlib import Path


class PhotoRole(StrEnum):
    """Logical role of a photo in a try-on."""

    USER = "user"
    JEWELRY = "jewelry"

    @property
    def prefix(self) -> str:
        """File name prefix used for stored photos of this role."""
        return "user_" if self is PhotoRole.USER else "jewel_"


class UploadStatus(StrEnum):
    """Transport outcome of a form upload."""

    OK = "ok"
    NO_FILE = "no_file"
    PARTIAL = "partial"
    TOO_LARGE = "too_large"
    FAILED = "failed"


@dataclass(frozen=True)
class IncomingPhoto:
    """A file received from the page form, before validation."""

    filename: str
    content: bytes
    status: UploadStatus = UploadStatus.OK
    declared_size: int | None = None


@dataclass(frozen=True)
class StoredPhoto:
    """Metadata of a photo stored under the uploads root."""

    path: Path
    width: int
    height: int
    mime_type: str
    size_bytes: int
    modified_at: datetime

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def size_human(self) -> str:
        return format_bytes(self.size_bytes)


def format_bytes(size: int) -> str:
    """Format a byte count for humans."""
    if size < 1024:
        return f"{max(size, 0)} bytes"
    value = float(size)
    unit = "KB"
    for unit in ("KB", "MB", "GB"):
        value /= 1024
        if value < 1024:
            break
    return f"{value:.2f} {unit}"
