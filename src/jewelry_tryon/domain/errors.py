"""Error taxonomy and user-facing messages."""

from dataclasses import dataclass
from enum import StrEnum


class ErrorKind(StrEnum):
    """Categories of failure surfaced to users."""

    VALIDATION = "validation"
    PATH_SECURITY = "path_security"
    UPSTREAM = "upstream"
    STORAGE = "storage"
    ACTION = "action"


USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: (
        "There was a problem with your file upload. Please try again."
    ),
    ErrorKind.PATH_SECURITY: (
        "The selected photo is not available. Please choose another one."
    ),
    ErrorKind.UPSTREAM: (
        "Unable to process your request. Please try again in a few moments."
    ),
    ErrorKind.STORAGE: "Failed to save your photos. Please try again.",
    ErrorKind.ACTION: "That action is not available right now. Please start over.",
}

MISSING_PHOTOS_MESSAGE = (
    "Please either upload files or select from gallery for both photos."
)
TRYON_PATHS_MESSAGE = "Your photos are no longer available. Please upload them again."


class TryOnError(Exception):
    """Base error carrying a kind and a user-safe message."""

    kind: ErrorKind = ErrorKind.STORAGE

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind]


class StorageFailure(TryOnError):
    """Raised when a file cannot be written, moved or read."""

    kind = ErrorKind.STORAGE


@dataclass(frozen=True)
class PathRejected:
    """Typed rejection returned by path resolution."""

    reason: str
    security: bool = False


def user_message(message: str, max_length: int) -> str:
    """Bound a pre-approved message to the configured length."""
    return message[:max_length]
