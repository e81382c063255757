"""Domain models for try-on sessions."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum


class Stage(StrEnum):
    """Discrete phase of a try-on session."""

    FORM = "form"
    UPLOADED = "uploaded"
    PROCESSED = "processed"


class Action(StrEnum):
    """Actions accepted from the page form."""

    RESET = "reset"
    UPLOAD = "upload"
    TRYON = "tryon"


def _now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class TryOnSession:
    """Per-user session state.

    Photo references are relative to the uploads root. Result references
    point into the ``results/`` subfolder.
    """

    stage: Stage = Stage.FORM
    user_photo: str | None = None
    jewelry_photo: str | None = None
    result_photo: str | None = None
    pin_user: bool = False
    pin_jewelry: bool = False
    last_error: str | None = None
    last_activity: datetime = field(default_factory=_now)
