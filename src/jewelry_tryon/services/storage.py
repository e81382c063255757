"""Managed uploads directory: layout, naming and path containment."""

import logging
import os
import secrets
import tempfile
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path, PurePath

from jewelry_tryon.domain.errors import PathRejected, StorageFailure
from jewelry_tryon.domain.photos import PhotoRole
from jewelry_tryon.services.images import sniff_file_mime_type

_logger = logging.getLogger(__name__)

THUMBNAILS_DIR = "thumbnails"
RESULTS_DIR = "results"
THUMBNAIL_PREFIX = "thumb_"
_MANAGED_SUBDIRS = frozenset({THUMBNAILS_DIR, RESULTS_DIR})
_ACCESS_MARKER = ".htaccess"
_FALLBACK_EXTENSION = "png"


@dataclass(frozen=True)
class PathResolution:
    """Outcome of resolving a candidate name inside the uploads root."""

    path: Path | None = None
    rejection: PathRejected | None = None

    @property
    def ok(self) -> bool:
        return self.path is not None


def strip_control_chars(value: str) -> str:
    """Remove NUL, CR and LF characters."""
    return value.replace("\0", "").replace("\r", "").replace("\n", "")


@dataclass
class StoragePaths:
    """Maps photo roles and references to files under a managed root."""

    root: Path
    max_filename_length: int = 255
    allowed_extensions: frozenset[str] = frozenset({"jpg", "jpeg", "png", "gif"})
    allowed_mime_types: frozenset[str] = frozenset(
        {"image/jpeg", "image/jpg", "image/png", "image/gif"}
    )
    file_permissions: int = 0o644

    @property
    def thumbnails_dir(self) -> Path:
        return self.root / THUMBNAILS_DIR

    @property
    def results_dir(self) -> Path:
        return self.root / RESULTS_DIR

    def ensure_layout(self) -> None:
        """Create the root, its subfolders and the access marker file."""
        for directory in (self.root, self.thumbnails_dir, self.results_dir):
            directory.mkdir(parents=True, exist_ok=True)
        marker = self.root / _ACCESS_MARKER
        if not marker.exists():
            marker.write_text("deny from all\n")

    def resolve(
        self, candidate: str | None, subdir: str | None = None
    ) -> PathResolution:
        """Resolve a candidate base name to an existing file under the root."""
        if subdir is not None and subdir not in _MANAGED_SUBDIRS:
            return self._reject(f"unmanaged subfolder {subdir!r}", security=True)
        if not candidate:
            return self._reject("empty name")

        cleaned = strip_control_chars(candidate).strip()
        if any(token in cleaned for token in ("..", "/", "\\")):
            return self._reject(f"traversal sequence in {cleaned!r}", security=True)
        name = PurePath(cleaned).name
        if not name:
            return self._reject("empty name")
        if len(name) > self.max_filename_length:
            return self._reject(f"name longer than {self.max_filename_length}")

        base = self.root if subdir is None else self.root / subdir
        try:
            root = self.root.resolve(strict=True)
            resolved = (base / name).resolve(strict=True)
        except (FileNotFoundError, RuntimeError, OSError):
            return self._reject(f"file not found: {name}")
        if root not in resolved.parents:
            return self._reject(f"outside uploads root: {name}", security=True)
        if not resolved.is_file():
            return self._reject(f"not a file: {name}")
        return PathResolution(path=resolved)

    def resolve_ref(self, ref: str | None) -> PathResolution:
        """Resolve ``name``, ``thumbnails/name`` or ``results/name`` references."""
        if not ref:
            return self._reject("empty reference")
        cleaned = strip_control_chars(ref).strip()
        subdir, sep, name = cleaned.partition("/")
        if sep and subdir in _MANAGED_SUBDIRS:
            return self.resolve(name, subdir=subdir)
        return self.resolve(cleaned)

    def relative_ref(self, path: Path) -> str:
        """Return the reference of a stored file relative to the root."""
        return path.resolve().relative_to(self.root.resolve()).as_posix()

    def generate_name(self, original_name: str, role: PhotoRole) -> str:
        """Generate a collision-resistant stored name for an upload."""
        extension = PurePath(strip_control_chars(original_name)).suffix.lower()
        extension = extension.lstrip(".")
        if extension not in self.allowed_extensions:
            _logger.warning(
                "Unsupported extension %r, falling back to %s",
                extension,
                _FALLBACK_EXTENSION,
            )
            extension = _FALLBACK_EXTENSION
        stamp = datetime.now(tz=UTC).strftime("%Y%m%d_%H%M%S")
        return f"{role.prefix}{stamp}_{secrets.token_hex(16)}.{extension}"

    def save_upload(self, content: bytes, original_name: str, role: PhotoRole) -> Path:
        """Write upload bytes under a fresh name and return the new path."""
        path = self.root / self.generate_name(original_name, role)
        write_atomic(path, content, self.file_permissions)
        _logger.info("Stored %s photo %s (%s bytes)", role, path.name, len(content))
        return path

    def thumbnail_path_for(self, name: str) -> Path:
        return self.thumbnails_dir / f"{THUMBNAIL_PREFIX}{name}"

    @staticmethod
    def original_name_for_thumbnail(thumbnail_name: str) -> str:
        return thumbnail_name.removeprefix(THUMBNAIL_PREFIX)

    def list_thumbnails(self, role: PhotoRole) -> list[str]:
        """List gallery thumbnails for a role, newest first."""
        directory = self.thumbnails_dir
        if not directory.is_dir():
            return []
        prefix = f"{THUMBNAIL_PREFIX}{role.prefix}"
        found: list[tuple[float, str]] = []
        for entry in directory.iterdir():
            if not entry.name.startswith(prefix) or not entry.is_file():
                continue
            if sniff_file_mime_type(entry) not in self.allowed_mime_types:
                continue
            found.append((entry.stat().st_mtime, entry.name))
        found.sort(reverse=True)
        return [name for _, name in found]

    def _reject(self, reason: str, *, security: bool = False) -> PathResolution:
        if security:
            _logger.warning(
                "Rejected path: %s", reason, extra={"context": "path_security"}
            )
        else:
            _logger.info("Rejected path: %s", reason)
        return PathResolution(rejection=PathRejected(reason=reason, security=security))


def write_atomic(path: Path, content: bytes, permissions: int = 0o644) -> None:
    """Write bytes to a temp file in the same folder, then rename into place."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp_")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(content)
            os.chmod(tmp_name, permissions)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as exc:
        _logger.exception(
            "Failed to write file", extra={"context": "storage", "path": str(path)}
        )
        raise StorageFailure(str(exc)) from exc
