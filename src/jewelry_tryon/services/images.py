"""Image inspection, resizing and thumbnailing backed by Pillow."""

import io
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from jewelry_tryon.domain.photos import StoredPhoto, format_bytes

_logger = logging.getLogger(__name__)

_SAVE_FORMATS = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/png": "PNG",
    "image/gif": "GIF",
}


def sniff_mime_type(content: bytes) -> str | None:
    """Return the MIME type detected from image bytes, if recognised."""
    try:
        with Image.open(io.BytesIO(content)) as image:
            fmt = image.format
    except (UnidentifiedImageError, OSError, ValueError):
        return None
    if fmt is None:
        return None
    return Image.MIME.get(fmt)


def sniff_file_mime_type(path: Path) -> str | None:
    """Return the MIME type detected from a file on disk, if recognised."""
    try:
        with Image.open(path) as image:
            fmt = image.format
    except (UnidentifiedImageError, OSError, ValueError):
        return None
    if fmt is None:
        return None
    return Image.MIME.get(fmt)


def read_dimensions(content: bytes) -> tuple[int, int] | None:
    """Return (width, height) when the bytes form a structurally valid image."""
    try:
        with Image.open(io.BytesIO(content)) as image:
            image.verify()
        with Image.open(io.BytesIO(content)) as image:
            width, height = image.size
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError):
        return None
    if width <= 0 or height <= 0:
        return None
    return width, height


def optimal_dimensions(
    width: int, height: int, max_width: int, max_height: int
) -> tuple[int, int]:
    """Fit (width, height) inside a bounding box, preserving aspect ratio."""
    if width <= max_width and height <= max_height:
        return width, height

    aspect_ratio = width / height
    if width > height:
        new_width = float(min(width, max_width))
        new_height = new_width / aspect_ratio
        if new_height > max_height:
            new_height = float(max_height)
            new_width = new_height * aspect_ratio
    else:
        new_height = float(min(height, max_height))
        new_width = new_height * aspect_ratio
        if new_width > max_width:
            new_width = float(max_width)
            new_height = new_width / aspect_ratio
    return max(1, round(new_width)), max(1, round(new_height))


def image_stats(path: Path) -> StoredPhoto | None:
    """Read width, height, MIME type, size and mtime of a stored image."""
    try:
        with Image.open(path) as image:
            width, height = image.size
            fmt = image.format
        stat = path.stat()
    except (UnidentifiedImageError, OSError, ValueError):
        return None
    mime_type = Image.MIME.get(fmt or "", "application/octet-stream")
    return StoredPhoto(
        path=path,
        width=width,
        height=height,
        mime_type=mime_type,
        size_bytes=stat.st_size,
        modified_at=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
    )


@dataclass
class ImageTransformer:
    """Best-effort optimizer and thumbnailer for stored photos."""

    max_width: int = 1920
    max_height: int = 1080
    jpeg_quality: int = 85
    png_compression: int = 6
    backup_original: bool = False
    thumbnail_size: int = 150
    thumbnail_jpeg_quality: int = 85
    file_permissions: int = 0o644

    def optimize(self, path: Path) -> bool:
        """Shrink an image in place when it exceeds the configured bounds."""
        stats = image_stats(path)
        if stats is None:
            _logger.warning(
                "Image optimization skipped: not a readable image",
                extra={"context": "image_optimization", "path": str(path)},
            )
            return False
        if stats.width <= self.max_width and stats.height <= self.max_height:
            _logger.info("Image already optimal size: %s", path.name)
            return True

        save_format = _SAVE_FORMATS.get(stats.mime_type)
        if save_format is None:
            _logger.warning(
                "Image optimization: unsupported format %s",
                stats.mime_type,
                extra={"context": "image_optimization", "path": str(path)},
            )
            return False

        if self.backup_original:
            backup_path = path.with_name(path.name + ".original")
            try:
                shutil.copy2(path, backup_path)
            except OSError:
                _logger.warning("Failed to create backup for %s", path.name)

        try:
            with Image.open(path) as source:
                image = source
                if save_format == "JPEG":
                    image = ImageOps.exif_transpose(source) or source
                new_size = optimal_dimensions(
                    image.width, image.height, self.max_width, self.max_height
                )
                resized = image.resize(new_size, Image.Resampling.LANCZOS)
                self._write(resized, path, save_format, self.jpeg_quality)
        except (UnidentifiedImageError, OSError, ValueError):
            _logger.exception(
                "Image optimization failed",
                extra={"context": "image_optimization", "path": str(path)},
            )
            return False

        _logger.info(
            "Image optimized: %s %sx%s -> %sx%s (%s -> %s)",
            stats.name,
            stats.width,
            stats.height,
            new_size[0],
            new_size[1],
            stats.size_human,
            format_bytes(path.stat().st_size),
        )
        return True

    def thumbnail(self, source: Path, destination: Path) -> bool:
        """Write a bounded-box thumbnail of ``source`` to ``destination``."""
        stats = image_stats(source)
        if stats is None:
            _logger.warning(
                "Thumbnail creation skipped: not a readable image",
                extra={"context": "thumbnail_creation", "path": str(source)},
            )
            return False
        save_format = _SAVE_FORMATS.get(stats.mime_type)
        if save_format is None:
            _logger.warning(
                "Thumbnail creation: unsupported format %s", stats.mime_type
            )
            return False

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            if (
                stats.width <= self.thumbnail_size
                and stats.height <= self.thumbnail_size
            ):
                shutil.copyfile(source, destination)
            else:
                with Image.open(source) as image:
                    thumb = image.copy()
                    thumb.thumbnail(
                        (self.thumbnail_size, self.thumbnail_size),
                        Image.Resampling.LANCZOS,
                    )
                    self._write(
                        thumb, destination, save_format, self.thumbnail_jpeg_quality
                    )
            os.chmod(destination, self.file_permissions)
        except (UnidentifiedImageError, OSError, ValueError):
            _logger.exception(
                "Thumbnail creation failed",
                extra={"context": "thumbnail_creation", "path": str(source)},
            )
            return False
        _logger.info("Thumbnail created: %s", destination.name)
        return True

    def _write(
        self, image: Image.Image, path: Path, save_format: str, quality: int
    ) -> None:
        params: dict[str, object] = {}
        if save_format == "JPEG":
            if image.mode not in {"RGB", "L"}:
                image = image.convert("RGB")
            params["quality"] = quality
        elif save_format == "PNG":
            params["compress_level"] = self.png_compression
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp_")
        try:
            with os.fdopen(fd, "wb") as handle:
                image.save(handle, format=save_format, **params)
            os.chmod(tmp_name, self.file_permissions)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
