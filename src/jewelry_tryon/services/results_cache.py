"""On-disk cache of composed try-on results."""

import logging
from dataclasses import dataclass
from pathlib import Path, PurePath

from jewelry_tryon.services.storage import write_atomic

_logger = logging.getLogger(__name__)

RESULT_EXTENSION = ".png"


@dataclass
class ResultCache:
    """Maps a (user photo, jewelry photo) name pair to a result file.

    Keys are derived from stored names, not content: the same bytes stored
    under a new name miss the cache.
    """

    directory: Path
    file_permissions: int = 0o644

    def key_for(self, user_ref: str, jewelry_ref: str) -> str:
        """Return the cache file name for an ordered photo pair."""
        user_base = PurePath(user_ref).stem
        jewelry_base = PurePath(jewelry_ref).stem
        return f"{user_base}-{jewelry_base}{RESULT_EXTENSION}"

    def path_for(self, user_ref: str, jewelry_ref: str) -> Path:
        return self.directory / self.key_for(user_ref, jewelry_ref)

    def lookup(self, user_ref: str, jewelry_ref: str) -> Path | None:
        """Return the cached result path when a non-empty entry exists."""
        path = self.path_for(user_ref, jewelry_ref)
        try:
            if path.is_file() and path.stat().st_size > 0:
                _logger.info("Cached result found: %s", path.name)
                return path
        except OSError:
            _logger.warning("Failed to stat cache entry %s", path.name)
            return None
        _logger.info("No cached result for %s", path.name)
        return None

    def store(self, user_ref: str, jewelry_ref: str, content: bytes) -> Path:
        """Write a result, replacing any existing entry for the pair."""
        path = self.path_for(user_ref, jewelry_ref)
        write_atomic(path, content, self.file_permissions)
        _logger.info("Result saved to cache: %s", path.name)
        return path
