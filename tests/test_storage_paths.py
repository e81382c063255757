"""Tests for uploads directory paths and naming."""

import os
import re
from pathlib import Path

import pytest

from jewelry_tryon.domain.errors import StorageFailure
from jewelry_tryon.domain.photos import PhotoRole
from jewelry_tryon.services.storage import StoragePaths, write_atomic
from tests.conftest import write_image

_NAME_PATTERN = re.compile(r"^user_\d{8}_\d{6}_[0-9a-f]{32}\.jpg$")


def test_resolve_existing_file(storage: StoragePaths) -> None:
    path = write_image(storage.root / "user_photo.jpg")

    resolution = storage.resolve("user_photo.jpg")

    assert resolution.ok
    assert resolution.path == path.resolve()


@pytest.mark.parametrize(
    "candidate",
    ["../secret.jpg", "..", "nested/user.jpg", "nested\\user.jpg", "/etc/passwd"],
)
def test_resolve_rejects_traversal(storage: StoragePaths, candidate: str) -> None:
    resolution = storage.resolve(candidate)

    assert resolution.path is None
    assert resolution.rejection is not None
    assert resolution.rejection.security


def test_resolve_rejects_empty_long_and_missing(storage: StoragePaths) -> None:
    assert storage.resolve("").rejection is not None
    assert storage.resolve(None).rejection is not None
    too_long = storage.resolve("a" * 300 + ".jpg")
    assert too_long.rejection is not None
    assert not too_long.rejection.security
    missing = storage.resolve("missing.jpg")
    assert missing.rejection is not None
    assert not missing.rejection.security


def test_resolve_rejects_symlink_escaping_root(
    storage: StoragePaths, tmp_path: Path
) -> None:
    outside = write_image(tmp_path / "outside.jpg")
    (storage.root / "link.jpg").symlink_to(outside)

    resolution = storage.resolve("link.jpg")

    assert resolution.path is None
    assert resolution.rejection is not None
    assert resolution.rejection.security


def test_resolve_strips_control_characters(storage: StoragePaths) -> None:
    write_image(storage.root / "user_photo.jpg")

    assert storage.resolve("user_\nphoto.jpg\0").ok


def test_resolve_ref_managed_subfolders(storage: StoragePaths) -> None:
    write_image(storage.thumbnails_dir / "thumb_user_a.jpg")
    write_image(storage.results_dir / "user_a-jewel_b.png", fmt="PNG")

    assert storage.resolve_ref("thumbnails/thumb_user_a.jpg").ok
    assert storage.resolve_ref("results/user_a-jewel_b.png").ok
    assert not storage.resolve_ref("results/../user_a.jpg").ok
    assert not storage.resolve_ref("other/user_a.jpg").ok
    assert not storage.resolve_ref("").ok


def test_relative_ref(storage: StoragePaths) -> None:
    path = write_image(storage.results_dir / "r.jpg")

    assert storage.relative_ref(path) == "results/r.jpg"


def test_generate_name_format_and_uniqueness(storage: StoragePaths) -> None:
    first = storage.generate_name("Holiday.JPG", PhotoRole.USER)
    second = storage.generate_name("Holiday.JPG", PhotoRole.USER)

    assert _NAME_PATTERN.match(first)
    assert first != second


def test_generate_name_falls_back_to_png(storage: StoragePaths) -> None:
    name = storage.generate_name("ring.bmp", PhotoRole.JEWELRY)

    assert name.startswith("jewel_")
    assert name.endswith(".png")


def test_list_thumbnails_newest_first(storage: StoragePaths) -> None:
    older = write_image(storage.thumbnails_dir / "thumb_user_old.jpg")
    newer = write_image(storage.thumbnails_dir / "thumb_user_new.jpg")
    write_image(storage.thumbnails_dir / "thumb_jewel_ring.jpg")
    (storage.thumbnails_dir / "thumb_user_fake.jpg").write_bytes(b"not an image")
    os.utime(older, (1_700_000_000, 1_700_000_000))
    os.utime(newer, (1_700_000_100, 1_700_000_100))

    names = storage.list_thumbnails(PhotoRole.USER)

    assert names == ["thumb_user_new.jpg", "thumb_user_old.jpg"]
    assert storage.list_thumbnails(PhotoRole.JEWELRY) == ["thumb_jewel_ring.jpg"]


def test_original_name_for_thumbnail() -> None:
    assert StoragePaths.original_name_for_thumbnail("thumb_user_a.jpg") == "user_a.jpg"


def test_ensure_layout_is_idempotent(storage: StoragePaths) -> None:
    marker = storage.root / ".htaccess"
    marker.write_text("custom\n")

    storage.ensure_layout()

    assert marker.read_text() == "custom\n"
    assert storage.thumbnails_dir.is_dir()


def test_save_upload_applies_permissions(storage: StoragePaths) -> None:
    path = storage.save_upload(b"payload", "me.jpg", PhotoRole.USER)

    assert path.parent == storage.root
    assert path.read_bytes() == b"payload"
    assert oct(path.stat().st_mode & 0o777) == oct(0o644)


def test_write_atomic_raises_storage_failure(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a folder")

    with pytest.raises(StorageFailure):
        write_atomic(blocker / "out.png", b"data")
