"""Retention cleanup for the uploads directory.

Run from cron, for example::

    0 2 * * * jewelry-tryon-cleanup --max-age 24 >> cleanup.log 2>&1
"""

import argparse
import fnmatch
import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from jewelry_tryon.app_logging import configure_logging
from jewelry_tryon.config import CleanupSettings, parse_csv
from jewelry_tryon.domain.photos import format_bytes

_logger = logging.getLogger(__name__)


@dataclass
class CleanupReport:
    """Summary of a cleanup run."""

    deleted_count: int = 0
    bytes_freed: int = 0
    kept: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    dry_run: bool = False


def should_exclude(name: str, patterns: Iterable[str]) -> bool:
    """Return true when a file name matches any exclude pattern."""
    return any(fnmatch.fnmatch(name, pattern) for pattern in patterns)


def cleanup(  # noqa: PLR0913
    root: Path,
    max_age_seconds: float,
    exclude_patterns: Sequence[str] = (),
    dry_run: bool = False,
    *,
    simulate_now: bool = False,
    now: float | None = None,
) -> CleanupReport:
    """Delete files in ``root`` older than ``max_age_seconds``.

    Only regular files directly inside ``root`` are considered. With
    ``dry_run`` nothing is deleted, but the report counts what would be.
    ``simulate_now`` treats every file as old.
    """
    report = CleanupReport(dry_run=dry_run)
    if not root.is_dir():
        raise FileNotFoundError(f"Target directory does not exist: {root}")

    current = time.time() if now is None else now
    _logger.info(
        "Starting cleanup in %s (max age %ss, dry run: %s)",
        root,
        max_age_seconds,
        dry_run,
    )
    for entry in sorted(root.iterdir()):
        if not entry.is_file():
            continue
        if should_exclude(entry.name, exclude_patterns):
            _logger.info("SKIPPED (excluded): %s", entry.name)
            report.skipped.append(entry.name)
            continue

        stat = entry.stat()
        age = current - stat.st_mtime
        if simulate_now:
            age = max_age_seconds + 1
        age_hours = round(age / 3600, 2)
        if age <= max_age_seconds:
            _logger.info("KEPT: %s (age: %sh)", entry.name, age_hours)
            report.kept.append(entry.name)
            continue

        if dry_run:
            _logger.info(
                "WOULD DELETE: %s (age: %sh, size: %s)",
                entry.name,
                age_hours,
                format_bytes(stat.st_size),
            )
        else:
            try:
                entry.unlink()
            except OSError:
                _logger.exception("Failed to delete %s", entry.name)
                report.failed.append(entry.name)
                continue
            _logger.info(
                "DELETED: %s (age: %sh, size: %s)",
                entry.name,
                age_hours,
                format_bytes(stat.st_size),
            )
        report.deleted_count += 1
        report.bytes_freed += stat.st_size

    verb = "would be deleted" if dry_run else "deleted"
    _logger.info(
        "Cleanup completed. Files %s: %s (%s)",
        verb,
        report.deleted_count,
        format_bytes(report.bytes_freed),
    )
    return report


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="jewelry-tryon-cleanup",
        description="Remove old files from the uploads directory.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="show what would be deleted without deleting",
    )
    parser.add_argument(
        "--simulate-now",
        action="store_true",
        help="treat every file as old (implies --dry-run)",
    )
    parser.add_argument(
        "--max-age", type=int, metavar="HOURS", help="override the cleanup age"
    )
    parser.add_argument("--log-file", type=Path, help="also append logs to this file")
    parser.add_argument(
        "--directory", type=Path, help="directory to clean (default: uploads dir)"
    )
    return parser


def main(
    argv: Sequence[str] | None = None, settings: CleanupSettings | None = None
) -> int:
    """Run the cleanup command and return a process exit code."""
    args = build_parser().parse_args(argv)
    configure_logging()
    app_logger = logging.getLogger("jewelry_tryon")
    file_handler: logging.Handler | None = None
    if args.log_file is not None:
        args.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(args.log_file)
        file_handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s")
        )
        app_logger.addHandler(file_handler)
    try:
        return _run(args, settings or CleanupSettings())
    finally:
        if file_handler is not None:
            app_logger.removeHandler(file_handler)
            file_handler.close()


def _run(args: argparse.Namespace, resolved_settings: CleanupSettings) -> int:
    max_age_hours = resolved_settings.cleanup_max_age_hours
    if args.max_age is not None and args.max_age > 0:
        max_age_hours = args.max_age
    directory = args.directory or Path(resolved_settings.uploads_dir)
    dry_run = args.dry_run or args.simulate_now

    try:
        cleanup(
            directory,
            max_age_seconds=max_age_hours * 3600,
            exclude_patterns=parse_csv(resolved_settings.cleanup_exclude_patterns),
            dry_run=dry_run,
            simulate_now=args.simulate_now,
        )
    except OSError:
        _logger.exception("Cleanup failed")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
