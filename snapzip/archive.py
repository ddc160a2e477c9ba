"""
Archive creation and listing.

"Compression is just forgetting the boring parts."
"""

import fnmatch
import os
import threading
import time
import zipfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path, PurePosixPath

from .errors import BackupError, ExternalToolError
from .models import ARCHIVE_SUFFIX, ArchiveInfo, BackupConfig, CreateResult, OperationState
from .notifications import NotificationManager
from .rich_utils import print_verbose

# Throughput assumed by the progress ramp; compression reports nothing real
ASSUMED_BYTES_PER_SECOND = 25 * 1024 * 1024
PART_SUFFIX = ".part"


@dataclass
class ArchiveEntry:
    """A file selected for the archive."""

    source: Path
    arcname: str
    size: int


def is_excluded(relative_path: str, patterns: tuple[str, ...] | list[str]) -> bool:
    """
    Check a root-relative path against the exclusion globs.

    A pattern matches when it matches the whole relative path or any single
    component of it, so ``*.log`` drops every log file and ``node_modules``
    drops everything below such a directory.

    Examples:
        is_excluded("src/b.log", ["*.log"]) -> True
        is_excluded("app/node_modules/x/index.js", ["node_modules"]) -> True
        is_excluded("src/a.txt", ["*.log"]) -> False
    """
    parts = PurePosixPath(relative_path).parts
    for pattern in patterns:
        if fnmatch.fnmatch(relative_path, pattern):
            return True
        if any(fnmatch.fnmatch(part, pattern) for part in parts):
            return True
    return False


def relative_arcname(path: Path, source: Path, root: Path) -> str:
    """
    Entry name for a file: relative to the root when the source lives under
    it, otherwise relative to the source's parent directory.
    """
    try:
        rel = path.relative_to(root)
    except ValueError:
        rel = Path(source.name) / path.relative_to(source)
    return rel.as_posix()


def collect_entries(config: BackupConfig) -> tuple[list[ArchiveEntry], int, list[Path]]:
    """
    Walk the existing source directories.

    Returns:
        Tuple of (selected entries, number of excluded files, missing sources)
    """
    entries: list[ArchiveEntry] = []
    seen: set[str] = set()
    excluded = 0
    existing = config.existing_sources()
    missing = [source for source in config.source_dirs if source not in existing]

    for source in existing:
        for dirpath, dirnames, filenames in os.walk(source):
            dirnames.sort()
            for filename in sorted(filenames):
                path = Path(dirpath) / filename
                # Regular files only: no sockets, fifos or dangling links
                if not path.is_file():
                    continue
                # Never archive earlier archives
                if config.archive_dir in path.parents:
                    continue

                arcname = relative_arcname(path, source, config.root)
                if is_excluded(arcname, config.exclude_patterns):
                    excluded += 1
                    continue
                if arcname in seen:
                    continue

                try:
                    size = path.stat().st_size
                except OSError:
                    continue
                seen.add(arcname)
                entries.append(ArchiveEntry(source=path, arcname=arcname, size=size))

    return entries, excluded, missing


class HeuristicRamp:
    """
    Synthetic progress for work that reports none.

    Each ``tick()`` advances linearly towards the expected duration and the
    value never reaches 100 on its own; only ``finish()`` does. The numbers
    are an estimate, not a measurement.
    """

    def __init__(self, expected_ticks: float, cap: int = 99) -> None:
        self.expected_ticks = max(expected_ticks, 1.0)
        self.cap = cap
        self.ticks = 0
        self.value = 0

    @classmethod
    def for_bytes(cls, total_bytes: int, poll_interval: float) -> "HeuristicRamp":
        """Ramp sized from the amount of data and the polling interval."""
        expected_seconds = total_bytes / ASSUMED_BYTES_PER_SECOND
        return cls(expected_seconds / max(poll_interval, 1e-6))

    def tick(self) -> int:
        """Advance one polling interval and return the new percentage."""
        self.ticks += 1
        estimate = int(self.ticks * 100 / self.expected_ticks)
        self.value = max(self.value, min(estimate, self.cap))
        return self.value

    def finish(self) -> int:
        """Jump to 100 once the work is really done."""
        self.value = 100
        return self.value


class _ZipWorker(threading.Thread):
    """Background thread writing the archive file."""

    def __init__(
        self,
        entries: list[ArchiveEntry],
        target: Path,
        compress_level: int,
        verbose: bool = False,
    ) -> None:
        super().__init__(name="snapzip-compress", daemon=True)
        self.entries = entries
        self.target = target
        self.compress_level = compress_level
        self.verbose = verbose
        self.error: Exception | None = None
        self.written = 0
        self.cancelled = threading.Event()

    def cancel(self) -> None:
        """Ask the worker to stop after the current entry."""
        self.cancelled.set()

    def run(self) -> None:
        if self.compress_level == 0:
            compression, level = zipfile.ZIP_STORED, None
        else:
            compression, level = zipfile.ZIP_DEFLATED, self.compress_level

        try:
            with zipfile.ZipFile(
                self.target,
                "w",
                compression=compression,
                compresslevel=level,
                allowZip64=True,
                strict_timestamps=False,
            ) as zf:
                for entry in self.entries:
                    if self.cancelled.is_set():
                        return
                    zf.write(entry.source, entry.arcname)
                    self.written += 1
                    print_verbose(f"  adding: {entry.arcname}", self.verbose)
        except Exception as e:
            # Re-raised on the calling thread by create_archive
            self.error = e


def create_archive(
    config: BackupConfig,
    notifier: NotificationManager | None = None,
    poll_interval: float = 1.0,
    now: datetime | None = None,
) -> CreateResult:
    """
    Create one archive of the configured source directories.

    "Every journey begins with a single os.walk."

    The zip is written by a background thread to ``<name>.part`` and renamed
    into place only when complete, while this thread polls it every
    ``poll_interval`` seconds and emits ramp progress.

    Args:
        config: Invocation configuration
        notifier: Progress/status sink (silent if None)
        poll_interval: Seconds between liveness polls of the worker
        now: Clock override for the generated archive name

    Returns:
        CreateResult for the finished archive

    Raises:
        BackupError: If the archive directory cannot be created
        ExternalToolError: If writing the archive fails
    """
    notifier = notifier or NotificationManager()
    start_time = time.time()
    target = config.archive_path(now)
    result = CreateResult(archive_path=target, state=OperationState.RUNNING)

    try:
        config.archive_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        result.state = OperationState.FAILED
        result.error_message = str(e)
        raise BackupError(f"Cannot create archive directory {config.archive_dir}: {e}") from e

    entries, excluded, missing = collect_entries(config)
    result.sources = [s for s in config.source_dirs if s not in missing]
    result.skipped_sources = missing
    result.files_excluded = excluded
    result.bytes_read = sum(entry.size for entry in entries)

    for source in missing:
        print_verbose(f"  skipping missing source: {source}", config.verbose)

    notifier.started(
        f"Backup started: {len(entries)} files from {len(result.sources)} directories",
        archive=str(target),
    )

    partial = target.with_name(target.name + PART_SUFFIX)
    worker = _ZipWorker(entries, partial, config.compress_level, verbose=config.verbose)
    ramp = HeuristicRamp.for_bytes(result.bytes_read, poll_interval)
    last_percent = -1

    worker.start()
    try:
        while worker.is_alive():
            worker.join(timeout=poll_interval)
            if worker.is_alive():
                percent = ramp.tick()
                if percent != last_percent:
                    notifier.progress("Compressing...", percent)
                    last_percent = percent
    except KeyboardInterrupt:
        worker.cancel()
        worker.join()
        partial.unlink(missing_ok=True)
        result.state = OperationState.FAILED
        raise

    if worker.error is not None:
        partial.unlink(missing_ok=True)
        result.state = OperationState.FAILED
        result.error_message = str(worker.error)
        result.duration_seconds = time.time() - start_time
        notifier.failure(f"Backup failed: {worker.error}")
        raise ExternalToolError(f"Failed to write archive {target}: {worker.error}") from worker.error

    try:
        os.replace(partial, target)
    except OSError as e:
        partial.unlink(missing_ok=True)
        result.state = OperationState.FAILED
        result.error_message = str(e)
        raise ExternalToolError(f"Failed to move archive into place: {e}") from e

    notifier.progress("Compression complete", ramp.finish())

    result.files_added = worker.written
    result.archive_size = target.stat().st_size
    result.state = OperationState.COMPLETED
    result.duration_seconds = time.time() - start_time

    notifier.success(f"Backup created: {target}", files=result.files_added)
    return result


def list_archives(archive_dir: Path) -> list[ArchiveInfo]:
    """
    Enumerate archives in a directory, oldest name first.

    A missing or empty directory yields an empty list, never an error.
    """
    if not archive_dir.is_dir():
        return []

    archives = [
        ArchiveInfo.from_path(path)
        for path in archive_dir.iterdir()
        if path.is_file() and path.name.lower().endswith(ARCHIVE_SUFFIX)
    ]
    return sorted(archives, key=lambda info: (info.name, info.modified))


def read_entry_names(archive_path: Path) -> list[str]:
    """Names of the file entries stored in an archive."""
    try:
        with zipfile.ZipFile(archive_path) as zf:
            return [info.filename for info in zf.infolist() if not info.is_dir()]
    except (zipfile.BadZipFile, OSError) as e:
        raise ExternalToolError(f"Cannot read archive {archive_path}: {e}") from e
