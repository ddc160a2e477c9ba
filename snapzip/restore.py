"""
Restore functionality for snapzip.

"Backups are insurance. Restores are the payout."

A restore unpacks an archive into a private staging directory, then merges
the staged files into the destination without ever overwriting what is
already there. The merge is done by a swappable engine that reports its work
as lines of text; a small observer turns those lines into progress.
"""

import os
import shutil
import subprocess
import tempfile
import time
import zipfile
import zlib
from abc import ABC, abstractmethod
from collections.abc import Iterator
from pathlib import Path

from .errors import BackupNotFoundError, ExternalToolError
from .models import OperationState, RestoreResult
from .notifications import NotificationManager
from .rich_utils import print_verbose
from .validation import ValidationError, validate_member_path

STAGING_PREFIX = "restore-"


class MergeEngine(ABC):
    """Copies staged files into a destination tree, one output line per file."""

    name = "base"

    @abstractmethod
    def sync(self, source: Path, dest: Path) -> Iterator[str]:
        """
        Merge ``source`` into ``dest``.

        Implementations must skip files that already exist at the
        destination and consume (delete) each staged file they copy.
        Yields one line per transferred entry.
        """
        pass


class PythonMergeEngine(MergeEngine):
    """In-process merge using shutil."""

    name = "python"

    def sync(self, source: Path, dest: Path) -> Iterator[str]:
        """Copy absent files with their metadata, then drop the staged copy."""
        try:
            dest.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ExternalToolError(f"Cannot create destination {dest}: {e}") from e

        for dirpath, dirnames, filenames in os.walk(source):
            dirnames.sort()
            for filename in sorted(filenames):
                staged = Path(dirpath) / filename
                rel = staged.relative_to(source)
                target = dest / rel

                if target.exists() or target.is_symlink():
                    continue

                try:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(staged, target)
                except OSError as e:
                    raise ExternalToolError(f"Failed to copy {rel}: {e}") from e
                staged.unlink()
                yield rel.as_posix()


class RsyncMergeEngine(MergeEngine):
    """
    Merge through the rsync binary.

    ``--ignore-existing`` keeps destination files untouched and
    ``--remove-source-files`` consumes the staging area; ``--out-format=%n``
    prints the name of every transferred entry.
    """

    name = "rsync"

    def __init__(self, binary: str | None = None) -> None:
        self.binary = binary or shutil.which("rsync")

    def build_command(self, source: Path, dest: Path) -> list[str]:
        """Build the rsync argument list."""
        return [
            self.binary or "rsync",
            "-a",
            "--ignore-existing",
            "--remove-source-files",
            "--out-format=%n",
            f"{source}{os.sep}",
            f"{dest}{os.sep}",
        ]

    def sync(self, source: Path, dest: Path) -> Iterator[str]:
        """Run rsync and stream its stdout line by line."""
        if self.binary is None:
            raise ExternalToolError("rsync not found. Install it or use --engine python")

        try:
            dest.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ExternalToolError(f"Cannot create destination {dest}: {e}") from e

        with tempfile.TemporaryFile("w+") as stderr:
            try:
                proc = subprocess.Popen(
                    self.build_command(source, dest),
                    stdout=subprocess.PIPE,
                    stderr=stderr,
                    text=True,
                    bufsize=1,
                )
            except OSError as e:
                raise ExternalToolError(f"Failed to start rsync: {e}") from e

            try:
                for line in proc.stdout:
                    yield line.rstrip("\n")
            finally:
                proc.stdout.close()
                returncode = proc.wait()

            if returncode != 0:
                stderr.seek(0)
                output = stderr.read().strip()
                raise ExternalToolError(
                    f"rsync failed with exit code {returncode}",
                    output=output,
                )


MERGE_ENGINES: dict[str, type[MergeEngine]] = {
    PythonMergeEngine.name: PythonMergeEngine,
    RsyncMergeEngine.name: RsyncMergeEngine,
}


def get_merge_engine(name: str) -> MergeEngine:
    """
    Look up a merge engine by name.

    Raises:
        ValidationError: If the name is unknown
    """
    try:
        return MERGE_ENGINES[name.lower()]()
    except KeyError:
        allowed = ", ".join(f"'{n}'" for n in MERGE_ENGINES)
        raise ValidationError(f"Invalid engine '{name}'. Allowed engines: {allowed}") from None


class MergeProgress:
    """
    Turns merge output lines into progress percentages.

    Only file lines count; blank lines and directory lines (trailing slash)
    are ignored. Counting starts from 0%, which the caller announces;
    ``observe`` returns the new percentage only when it differs from the last
    one reported.
    """

    def __init__(self, total: int) -> None:
        # An empty staging area would divide by zero
        self.total = total if total > 0 else 100
        self.processed = 0
        self.last_percent = 0
        self.items: list[str] = []

    @staticmethod
    def is_file_line(line: str) -> bool:
        """Whether a line names a transferred file."""
        line = line.strip()
        return bool(line) and not line.endswith("/") and line != "."

    @property
    def percent(self) -> int:
        """Current percentage, capped at 100."""
        return min(int(self.processed * 100 / self.total), 100)

    def observe(self, line: str) -> int | None:
        """Record one output line; return a percentage if it changed."""
        if not self.is_file_line(line):
            return None

        self.processed += 1
        self.items.append(line.strip())

        percent = self.percent
        if percent == self.last_percent:
            return None
        self.last_percent = percent
        return percent


def count_files(directory: Path) -> int:
    """Count the regular files below a directory."""
    total = 0
    for _dirpath, _dirnames, filenames in os.walk(directory):
        total += len(filenames)
    return total


def extract_to_staging(archive_path: Path, staging: Path) -> int:
    """
    Fully extract an archive into the staging directory.

    Returns:
        Number of file entries extracted

    Raises:
        ExternalToolError: If the archive is corrupt or an entry is unsafe
    """
    count = 0
    try:
        with zipfile.ZipFile(archive_path) as zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue
                validate_member_path(info.filename)
                zf.extract(info, staging)
                count += 1
    except ValidationError as e:
        raise ExternalToolError(f"Refusing to extract {archive_path.name}: {e}") from e
    except (zipfile.BadZipFile, zlib.error, EOFError, OSError) as e:
        raise ExternalToolError(f"Failed to extract {archive_path.name}: {e}") from e
    return count


def restore_archive(
    archive_path: Path,
    dest: Path,
    tmp_dir: Path,
    notifier: NotificationManager | None = None,
    engine: MergeEngine | None = None,
    verbose: bool = False,
) -> RestoreResult:
    """
    Restore an archive into a destination tree.

    "Restoration is the art of bringing the past into the present."

    Existing destination files are never overwritten or removed, so running
    the same restore twice changes nothing the second time.

    Args:
        archive_path: Archive to restore
        dest: Destination root
        tmp_dir: Directory in which the staging area is created
        notifier: Progress/status sink (silent if None)
        engine: Merge engine (PythonMergeEngine if None)
        verbose: Print every restored file

    Returns:
        RestoreResult with counts and restored paths

    Raises:
        BackupNotFoundError: If the archive does not exist
        ExternalToolError: If staging, extraction or the merge fails
    """
    notifier = notifier or NotificationManager()
    engine = engine or PythonMergeEngine()
    start_time = time.time()

    result = RestoreResult(archive_path=archive_path, dest=dest)

    if not archive_path.is_file():
        result.state = OperationState.FAILED
        result.error_message = f"Backup file not found: {archive_path}"
        raise BackupNotFoundError(result.error_message)

    result.state = OperationState.RUNNING
    notifier.started(f"Restoring {archive_path.name} into {dest}", archive=str(archive_path))

    try:
        tmp_dir.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=tmp_dir))
    except OSError as e:
        result.state = OperationState.FAILED
        result.error_message = f"Cannot create staging directory in {tmp_dir}: {e}"
        notifier.failure(result.error_message)
        raise ExternalToolError(result.error_message) from e

    try:
        try:
            extract_to_staging(archive_path, staging)
        except ExternalToolError as e:
            result.state = OperationState.FAILED
            result.error_message = str(e)
            notifier.failure(str(e))
            raise

        result.files_total = count_files(staging)
        tracker = MergeProgress(result.files_total)
        notifier.progress("Restoring...", 0)

        try:
            for line in engine.sync(staging, dest):
                percent = tracker.observe(line)
                print_verbose(f"  restored: {line}", verbose and MergeProgress.is_file_line(line))
                if percent is not None:
                    notifier.progress("Restoring...", percent)
        except ExternalToolError as e:
            result.state = OperationState.FAILED
            result.error_message = str(e)
            notifier.failure(str(e))
            raise

        if tracker.last_percent != 100:
            notifier.progress("Restore complete", 100)

        result.files_restored = tracker.processed
        result.restored_items = tracker.items
        result.state = OperationState.COMPLETED
    finally:
        shutil.rmtree(staging, ignore_errors=True)
        result.duration_seconds = time.time() - start_time

    notifier.success(
        f"Restored {result.files_restored} files into {dest} "
        f"({result.files_skipped} already present)",
        restored=result.files_restored,
        skipped=result.files_skipped,
    )
    return result
