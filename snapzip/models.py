"""
Data models for snapzip.

"A backup is only as good as the list of what went into it."
"""

import re
import tempfile
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from .rich_utils import format_size
from .validation import (
    split_csv,
    validate_archive_name,
    validate_compress_level,
    validate_port,
)

ARCHIVE_PREFIX = "backup-"
ARCHIVE_SUFFIX = ".zip"
ARCHIVE_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
ARCHIVE_NAME_PATTERN = re.compile(r"^backup-\d{14}\.zip$")

DEFAULT_SOURCE_DIRS = (
    "Documents",
    "Desktop",
    "Pictures",
    "Music",
    "Videos",
    "Projects",
    ".ssh",
    ".config",
)
DEFAULT_EXCLUDES = (
    "node_modules",
    "__pycache__",
    ".cache",
    "*.tmp",
    "*.swp",
)
DEFAULT_PORT = 8000
DEFAULT_COMPRESS_LEVEL = 6


def default_root() -> Path:
    """The fixed root archives are relative to: the invoking user's home."""
    return Path.home()


def default_archive_dir() -> Path:
    """Default directory holding created archives (~/backups)."""
    return default_root() / "backups"


def default_tmp_dir() -> Path:
    """Default working directory for downloads and restore staging."""
    return Path(tempfile.gettempdir())


def generate_archive_name(now: datetime | None = None) -> str:
    """
    Build the timestamped archive name.

    Example:
        2026-10-16 14:03:09 -> "backup-20261016140309.zip"
    """
    now = now or datetime.now()
    return f"{ARCHIVE_PREFIX}{now.strftime(ARCHIVE_TIMESTAMP_FORMAT)}{ARCHIVE_SUFFIX}"


def archive_day_prefix(now: datetime | None = None) -> str:
    """Name prefix shared by every archive created on the given day."""
    now = now or datetime.now()
    return f"{ARCHIVE_PREFIX}{now.strftime('%Y%m%d')}"


class OperationState(str, Enum):
    """Lifecycle of a single pipeline operation."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class BackupConfig:
    """
    Configuration for one snapzip invocation.

    Built once from defaults plus CLI overrides and never mutated afterwards;
    every operation receives it explicitly.
    """

    root: Path
    source_dirs: tuple[Path, ...]
    exclude_patterns: tuple[str, ...]
    archive_dir: Path
    dest: Path
    tmp_dir: Path
    compress_level: int = DEFAULT_COMPRESS_LEVEL
    port: int = DEFAULT_PORT
    output_name: str | None = None
    notify: bool = True
    verbose: bool = False

    @classmethod
    def from_options(
        cls,
        archive_dir: Path | str | None = None,
        dest: Path | str | None = None,
        tmp_dir: Path | str | None = None,
        port: int | None = None,
        output_name: str | None = None,
        dirs: str | list[str] | None = None,
        exclude: str | list[str] | None = None,
        compress_level: int | None = None,
        notify: bool = True,
        verbose: bool = False,
        root: Path | str | None = None,
    ) -> "BackupConfig":
        """
        Merge CLI values with built-in defaults.

        Relative source directories are anchored under ``root``. List options
        accept comma-separated strings. Values are validated here so the
        resulting config is always usable.

        Raises:
            ValidationError: If a value is out of range or malformed
        """
        root_path = Path(root).expanduser() if root else default_root()

        dir_names = split_csv(dirs) or list(DEFAULT_SOURCE_DIRS)
        sources = []
        for name in dir_names:
            path = Path(name).expanduser()
            sources.append(path if path.is_absolute() else root_path / path)

        patterns = split_csv(exclude) if exclude is not None else list(DEFAULT_EXCLUDES)

        return cls(
            root=root_path,
            source_dirs=tuple(sources),
            exclude_patterns=tuple(patterns),
            archive_dir=Path(archive_dir).expanduser() if archive_dir else default_archive_dir(),
            dest=Path(dest).expanduser() if dest else root_path,
            tmp_dir=Path(tmp_dir).expanduser() if tmp_dir else default_tmp_dir(),
            compress_level=validate_compress_level(
                DEFAULT_COMPRESS_LEVEL if compress_level is None else compress_level
            ),
            port=validate_port(DEFAULT_PORT if port is None else port),
            output_name=validate_archive_name(output_name) if output_name else None,
            notify=notify,
            verbose=verbose,
        )

    def with_overrides(self, **changes: Any) -> "BackupConfig":
        """Return a copy with some fields replaced."""
        return replace(self, **changes)

    def resolve_archive_name(self, now: datetime | None = None) -> str:
        """The output override if given, otherwise a timestamped name."""
        return self.output_name or generate_archive_name(now)

    def archive_path(self, now: datetime | None = None) -> Path:
        """Full path of the archive a create run will produce."""
        return self.archive_dir / self.resolve_archive_name(now)

    def existing_sources(self) -> list[Path]:
        """Configured source directories that exist right now."""
        return [path for path in self.source_dirs if path.is_dir()]


@dataclass
class ArchiveInfo:
    """An archive file found in the archive directory."""

    path: Path
    size: int
    modified: float

    @classmethod
    def from_path(cls, path: Path) -> "ArchiveInfo":
        """Stat an archive file."""
        stat = path.stat()
        return cls(path=path, size=stat.st_size, modified=stat.st_mtime)

    @property
    def name(self) -> str:
        """File name of the archive."""
        return self.path.name

    @property
    def size_human(self) -> str:
        """Human-readable size."""
        return format_size(self.size)

    @property
    def modified_iso(self) -> str:
        """Modification time as an ISO-8601 string."""
        return datetime.fromtimestamp(self.modified).isoformat(timespec="seconds")

    @property
    def follows_naming_convention(self) -> bool:
        """Whether the name was generated by create (not an --output override)."""
        return bool(ARCHIVE_NAME_PATTERN.match(self.name))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "path": str(self.path),
            "size": self.size,
            "size_human": self.size_human,
            "modified": self.modified_iso,
        }


@dataclass
class CreateResult:
    """
    Result of an archive creation run.

    "Every archive starts as a list of files someone cared about."
    """

    archive_path: Path
    state: OperationState = OperationState.IDLE
    files_added: int = 0
    files_excluded: int = 0
    bytes_read: int = 0
    archive_size: int = 0
    sources: list[Path] = field(default_factory=list)
    skipped_sources: list[Path] = field(default_factory=list)
    duration_seconds: float = 0.0
    error_message: str = ""

    @property
    def success(self) -> bool:
        """True once the archive is in place."""
        return self.state == OperationState.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "archive_path": str(self.archive_path),
            "state": self.state.value,
            "files_added": self.files_added,
            "files_excluded": self.files_excluded,
            "bytes_read": self.bytes_read,
            "archive_size": self.archive_size,
            "sources": [str(p) for p in self.sources],
            "skipped_sources": [str(p) for p in self.skipped_sources],
            "duration_seconds": self.duration_seconds,
            "error_message": self.error_message,
        }


@dataclass
class RestoreResult:
    """
    Result of a restore (merge) operation.

    ``files_total`` is the number of files found in the staging area;
    everything that was not restored was already present at the destination.
    """

    archive_path: Path
    dest: Path
    state: OperationState = OperationState.IDLE
    files_total: int = 0
    files_restored: int = 0
    restored_items: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    error_message: str = ""

    @property
    def success(self) -> bool:
        """True once the merge finished."""
        return self.state == OperationState.COMPLETED

    @property
    def files_skipped(self) -> int:
        """Files left alone because the destination already had them."""
        return max(self.files_total - self.files_restored, 0)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "archive_path": str(self.archive_path),
            "dest": str(self.dest),
            "state": self.state.value,
            "files_total": self.files_total,
            "files_restored": self.files_restored,
            "files_skipped": self.files_skipped,
            "restored_items": self.restored_items,
            "duration_seconds": self.duration_seconds,
            "error_message": self.error_message,
        }


@dataclass
class DownloadResult:
    """Result of fetching an archive from a peer."""

    url: str
    path: Path
    state: OperationState = OperationState.IDLE
    bytes_written: int = 0
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """True once the file is fully on disk."""
        return self.state == OperationState.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "url": self.url,
            "path": str(self.path),
            "state": self.state.value,
            "bytes_written": self.bytes_written,
            "duration_seconds": self.duration_seconds,
        }
