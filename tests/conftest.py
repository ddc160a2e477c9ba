"""
Shared fixtures for snapzip tests.

"Mock the world. Keep the files real."
"""

from pathlib import Path

import pytest

from snapzip.models import BackupConfig
from snapzip.notifications import (
    NotificationEvent,
    NotificationLevel,
    NotificationManager,
    NotificationProvider,
)


class RecordingNotifier(NotificationProvider):
    """Provider that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    def send(self, event: NotificationEvent) -> bool:
        self.events.append(event)
        return True

    @property
    def percents(self) -> list[int]:
        """Percentages of the progress events, in order."""
        return [
            e.percent for e in self.events
            if e.level == NotificationLevel.PROGRESS and e.percent is not None
        ]

    def levels(self) -> list[NotificationLevel]:
        return [e.level for e in self.events]


@pytest.fixture
def recorder() -> RecordingNotifier:
    """A recording notification provider."""
    return RecordingNotifier()


@pytest.fixture
def notifier(recorder: RecordingNotifier) -> NotificationManager:
    """A manager that only records."""
    return NotificationManager(providers=[recorder])


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """
    A fake home directory:

        home/src/a.txt        "hello"
        home/src/b.log        "noise"
        home/src/nested/c.txt "deep"
    """
    root = tmp_path / "home"
    src = root / "src"
    (src / "nested").mkdir(parents=True)
    (src / "a.txt").write_text("hello")
    (src / "b.log").write_text("noise")
    (src / "nested" / "c.txt").write_text("deep")
    return root


@pytest.fixture
def config(home: Path, tmp_path: Path) -> BackupConfig:
    """Config backing up home/src, excluding *.log, with no desktop popups."""
    return BackupConfig.from_options(
        root=home,
        dirs="src",
        exclude="*.log",
        archive_dir=tmp_path / "archives",
        dest=tmp_path / "dst",
        tmp_dir=tmp_path / "tmp",
        notify=False,
    )
