"""
snapzip Notifications Module - progress and status events for every operation.

"The best backup is the one you know happened."
"""

import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import requests
from rich.progress import Progress, TaskID

from .rich_utils import print_error, print_info, print_success, print_warning


class NotificationLevel(str, Enum):
    """Severity level of notification."""
    INFO = "info"
    PROGRESS = "progress"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class NotificationEvent:
    """Represents a notification event."""

    title: str
    message: str
    level: NotificationLevel = NotificationLevel.INFO
    percent: int | None = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "title": self.title,
            "message": self.message,
            "level": self.level.value,
            "percent": self.percent,
            "timestamp": self.timestamp,
            "details": self.details,
        }


@dataclass
class NotificationConfig:
    """Configuration for notifications."""

    desktop_enabled: bool = True
    desktop_app_name: str = "snapzip"
    desktop_timeout_ms: int = 5000

    webhook_url: str = ""
    webhook_headers: dict[str, str] = field(default_factory=dict)
    webhook_timeout: float = 10.0

    notify_on_success: bool = True
    notify_on_failure: bool = True
    notify_on_progress: bool = True

    @property
    def webhook_enabled(self) -> bool:
        """A webhook is configured."""
        return bool(self.webhook_url)


class NotificationProvider(ABC):
    """Base class for notification providers."""

    @abstractmethod
    def send(self, event: NotificationEvent) -> bool:
        """Send a notification. Returns True if successful."""
        pass


class ConsoleNotifier(NotificationProvider):
    """
    Terminal provider.

    Status events are printed with the shared rich helpers. Progress events
    drive a rich progress bar when one is attached and are otherwise only
    printed in verbose mode.
    """

    def __init__(
        self,
        progress: Progress | None = None,
        task_id: TaskID | None = None,
        verbose: bool = False,
    ) -> None:
        self.progress = progress
        self.task_id = task_id
        self.verbose = verbose

    def send(self, event: NotificationEvent) -> bool:
        """Render an event on the terminal."""
        if event.level == NotificationLevel.PROGRESS:
            if self.progress is not None and self.task_id is not None:
                self.progress.update(
                    self.task_id,
                    completed=event.percent or 0,
                    description=event.message,
                )
            elif self.verbose:
                print_info(f"{event.message} ({event.percent}%)", prefix="…")
            return True

        if event.level == NotificationLevel.SUCCESS:
            print_success(event.message)
        elif event.level == NotificationLevel.ERROR:
            print_error(event.message)
        elif event.level == NotificationLevel.WARNING:
            print_warning(event.message)
        else:
            print_info(event.message)
        return True


class DesktopNotifier(NotificationProvider):
    """Desktop popup provider backed by ``notify-send``."""

    URGENCY = {
        NotificationLevel.INFO: "low",
        NotificationLevel.PROGRESS: "low",
        NotificationLevel.SUCCESS: "normal",
        NotificationLevel.WARNING: "normal",
        NotificationLevel.ERROR: "critical",
    }

    def __init__(self, config: NotificationConfig, binary: str | None = None) -> None:
        """Initialize desktop notifier; disabled when notify-send is missing."""
        self.config = config
        self.binary = binary or shutil.which("notify-send")

    @property
    def available(self) -> bool:
        """notify-send was found on PATH."""
        return self.binary is not None

    def build_command(self, event: NotificationEvent) -> list[str]:
        """Build the notify-send argument list for an event."""
        cmd = [
            self.binary or "notify-send",
            "--app-name", self.config.desktop_app_name,
            "--urgency", self.URGENCY.get(event.level, "normal"),
            "--expire-time", str(self.config.desktop_timeout_ms),
            # Reuse one popup for the whole operation
            "--hint", f"string:x-canonical-private-synchronous:{self.config.desktop_app_name}",
        ]
        if event.percent is not None:
            cmd.extend(["--hint", f"int:value:{event.percent}"])
        cmd.extend([event.title, event.message])
        return cmd

    def send(self, event: NotificationEvent) -> bool:
        """Send desktop notification."""
        if not self.config.desktop_enabled or not self.available:
            return False

        try:
            result = subprocess.run(
                self.build_command(event),
                capture_output=True,
                text=True,
                timeout=5,
            )
            return result.returncode == 0
        except (subprocess.SubprocessError, OSError):
            return False


class WebhookNotifier(NotificationProvider):
    """Generic webhook provider; posts the event as JSON."""

    def __init__(self, config: NotificationConfig, session: requests.Session | None = None) -> None:
        """Initialize webhook notifier."""
        self.config = config
        self.session = session or requests.Session()

    def send(self, event: NotificationEvent) -> bool:
        """Send webhook notification. Progress events are not forwarded."""
        if not self.config.webhook_enabled or event.level == NotificationLevel.PROGRESS:
            return False

        headers = {"Content-Type": "application/json"}
        headers.update(self.config.webhook_headers)

        try:
            response = self.session.post(
                self.config.webhook_url,
                json=event.to_dict(),
                headers=headers,
                timeout=self.config.webhook_timeout,
            )
            return response.status_code in (200, 201, 202, 204)
        except requests.RequestException:
            return False


class NotificationManager:
    """
    Fans events out to every configured provider.

    "Never miss a backup event. Or a failure."
    """

    def __init__(
        self,
        providers: list[NotificationProvider] | None = None,
        config: NotificationConfig | None = None,
        title: str = "Backup",
    ) -> None:
        """Initialize notification manager."""
        self.config = config or NotificationConfig()
        self.providers: list[NotificationProvider] = list(providers or [])
        self.title = title

    @classmethod
    def from_config(
        cls,
        config: NotificationConfig,
        console_notifier: ConsoleNotifier | None = None,
        title: str = "Backup",
    ) -> "NotificationManager":
        """Set up notification providers based on config."""
        providers: list[NotificationProvider] = []
        if console_notifier is not None:
            providers.append(console_notifier)
        if config.desktop_enabled:
            desktop = DesktopNotifier(config)
            if desktop.available:
                providers.append(desktop)
        if config.webhook_enabled:
            providers.append(WebhookNotifier(config))
        return cls(providers=providers, config=config, title=title)

    def notify(self, event: NotificationEvent) -> dict[str, bool]:
        """Send notification to all configured providers."""
        should_notify = (
            (event.level == NotificationLevel.SUCCESS and self.config.notify_on_success) or
            (event.level == NotificationLevel.ERROR and self.config.notify_on_failure) or
            (event.level == NotificationLevel.PROGRESS and self.config.notify_on_progress) or
            event.level in (NotificationLevel.INFO, NotificationLevel.WARNING)
        )

        if not should_notify:
            return {}

        results = {}
        for provider in self.providers:
            provider_name = type(provider).__name__
            try:
                results[provider_name] = provider.send(event)
            except Exception:
                # A broken sink must never abort the backup itself
                results[provider_name] = False

        return results

    def started(self, message: str, **details: Any) -> dict[str, bool]:
        """Announce the start of an operation."""
        return self.notify(NotificationEvent(
            title=self.title,
            message=message,
            level=NotificationLevel.INFO,
            percent=0,
            details=details,
        ))

    def progress(self, message: str, percent: int) -> dict[str, bool]:
        """Report a progress percentage (0-100)."""
        return self.notify(NotificationEvent(
            title=self.title,
            message=message,
            level=NotificationLevel.PROGRESS,
            percent=max(0, min(100, int(percent))),
        ))

    def success(self, message: str, **details: Any) -> dict[str, bool]:
        """Report successful completion."""
        return self.notify(NotificationEvent(
            title=self.title,
            message=message,
            level=NotificationLevel.SUCCESS,
            percent=100,
            details=details,
        ))

    def warning(self, message: str, **details: Any) -> dict[str, bool]:
        """Report a non-fatal problem."""
        return self.notify(NotificationEvent(
            title=self.title,
            message=message,
            level=NotificationLevel.WARNING,
            details=details,
        ))

    def failure(self, message: str, **details: Any) -> dict[str, bool]:
        """Report a fatal error."""
        return self.notify(NotificationEvent(
            title=self.title,
            message=message,
            level=NotificationLevel.ERROR,
            details=details,
        ))
