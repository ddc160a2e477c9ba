"""Tests for the notifications module."""

from unittest.mock import MagicMock, patch

import requests
import responses
from rich.progress import Progress

from snapzip.notifications import (
    ConsoleNotifier,
    DesktopNotifier,
    NotificationConfig,
    NotificationEvent,
    NotificationLevel,
    NotificationManager,
    NotificationProvider,
    WebhookNotifier,
)


class ExplodingNotifier(NotificationProvider):
    """Provider that always raises."""

    def send(self, event: NotificationEvent) -> bool:
        raise RuntimeError("sink is on fire")


class TestNotificationEvent:
    """Tests for the NotificationEvent dataclass."""

    def test_notification_event_to_dict(self):
        """Test converting event to dictionary."""
        event = NotificationEvent(
            title="Backup",
            message="Compressing...",
            level=NotificationLevel.PROGRESS,
            percent=42,
        )
        data = event.to_dict()
        assert data["level"] == "progress"
        assert data["percent"] == 42
        assert "timestamp" in data


class TestNotificationManager:
    """Tests for NotificationManager."""

    def test_progress_is_clamped(self, notifier, recorder):
        """Test that percentages stay within 0-100."""
        notifier.progress("a", -5)
        notifier.progress("b", 250)
        assert recorder.percents == [0, 100]

    def test_started_and_success_percentages(self, notifier, recorder):
        """Test the bookend events."""
        notifier.started("go")
        notifier.success("done")
        assert [e.percent for e in recorder.events] == [0, 100]
        assert recorder.levels() == [NotificationLevel.INFO, NotificationLevel.SUCCESS]

    def test_broken_provider_does_not_propagate(self, recorder):
        """Test that one failing sink does not stop the others."""
        manager = NotificationManager(providers=[ExplodingNotifier(), recorder])

        results = manager.failure("boom")

        assert results == {"ExplodingNotifier": False, "RecordingNotifier": True}
        assert recorder.events[-1].level == NotificationLevel.ERROR

    def test_progress_can_be_disabled(self, recorder):
        """Test the notify_on_progress switch."""
        manager = NotificationManager(
            providers=[recorder],
            config=NotificationConfig(notify_on_progress=False),
        )
        manager.progress("x", 10)
        manager.warning("still delivered")
        assert recorder.levels() == [NotificationLevel.WARNING]

    def test_title_is_applied(self, recorder):
        """Test that events carry the manager title."""
        manager = NotificationManager(providers=[recorder], title="Restore")
        manager.started("begin")
        assert recorder.events[0].title == "Restore"

    @patch("snapzip.notifications.shutil.which", return_value=None)
    def test_from_config_without_notify_send(self, mock_which):
        """Test that desktop is skipped when the tool is missing."""
        console = ConsoleNotifier()
        manager = NotificationManager.from_config(NotificationConfig(), console_notifier=console)
        assert manager.providers == [console]

    def test_from_config_with_webhook(self):
        """Test that a webhook URL adds a webhook provider."""
        config = NotificationConfig(desktop_enabled=False, webhook_url="https://hooks.example.com/x")
        manager = NotificationManager.from_config(config)
        assert [type(p).__name__ for p in manager.providers] == ["WebhookNotifier"]


class TestConsoleNotifier:
    """Tests for terminal output."""

    def test_progress_updates_task(self):
        """Test that progress events drive the bar."""
        progress = Progress(disable=True)
        task_id = progress.add_task("Backup", total=100)
        notifier = ConsoleNotifier(progress=progress, task_id=task_id)

        notifier.send(NotificationEvent("Backup", "Compressing...", NotificationLevel.PROGRESS, 37))

        assert progress.tasks[0].completed == 37
        assert progress.tasks[0].description == "Compressing..."

    @patch("snapzip.notifications.print_success")
    def test_success_is_printed(self, mock_print):
        """Test that status events go through the print helpers."""
        ConsoleNotifier().send(NotificationEvent("Backup", "done", NotificationLevel.SUCCESS))
        mock_print.assert_called_once_with("done")

    @patch("snapzip.notifications.print_info")
    def test_progress_silent_without_bar(self, mock_print):
        """Test that bare progress is only printed in verbose mode."""
        ConsoleNotifier().send(NotificationEvent("Backup", "x", NotificationLevel.PROGRESS, 5))
        mock_print.assert_not_called()


class TestDesktopNotifier:
    """Tests for notify-send popups."""

    def test_command_carries_percentage(self):
        """Test that progress is passed as a value hint."""
        notifier = DesktopNotifier(NotificationConfig(), binary="/usr/bin/notify-send")
        event = NotificationEvent("Backup", "Compressing...", NotificationLevel.PROGRESS, 40)

        cmd = notifier.build_command(event)

        assert cmd[0] == "/usr/bin/notify-send"
        assert "int:value:40" in cmd
        assert cmd[-2:] == ["Backup", "Compressing..."]

    @patch("snapzip.notifications.subprocess.run")
    def test_send(self, mock_run):
        """Test a successful popup."""
        mock_run.return_value = MagicMock(returncode=0)
        notifier = DesktopNotifier(NotificationConfig(), binary="notify-send")

        assert notifier.send(NotificationEvent("Backup", "done", NotificationLevel.SUCCESS)) is True
        mock_run.assert_called_once()

    @patch("snapzip.notifications.subprocess.run")
    def test_disabled(self, mock_run):
        """Test that a disabled notifier never spawns a process."""
        notifier = DesktopNotifier(NotificationConfig(desktop_enabled=False), binary="notify-send")

        assert notifier.send(NotificationEvent("Backup", "done")) is False
        mock_run.assert_not_called()


class TestWebhookNotifier:
    """Tests for the webhook provider."""

    @responses.activate
    def test_posts_json(self):
        """Test that status events are posted."""
        responses.add(responses.POST, "https://hooks.example.com/x", status=204)
        notifier = WebhookNotifier(NotificationConfig(webhook_url="https://hooks.example.com/x"))

        assert notifier.send(NotificationEvent("Backup", "done", NotificationLevel.SUCCESS)) is True
        assert b'"level": "success"' in responses.calls[0].request.body

    @responses.activate
    def test_skips_progress(self):
        """Test that progress chatter is not forwarded."""
        notifier = WebhookNotifier(NotificationConfig(webhook_url="https://hooks.example.com/x"))

        assert notifier.send(NotificationEvent("Backup", "x", NotificationLevel.PROGRESS, 5)) is False
        assert len(responses.calls) == 0

    @responses.activate
    def test_connection_error(self):
        """Test that delivery failures are reported, not raised."""
        responses.add(
            responses.POST,
            "https://hooks.example.com/x",
            body=requests.ConnectionError("down"),
        )
        notifier = WebhookNotifier(NotificationConfig(webhook_url="https://hooks.example.com/x"))

        assert notifier.send(NotificationEvent("Backup", "failed", NotificationLevel.ERROR)) is False
