"""
Tests for peer downloads.

"Moving backups is like moving houses. Count the boxes on arrival."
"""

from datetime import datetime
from pathlib import Path

import pytest
import requests
import responses

from snapzip.errors import NetworkError, UsageError
from snapzip.models import OperationState
from snapzip.notifications import NotificationLevel
from snapzip.transfer import (
    TransferClient,
    build_url,
    download_archive,
    expected_archive_name,
    is_from_today,
    name_from_url,
)

PEER = "http://192.168.1.20:8000"


class TestBuildUrl:
    """Tests for URL construction."""

    def test_ipv4_with_name(self) -> None:
        """Test a plain archive URL."""
        assert build_url("192.168.1.20", 8000, "backup-1.zip") == f"{PEER}/backup-1.zip"

    def test_share_root(self) -> None:
        """Test the URL used to ask for the latest archive."""
        assert build_url("192.168.1.20", 8000) == f"{PEER}/"

    def test_ipv6_is_bracketed(self) -> None:
        """Test IPv6 literals."""
        assert build_url("fe80::1", 9000, "a.zip") == "http://[fe80::1]:9000/a.zip"


class TestNaming:
    """Tests for archive name helpers."""

    def test_name_from_url_decodes(self) -> None:
        """Test percent-decoding of the final path segment."""
        assert name_from_url(f"{PEER}/my%20backup.zip") == "my backup.zip"

    def test_expected_name_appends_suffix(self) -> None:
        """Test that .zip is appended to bare names."""
        assert expected_archive_name("weekly") == "weekly.zip"

    def test_expected_name_defaults_to_latest(self) -> None:
        """Test that no name means ask the peer."""
        assert expected_archive_name(None) is None
        assert expected_archive_name("") is None

    def test_expected_name_rejects_paths(self) -> None:
        """Test that names cannot smuggle in directories."""
        with pytest.raises(UsageError):
            expected_archive_name("../etc/passwd")

    def test_is_from_today(self) -> None:
        """Test the date-stamp check."""
        now = datetime(2026, 10, 16, 9, 0, 0)
        assert is_from_today("backup-20261016080000.zip", now) is True
        assert is_from_today("backup-20261015235959.zip", now) is False


class TestTransferClientInit:
    """Tests for client construction."""

    def test_rejects_bad_host(self) -> None:
        """Test address validation."""
        with pytest.raises(UsageError):
            TransferClient("not a host!", 8000)

    def test_rejects_bad_port(self) -> None:
        """Test port validation."""
        with pytest.raises(UsageError):
            TransferClient("192.168.1.20", 70000)


class TestDownload:
    """Tests for TransferClient.download."""

    @responses.activate
    def test_named_download(self, tmp_path: Path, notifier, recorder) -> None:
        """Test fetching an explicit archive."""
        responses.add(
            responses.GET,
            f"{PEER}/backup-20261016120000.zip",
            body=b"archive-bytes",
            status=200,
            content_type="application/zip",
        )

        result = download_archive(
            "192.168.1.20", 8000, tmp_path, name="backup-20261016120000.zip", notifier=notifier
        )

        assert result.state == OperationState.COMPLETED
        assert result.path == tmp_path / "backup-20261016120000.zip"
        assert result.path.read_bytes() == b"archive-bytes"
        assert result.bytes_written == len(b"archive-bytes")
        assert not list(tmp_path.glob("*.part"))
        assert recorder.percents[-1] == 100
        assert recorder.percents == sorted(recorder.percents)
        assert recorder.events[-1].level == NotificationLevel.SUCCESS

    @responses.activate
    def test_latest_follows_redirect(self, tmp_path: Path, notifier) -> None:
        """Test that the redirect target names the local file."""
        responses.add(
            responses.GET,
            f"{PEER}/",
            status=302,
            headers={"Location": "/backup-20261016120000.zip"},
        )
        responses.add(
            responses.GET,
            f"{PEER}/backup-20261016120000.zip",
            body=b"latest",
            status=200,
        )

        result = download_archive("192.168.1.20", 8000, tmp_path, notifier=notifier)

        assert result.path.name == "backup-20261016120000.zip"
        assert result.path.read_bytes() == b"latest"

    @responses.activate
    def test_stale_latest_warns(self, tmp_path: Path, notifier, recorder) -> None:
        """Test that an old latest archive is downloaded with a warning."""
        responses.add(
            responses.GET,
            f"{PEER}/",
            status=302,
            headers={"Location": "/backup-20200101000000.zip"},
        )
        responses.add(responses.GET, f"{PEER}/backup-20200101000000.zip", body=b"old")

        result = download_archive("192.168.1.20", 8000, tmp_path, notifier=notifier)

        assert result.success is True
        assert NotificationLevel.WARNING in recorder.levels()

    @responses.activate
    def test_404_leaves_nothing(self, tmp_path: Path, notifier, recorder) -> None:
        """Test that a missing archive is a network error with no file left behind."""
        responses.add(responses.GET, f"{PEER}/missing.zip", status=404)

        with pytest.raises(NetworkError, match="HTTP 404") as exc_info:
            download_archive("192.168.1.20", 8000, tmp_path, name="missing.zip", notifier=notifier)

        assert exc_info.value.status_code == 404
        assert list(tmp_path.iterdir()) == []
        assert 100 not in recorder.percents

    @responses.activate
    def test_connection_refused(self, tmp_path: Path) -> None:
        """Test that an unreachable peer leaves no artifact."""
        responses.add(
            responses.GET,
            f"{PEER}/a.zip",
            body=requests.ConnectionError("Connection refused"),
        )
        target = tmp_path / "incoming"

        with pytest.raises(NetworkError, match="Could not reach"):
            download_archive("192.168.1.20", 8000, target, name="a.zip")

        assert not target.exists()

    @responses.activate
    def test_timeout(self, tmp_path: Path) -> None:
        """Test that timeouts are reported as such."""
        responses.add(responses.GET, f"{PEER}/a.zip", body=requests.Timeout())

        with pytest.raises(NetworkError, match="timed out"):
            download_archive("192.168.1.20", 8000, tmp_path, name="a.zip", timeout=2)

    @responses.activate
    def test_unwritable_destination(self, tmp_path: Path) -> None:
        """Test that a local write failure is reported and cleaned up."""
        responses.add(responses.GET, f"{PEER}/a.zip", body=b"data")
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")

        with pytest.raises(NetworkError, match="Could not save"):
            download_archive("192.168.1.20", 8000, blocker, name="a.zip")

        assert blocker.read_text() == "a file, not a directory"
