"""
Share the latest archive over plain HTTP.

"Sharing is caring. Encrypting is someone else's problem."
"""

import functools
import socket
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import quote, urlsplit

from .archive import list_archives
from .errors import BackupError, BackupNotFoundError
from .models import ArchiveInfo, BackupConfig
from .rich_utils import console, print_info, print_success, print_verbose


def find_latest_archive(archive_dir: Path) -> ArchiveInfo:
    """
    Pick the most recently modified archive; the name breaks ties.

    Only names following the backup-YYYYMMDDHHMMSS.zip convention are
    considered. A directory holding nothing but custom (--output) names falls
    back to every archive in it.

    Raises:
        BackupNotFoundError: If the directory holds no archives
    """
    archives = list_archives(archive_dir)
    if not archives:
        raise BackupNotFoundError(f"No backups found in {archive_dir}")
    candidates = [info for info in archives if info.follows_naming_convention] or archives
    return max(candidates, key=lambda info: (info.modified, info.name))


class ArchiveRequestHandler(SimpleHTTPRequestHandler):
    """
    Static file handler rooted at the archive directory.

    ``/`` and ``/index.html`` redirect to the newest archive so a peer can
    fetch "whatever is latest" without knowing its name.
    """

    server_version = "snapzip-share"
    verbose = False

    def do_GET(self) -> None:
        if self._redirect_to_latest():
            return
        super().do_GET()

    def do_HEAD(self) -> None:
        if self._redirect_to_latest():
            return
        super().do_HEAD()

    def _redirect_to_latest(self) -> bool:
        path = urlsplit(self.path).path
        if path not in ("/", "/index.html"):
            return False

        try:
            latest = find_latest_archive(Path(self.directory))
        except BackupNotFoundError:
            self.send_error(HTTPStatus.NOT_FOUND, "No backups found")
            return True

        self.send_response(HTTPStatus.FOUND)
        self.send_header("Location", f"/{quote(latest.name)}")
        self.send_header("Content-Length", "0")
        self.end_headers()
        return True

    def log_message(self, format: str, *args) -> None:
        print_verbose(f"  {self.address_string()} - {format % args}", self.verbose)


class ShareServer:
    """
    Minimal HTTP server exposing exactly one archive directory.

    Bound to all interfaces; ``serve_forever`` blocks until ``shutdown`` is
    called from another thread or the process is interrupted.
    """

    def __init__(self, archive_dir: Path, port: int, host: str = "", verbose: bool = False) -> None:
        self.archive_dir = archive_dir
        handler = type("BoundArchiveRequestHandler", (ArchiveRequestHandler,), {"verbose": verbose})
        try:
            self.httpd = ThreadingHTTPServer(
                (host, port),
                functools.partial(handler, directory=str(archive_dir)),
            )
        except OSError as e:
            raise BackupError(f"Cannot listen on port {port}: {e}") from e

    @property
    def port(self) -> int:
        """Port actually bound (useful when 0 was requested)."""
        return self.httpd.server_address[1]

    def serve_forever(self) -> None:
        """Serve until shut down."""
        self.httpd.serve_forever()

    def shutdown(self) -> None:
        """Stop a running serve_forever loop."""
        self.httpd.shutdown()

    def close(self) -> None:
        """Release the listening socket."""
        self.httpd.server_close()

    def __enter__(self) -> "ShareServer":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def local_addresses() -> list[str]:
    """Best-effort list of this machine's non-loopback IPv4 addresses."""
    addresses: set[str] = set()
    try:
        for info in socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET):
            addresses.add(info[4][0])
    except OSError:
        pass
    return sorted(a for a in addresses if not a.startswith("127."))


def share_latest(config: BackupConfig) -> None:
    """
    Serve the newest archive until interrupted.

    Raises:
        BackupNotFoundError: If there is nothing to share
        BackupError: If the port cannot be bound
    """
    latest = find_latest_archive(config.archive_dir)

    with ShareServer(config.archive_dir, config.port, verbose=config.verbose) as server:
        print_success(f"Sharing {latest.name} ({latest.size_human})")
        for address in local_addresses() or ["<this-host>"]:
            console.print(f"   [cyan]http://{address}:{server.port}/{latest.name}[/cyan]")
        print_info(
            f"Peers can run: backup download --ip <address> --port {server.port}",
            prefix="💡",
        )
        console.print("   [dim]Press Ctrl-C to stop sharing[/dim]")
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            console.print("\n[yellow]Sharing stopped[/yellow]")
