"""
Fetch an archive from a peer's share session.

"Moving backups is like moving houses. Count the boxes on arrival."
"""

import time
from datetime import datetime
from pathlib import Path
from urllib.parse import unquote, urlsplit

import requests

from .errors import NetworkError
from .models import DownloadResult, OperationState, archive_day_prefix
from .notifications import NotificationManager
from .validation import ValidationError, validate_archive_name, validate_host, validate_port

CHUNK_SIZE = 1024 * 1024
DEFAULT_TIMEOUT = 30.0


def build_url(ip: str, port: int, name: str | None = None) -> str:
    """
    Build the peer URL for an archive (or the share root when name is None).

    IPv6 literals are bracketed.
    """
    host = f"[{ip}]" if ":" in ip and not ip.startswith("[") else ip
    path = f"/{name}" if name else "/"
    return f"http://{host}:{port}{path}"


def name_from_url(url: str) -> str:
    """Last path component of a URL, percent-decoded."""
    return unquote(urlsplit(url).path.rsplit("/", 1)[-1])


def expected_archive_name(zip_name: str | None) -> str | None:
    """
    Name of the archive to request.

    An explicit name is validated (".zip" appended when missing). Without one
    the peer is asked for its latest archive and None is returned.
    """
    if zip_name:
        return validate_archive_name(zip_name)
    return None


def is_from_today(name: str, now: datetime | None = None) -> bool:
    """Whether an archive name carries today's date stamp."""
    return name.startswith(archive_day_prefix(now))


class TransferClient:
    """
    HTTP client for a peer running ``backup share``.

    "Transfer with care. There's no undo button."
    """

    def __init__(
        self,
        ip: str,
        port: int,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """
        Initialize the client.

        Raises:
            ValidationError: If the address or port is malformed
        """
        self.ip = validate_host(ip)
        self.port = validate_port(port)
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "snapzip-download"})

    def __enter__(self) -> "TransferClient":
        return self

    def __exit__(self, *args) -> None:
        self.session.close()

    def download(
        self,
        tmp_dir: Path,
        name: str | None = None,
        notifier: NotificationManager | None = None,
    ) -> DownloadResult:
        """
        Download one archive into ``tmp_dir``.

        The body is streamed to ``<name>.part`` and renamed once complete;
        any failure removes the partial file before raising.

        Args:
            tmp_dir: Directory that receives the archive
            name: Archive name to request; None asks the peer for its latest
            notifier: Progress/status sink (silent if None)

        Returns:
            DownloadResult with the local path

        Raises:
            NetworkError: On connection failure, timeout or non-2xx status
        """
        notifier = notifier or NotificationManager()
        start_time = time.time()
        url = build_url(self.ip, self.port, name)
        result = DownloadResult(url=url, path=tmp_dir / (name or "download.zip"))
        result.state = OperationState.RUNNING

        notifier.started(f"Downloading from {url}")

        partial: Path | None = None
        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()

                final_name = name or name_from_url(response.url)
                try:
                    final_name = validate_archive_name(final_name)
                except ValidationError as e:
                    raise NetworkError(f"Peer returned an unusable archive name: {e}") from e
                if name is None and not is_from_today(final_name):
                    notifier.warning(f"Latest backup on peer is not from today: {final_name}")

                tmp_dir.mkdir(parents=True, exist_ok=True)
                result.url = response.url
                result.path = tmp_dir / final_name
                partial = result.path.with_name(result.path.name + ".part")

                total = int(response.headers.get("Content-Length") or 0)
                last_percent = -1
                with open(partial, "wb") as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if not chunk:
                            continue
                        f.write(chunk)
                        result.bytes_written += len(chunk)
                        if total:
                            percent = min(int(result.bytes_written * 100 / total), 99)
                            if percent != last_percent:
                                notifier.progress("Downloading...", percent)
                                last_percent = percent

            partial.replace(result.path)
            partial = None
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            result.state = OperationState.FAILED
            raise NetworkError(f"Download failed: HTTP {status} for {url}", status_code=status) from e
        except requests.Timeout as e:
            result.state = OperationState.FAILED
            raise NetworkError(f"Download timed out after {self.timeout:.0f}s: {url}") from e
        except requests.RequestException as e:
            result.state = OperationState.FAILED
            raise NetworkError(f"Could not reach {url}: {e}") from e
        except OSError as e:
            result.state = OperationState.FAILED
            raise NetworkError(f"Could not save download to {result.path}: {e}") from e
        finally:
            if partial is not None:
                partial.unlink(missing_ok=True)

        notifier.progress("Download complete", 100)
        result.state = OperationState.COMPLETED
        result.duration_seconds = time.time() - start_time
        notifier.success(f"Downloaded {result.path.name} to {result.path.parent}")
        return result


def download_archive(
    ip: str,
    port: int,
    tmp_dir: Path,
    name: str | None = None,
    notifier: NotificationManager | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    session: requests.Session | None = None,
) -> DownloadResult:
    """
    Convenience function to download an archive from a peer.

    "Convenience is the bridge between capability and adoption."
    """
    with TransferClient(ip, port, timeout=timeout, session=session) as client:
        return client.download(tmp_dir, name=name, notifier=notifier)
