"""
snapzip CLI interface.

"The command line is where the real work happens. Everything else is just theater."
"""

import json
import sys
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
import yaml
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from .archive import create_archive, list_archives
from .errors import BackupError, ExternalToolError, UsageError
from .models import BackupConfig, RestoreResult
from .notifications import ConsoleNotifier, NotificationConfig, NotificationManager
from .restore import get_merge_engine, restore_archive
from .rich_utils import (
    console,
    create_data_table,
    err_console,
    format_archive_name,
    format_size,
    print_error,
    print_header,
    print_key_value,
    print_success,
    print_warning,
)
from .share import share_latest
from .transfer import DEFAULT_TIMEOUT, download_archive, expected_archive_name
from .validation import validate_format_option

app = typer.Typer(
    name="backup",
    help="📦 snapzip - Zip up your home, share it, restore it anywhere.",
    add_completion=False,
)


def fail(error: BaseException, verbose: bool = False) -> None:
    """Report a fatal error and exit with status 1."""
    print_error(str(error))
    if isinstance(error, ExternalToolError) and error.output:
        err_console.print(f"[dim]{error.output}[/dim]", highlight=False)
    if verbose and sys.exc_info()[0] is not None:
        traceback.print_exc()
    sys.exit(1)


def build_config(verbose: bool = False, **options) -> BackupConfig:
    """Build the invocation config, exiting 1 on invalid values."""
    try:
        return BackupConfig.from_options(verbose=verbose, **options)
    except UsageError as e:
        fail(e, verbose)


@contextmanager
def progress_notifier(
    config: BackupConfig,
    title: str,
    webhook_url: str | None = None,
) -> Iterator[NotificationManager]:
    """
    Yield a NotificationManager wired to a rich progress bar, the desktop
    (unless --no-notify) and an optional webhook.
    """
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Starting...", total=100)
        notification_config = NotificationConfig(
            desktop_enabled=config.notify,
            webhook_url=webhook_url or "",
        )
        yield NotificationManager.from_config(
            notification_config,
            console_notifier=ConsoleNotifier(progress, task, verbose=config.verbose),
            title=title,
        )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from . import __version__
        console.print(f"snapzip version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """
    📦 snapzip - Zip up your home, share it, restore it anywhere.
    """
    pass


@app.command()
def create(
    archive_dir: Path | None = typer.Option(
        None,
        "--dir",
        help="Directory that receives the archive (default: ~/backups)",
        envvar="BACKUP_DIR",
    ),
    dest: Path | None = typer.Option(
        None,
        "--dest",
        help="Restore destination root (default: home directory)",
        envvar="BACKUP_DEST",
    ),
    tmp_dir: Path | None = typer.Option(
        None,
        "--tmp",
        help="Working directory (default: system temp dir)",
        envvar="BACKUP_TMP",
    ),
    port: int | None = typer.Option(
        None,
        "--port",
        help="Port used when sharing (default: 8000)",
        envvar="BACKUP_PORT",
    ),
    output: str | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Archive file name (default: backup-YYYYMMDDHHMMSS.zip)",
    ),
    dirs: str | None = typer.Option(
        None,
        "--dirs",
        help="Comma-separated source directories, relative to home unless absolute",
    ),
    exclude: str | None = typer.Option(
        None,
        "--exclude",
        "-e",
        help="Comma-separated glob patterns to leave out",
    ),
    compress: int | None = typer.Option(
        None,
        "--compress",
        "-c",
        help="Compression level 0-9 (0 = store only, 9 = smallest)",
    ),
    no_notify: bool = typer.Option(
        False,
        "--no-notify",
        help="Disable desktop notifications",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Show every file and full error details",
    ),
    webhook_url: str | None = typer.Option(
        None,
        "--webhook-url",
        help="POST status events as JSON to this URL",
        envvar="BACKUP_WEBHOOK_URL",
    ),
) -> None:
    """
    Create a compressed archive of the configured directories.

    Example:
        backup create
        backup create --dirs Documents,Projects --exclude "*.log,node_modules"
        backup create --dir /mnt/usb/backups --compress 9
    """
    config = build_config(
        verbose=verbose,
        archive_dir=archive_dir,
        dest=dest,
        tmp_dir=tmp_dir,
        port=port,
        output_name=output,
        dirs=dirs,
        exclude=exclude,
        compress_level=compress,
        notify=not no_notify,
    )

    print_header("📦 Creating backup", str(config.archive_dir))
    if verbose:
        print_key_value("Sources", ", ".join(str(p) for p in config.source_dirs))
        print_key_value("Excludes", ", ".join(config.exclude_patterns) or "-")
        print_key_value("Compression", config.compress_level)

    try:
        with progress_notifier(config, "Backup", webhook_url) as notifier:
            result = create_archive(config, notifier)
    except BackupError as e:
        fail(e, verbose)
    except KeyboardInterrupt:
        console.print("\n[yellow]Backup cancelled by user[/yellow]")
        sys.exit(1)

    if not result.sources:
        print_warning("None of the configured source directories exist; the archive is empty")

    console.print(
        f"   [dim]{result.files_added} files, {format_size(result.bytes_read)} read, "
        f"{format_size(result.archive_size)} written in {result.duration_seconds:.1f}s[/dim]"
    )
    if result.files_excluded:
        console.print(f"   [dim]{result.files_excluded} files excluded[/dim]")


@app.command()
def share(
    archive_dir: Path | None = typer.Option(
        None,
        "--dir",
        help="Directory holding the archives (default: ~/backups)",
        envvar="BACKUP_DIR",
    ),
    port: int | None = typer.Option(
        None,
        "--port",
        help="Port to listen on (default: 8000)",
        envvar="BACKUP_PORT",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Log every request",
    ),
) -> None:
    """
    Serve the latest archive over HTTP until interrupted.

    Example:
        backup share
        backup share --port 9000
    """
    config = build_config(verbose=verbose, archive_dir=archive_dir, port=port)

    try:
        share_latest(config)
    except BackupError as e:
        fail(e, verbose)


@app.command()
def download(
    ip: str | None = typer.Option(
        None,
        "--ip",
        help="Address of the peer running 'backup share' (required)",
    ),
    port: int | None = typer.Option(
        None,
        "--port",
        help="Peer port (default: 8000)",
        envvar="BACKUP_PORT",
    ),
    zip_name: str | None = typer.Option(
        None,
        "--zip-name",
        help="Archive to fetch (default: the peer's latest)",
    ),
    tmp_dir: Path | None = typer.Option(
        None,
        "--tmp",
        help="Where the archive is saved (default: system temp dir)",
        envvar="BACKUP_TMP",
    ),
    dest: Path | None = typer.Option(
        None,
        "--dest",
        help="Restore destination root (default: home directory)",
        envvar="BACKUP_DEST",
    ),
    engine: str = typer.Option(
        "python",
        "--engine",
        help="Merge engine: python or rsync",
    ),
    timeout: float = typer.Option(
        DEFAULT_TIMEOUT,
        "--timeout",
        help="Network timeout in seconds",
    ),
    no_notify: bool = typer.Option(
        False,
        "--no-notify",
        help="Disable desktop notifications",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Show every file and full error details",
    ),
) -> None:
    """
    Download an archive from a peer, then restore it.

    Example:
        backup download --ip 192.168.1.20
        backup download --ip 192.168.1.20 --zip-name backup-20261016140309.zip
    """
    if not ip:
        fail(UsageError("Missing required option --ip (address of the sharing peer)"), verbose)

    config = build_config(
        verbose=verbose,
        port=port,
        tmp_dir=tmp_dir,
        dest=dest,
        notify=not no_notify,
    )

    try:
        merge_engine = get_merge_engine(engine)
        name = expected_archive_name(zip_name)
        with progress_notifier(config, "Backup download") as notifier:
            fetched = download_archive(
                ip,
                config.port,
                config.tmp_dir,
                name=name,
                notifier=notifier,
                timeout=timeout,
            )
        with progress_notifier(config, "Backup restore") as notifier:
            result = restore_archive(
                fetched.path,
                config.dest,
                config.tmp_dir,
                notifier=notifier,
                engine=merge_engine,
                verbose=verbose,
            )
    except BackupError as e:
        fail(e, verbose)

    console.print(f"   [dim]Archive kept at {fetched.path}[/dim]")
    _print_restore_summary(result)


@app.command()
def restore(
    file: Path | None = typer.Option(
        None,
        "--file",
        "-f",
        help="Archive to restore (required)",
    ),
    dest: Path | None = typer.Option(
        None,
        "--dest",
        help="Restore destination root (default: home directory)",
        envvar="BACKUP_DEST",
    ),
    tmp_dir: Path | None = typer.Option(
        None,
        "--tmp",
        help="Staging location (default: system temp dir)",
        envvar="BACKUP_TMP",
    ),
    engine: str = typer.Option(
        "python",
        "--engine",
        help="Merge engine: python or rsync",
    ),
    no_notify: bool = typer.Option(
        False,
        "--no-notify",
        help="Disable desktop notifications",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Show every file and full error details",
    ),
) -> None:
    """
    Restore an archive without overwriting existing files.

    Example:
        backup restore --file ~/backups/backup-20261016140309.zip
        backup restore --file backup.zip --dest /tmp/restore-check
    """
    if file is None:
        fail(UsageError("Missing required option --file (archive to restore)"), verbose)

    config = build_config(verbose=verbose, dest=dest, tmp_dir=tmp_dir, notify=not no_notify)

    try:
        merge_engine = get_merge_engine(engine)
        with progress_notifier(config, "Backup restore") as notifier:
            result = restore_archive(
                file.expanduser(),
                config.dest,
                config.tmp_dir,
                notifier=notifier,
                engine=merge_engine,
                verbose=verbose,
            )
    except BackupError as e:
        fail(e, verbose)

    _print_restore_summary(result)


@app.command("list")
def list_backups(
    archive_dir: Path | None = typer.Option(
        None,
        "--dir",
        help="Directory holding the archives (default: ~/backups)",
        envvar="BACKUP_DIR",
    ),
    format: str = typer.Option(
        "table",
        "--format",
        help="Output format: table, json or yaml",
    ),
) -> None:
    """
    List archives with their sizes.

    Example:
        backup list
        backup list --format json
    """
    try:
        output_format = validate_format_option(format, ["table", "json", "yaml"])
    except UsageError as e:
        fail(e)

    config = build_config(archive_dir=archive_dir)
    archives = list_archives(config.archive_dir)

    if output_format == "json":
        typer.echo(json.dumps([a.to_dict() for a in archives], indent=2))
        return
    if output_format == "yaml":
        typer.echo(yaml.dump([a.to_dict() for a in archives], default_flow_style=False, sort_keys=False))
        return

    if not archives:
        console.print(f"[yellow]No backups found in {config.archive_dir}[/yellow]")
        return

    table = create_data_table(title=f"📦 Backups in {config.archive_dir}")
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Modified", style="dim")

    for info in archives:
        table.add_row(format_archive_name(info.name), info.size_human, info.modified_iso)

    console.print(table)
    total = sum(info.size for info in archives)
    console.print(f"   [dim]{len(archives)} backups, {format_size(total)} total[/dim]")


def _print_restore_summary(result: RestoreResult) -> None:
    """Print the counts of a finished restore."""
    print_success(f"Restore finished: {result.dest}")
    console.print(
        f"   [dim]{result.files_restored} restored, {result.files_skipped} already present, "
        f"{result.files_total} in archive ({result.duration_seconds:.1f}s)[/dim]"
    )


if __name__ == "__main__":
    app()
