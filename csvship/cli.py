"""CLI entry point for the csvship drop-folder shipper.

Commands:
    csvship watch      — watch the drop folder and ship matched CSV files
    csvship templates  — list the known table header templates
    csvship status     — show recent upload.log entries for a folder
"""

import logging
import sys
from pathlib import Path

import click

from csvship.config import (
    CSV_EVENT_WAIT_SECONDS,
    DEST_DIR,
    DEST_HOST,
    DEST_USER,
    FILE_SUFFIX,
    POLL_INTERVAL_SECONDS,
    SOURCE_DIR,
    TEMPLATE_DIR,
    TRANSFER_TIMEOUT_SECONDS,
    ConfigError,
    ShipperSettings,
    load_settings,
)

logger = logging.getLogger("csvship")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """csvship — ship dropped CSV files to their tables on a remote host."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _validate_shipper_config(**values: object) -> ShipperSettings:
    """Fail loudly if required config is missing or invalid."""
    try:
        return load_settings(**values)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        click.echo("Set these in the environment or in the .env file.", err=True)
        sys.exit(1)


def _load_registry(template_dir: str | Path) -> dict[str, str]:
    from csvship.shipper.registry import load_headers

    try:
        return load_headers(template_dir)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


# ------------------------------------------------------------------
# csvship watch
# ------------------------------------------------------------------


@cli.command()
@click.option("--source-dir", default=SOURCE_DIR, show_default=True, help="Directory to watch for CSV files.")
@click.option("--dest-user", default=DEST_USER, show_default=True, help="Remote user.")
@click.option("--dest-host", default=DEST_HOST, show_default=True, help="Remote host.")
@click.option("--dest-dir", default=DEST_DIR, show_default=True, help="Remote base directory; one subdirectory per table.")
@click.option("--template-dir", default=TEMPLATE_DIR, show_default=True, help="Directory of *_template header files.")
@click.option("--file-suffix", default=FILE_SUFFIX, show_default=True, help="strftime format appended to renamed files.")
@click.option(
    "--wait-seconds",
    default=CSV_EVENT_WAIT_SECONDS,
    show_default=True,
    help="Quiet period after the last event before a batch is shipped.",
)
@click.option("--poll-interval", default=POLL_INTERVAL_SECONDS, show_default=True, help="Watcher poll interval in seconds.")
@click.option(
    "--transfer-timeout",
    default=TRANSFER_TIMEOUT_SECONDS,
    show_default=True,
    help="Kill a transfer after this many seconds (empty = no timeout).",
)
@click.option("--once", is_flag=True, help="Ship CSV files already in the folder and exit.")
def watch(
    source_dir: str,
    dest_user: str,
    dest_host: str,
    dest_dir: str,
    template_dir: str,
    file_suffix: str,
    wait_seconds: str,
    poll_interval: str,
    transfer_timeout: str,
    once: bool,
) -> None:
    """Watch the drop folder and ship matched CSV files per table."""
    from csvship.schemas.shipper import UploadStatus
    from csvship.shipper.debounce import DebounceAggregator
    from csvship.shipper.metadata import IdCommandResolver, MetadataGenerator
    from csvship.shipper.pipeline import CsvShipper
    from csvship.shipper.status_log import UploadStatusLog
    from csvship.shipper.transfer import RsyncTransferClient, TransferDispatcher
    from csvship.shipper.watcher import ChangeWatcher, WatchError

    settings = _validate_shipper_config(
        source_dir=source_dir,
        dest_user=dest_user,
        dest_host=dest_host,
        dest_dir=dest_dir,
        template_dir=template_dir,
        file_suffix=file_suffix,
        wait_seconds=wait_seconds,
        poll_interval=poll_interval,
        transfer_timeout=transfer_timeout,
    )
    registry = _load_registry(settings.template_dir)
    if not registry:
        click.echo(f"Warning: no templates found in {settings.template_dir}", err=True)

    status_log = UploadStatusLog()
    shipper = CsvShipper(
        registry=registry,
        metadata=MetadataGenerator(settings.file_suffix, IdCommandResolver()),
        dispatcher=TransferDispatcher(
            RsyncTransferClient(timeout=settings.transfer_timeout), status_log
        ),
        status_log=status_log,
        dest_user=settings.dest_user,
        dest_host=settings.dest_host,
        dest_dir=settings.dest_dir,
    )

    if once:
        click.echo(f"Scanning {settings.source_dir} (once mode)…")
        summary = shipper.scan_existing(settings.source_dir)
        click.echo(
            f"Done. Files: {len(summary.outcomes)}, "
            f"Transferred: {summary.count(UploadStatus.SUCCESS)}, "
            f"Failed: {summary.count(UploadStatus.FAILED)}, "
            f"Rejected: {summary.count(UploadStatus.REJECTED)}"
        )
        return

    click.echo(f"Watching {settings.source_dir} for CSV files (Ctrl+C to stop)…")
    click.echo(f"  Destination: {settings.dest_user}@{settings.dest_host}:{settings.dest_dir}")
    click.echo(f"  Tables: {sorted(set(registry.values()))}")
    aggregator = DebounceAggregator(settings.wait_seconds)
    try:
        with ChangeWatcher(settings.source_dir, poll_interval=settings.poll_interval) as watcher:
            shipper.run(watcher, aggregator)
    except WatchError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        pending = len(aggregator.pending)
        if pending:
            logger.warning("Stopped with %d unshipped event(s) pending", pending)
        click.echo("\nStopped.")


# ------------------------------------------------------------------
# csvship templates
# ------------------------------------------------------------------


@cli.command()
@click.option("--template-dir", default=TEMPLATE_DIR, show_default=True, help="Directory of *_template header files.")
def templates(template_dir: str) -> None:
    """List the table templates and their header signatures."""
    if not template_dir:
        click.echo("Error: --template-dir is required (or set TEMPLATE_DIR).", err=True)
        sys.exit(1)
    registry = _load_registry(template_dir)
    if not registry:
        click.echo("No templates found.")
        return
    for signature, table_name in sorted(registry.items(), key=lambda item: item[1]):
        click.echo(f"{table_name}: {signature}")


# ------------------------------------------------------------------
# csvship status
# ------------------------------------------------------------------


@cli.command()
@click.option("--dir", "directory", default=SOURCE_DIR, show_default=True, help="Folder whose upload.log to show.")
@click.option("--limit", "-n", default=20, show_default=True, help="Number of most recent entries.")
def status(directory: str, limit: int) -> None:
    """Show the most recent upload.log entries for a folder."""
    from csvship.shipper.status_log import UploadStatusLog

    if not directory:
        click.echo("Error: --dir is required (or set SOURCE_DIR).", err=True)
        sys.exit(1)
    if not Path(directory).is_dir():
        click.echo(f"Error: Directory does not exist: {directory}", err=True)
        sys.exit(1)

    entries = UploadStatusLog().read_entries(directory, limit=limit)
    if not entries:
        click.echo("No uploads logged yet.")
        return
    for line in entries:
        click.echo(line)
