"""Per-table remote transfer of accepted CSV files.

One ``rsync`` invocation per destination table carries every source file and
sidecar of that table, so a batch opens at most one connection per table.
Local copies are removed only after the table's transfer succeeds.
"""

import logging
import shlex
import subprocess
from collections.abc import Iterable, Mapping
from pathlib import Path, PurePosixPath
from typing import Protocol

from csvship.schemas.shipper import (
    ClassifiedFile,
    FileOutcome,
    TableBatch,
    TransferResult,
    UploadStatus,
    printable_name,
)
from csvship.shipper.status_log import UploadStatusLog

logger = logging.getLogger(__name__)

PARTIAL_DIR = "tmp"


class TransferClient(Protocol):
    """Copies a set of local files into a remote directory."""

    def send(
        self, paths: list[Path], dest_user: str, dest_host: str, remote_dir: PurePosixPath
    ) -> TransferResult: ...


class RsyncTransferClient:
    """Transfers files with ``rsync`` over ssh.

    The remote directory is created by wrapping the remote rsync in
    ``mkdir -p``; partial files are staged in a ``tmp`` partial-dir so they
    never appear under their final name.
    """

    def __init__(self, rsync_binary: str = "rsync", timeout: float | None = None) -> None:
        self._rsync = rsync_binary
        self._timeout = timeout

    def build_command(
        self, paths: list[Path], dest_user: str, dest_host: str, remote_dir: PurePosixPath
    ) -> list[str]:
        rsync_path = f"mkdir -p {shlex.quote(str(remote_dir))} && rsync"
        return [
            self._rsync,
            "-aLvz",
            f"--partial-dir={PARTIAL_DIR}",
            f"--rsync-path={rsync_path}",
            *(str(p) for p in paths),
            f"{dest_user}@{dest_host}:{remote_dir}/",
        ]

    def send(
        self, paths: list[Path], dest_user: str, dest_host: str, remote_dir: PurePosixPath
    ) -> TransferResult:
        command = self.build_command(paths, dest_user, dest_host, remote_dir)
        logger.info("Running rsync command: %s", shlex.join(command))
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired:
            return TransferResult(
                success=False, error_message=f"rsync timed out after {self._timeout}s"
            )
        except OSError as exc:
            return TransferResult(success=False, error_message=f"Failed to execute rsync: {exc}")

        if result.returncode != 0:
            return TransferResult(
                success=False,
                output=result.stdout,
                error_message=result.stderr.strip() or f"rsync exited with status {result.returncode}",
            )
        return TransferResult(success=True, output=result.stdout)


def group_by_table(files: Iterable[ClassifiedFile]) -> dict[str, TableBatch]:
    """Partition accepted files into one batch per destination table."""
    batches: dict[str, TableBatch] = {}
    for item in files:
        batch = batches.setdefault(item.table_name, TableBatch(table_name=item.table_name))
        batch.add(item)
    return batches


def delete_local_files(item: ClassifiedFile) -> None:
    """Remove a transferred source file and its sidecar. Failures are logged."""
    for path in (item.source_path, item.metadata_path):
        if path is None:
            continue
        try:
            path.unlink()
            logger.debug("Removed %s", path)
        except OSError as exc:
            logger.error("Failed to remove %s: %s", path, exc)


class TransferDispatcher:
    """Sends each table batch in one transfer and accounts for every file.

    Usage::

        dispatcher = TransferDispatcher(RsyncTransferClient(), UploadStatusLog())
        outcomes = dispatcher.dispatch(batches, "etl", "warehouse", "/srv/incoming")
    """

    def __init__(self, client: TransferClient, status_log: UploadStatusLog) -> None:
        self._client = client
        self._status_log = status_log

    def dispatch(
        self,
        table_batches: Mapping[str, TableBatch],
        dest_user: str,
        dest_host: str,
        dest_dir: str,
    ) -> list[FileOutcome]:
        """Transfer every table batch; a failed table does not affect the others."""
        outcomes: list[FileOutcome] = []
        for table_name, batch in table_batches.items():
            if not batch.entries:
                continue
            remote_dir = PurePosixPath(dest_dir) / table_name
            try:
                result = self._client.send(batch.transfer_paths(), dest_user, dest_host, remote_dir)
            except Exception as exc:
                logger.exception("Transfer of table %r raised", table_name)
                result = TransferResult(success=False, error_message=str(exc))

            if result.success:
                logger.info("Transferred %d file(s) for table %r", len(batch.entries), table_name)
                outcomes.extend(self._on_success(batch))
            else:
                logger.error("Transfer of table %r failed: %s", table_name, result.error_message)
                outcomes.extend(self._on_failure(batch, result.error_message))
        return outcomes

    def _on_success(self, batch: TableBatch) -> list[FileOutcome]:
        outcomes = []
        for item in batch.entries:
            delete_local_files(item)
            file_name = printable_name(item.source_path.name)
            self._status_log.record(item.source_path.parent, f"Upload succeeded! File: {file_name}")
            outcomes.append(
                FileOutcome(
                    file_name=file_name,
                    status=UploadStatus.SUCCESS,
                    table_name=batch.table_name,
                )
            )
        return outcomes

    def _on_failure(self, batch: TableBatch, error_message: str) -> list[FileOutcome]:
        outcomes = []
        for item in batch.entries:
            file_name = printable_name(item.source_path.name)
            self._status_log.record(
                item.source_path.parent,
                f"Upload failed! File: {file_name} Reason: {error_message}",
            )
            outcomes.append(
                FileOutcome(
                    file_name=file_name,
                    status=UploadStatus.FAILED,
                    table_name=batch.table_name,
                    error_message=error_message,
                )
            )
        return outcomes
