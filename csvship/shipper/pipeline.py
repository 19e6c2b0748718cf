"""The shipper's polling loop: watch, debounce, classify, rename, transfer.

Everything runs on one thread. The watcher's observer thread only enqueues
events; classification, renaming and transfers happen here, one batch at a
time, and a slow transfer holds up the next batch.
"""

import logging
import time
from collections.abc import Iterable, Mapping
from pathlib import Path

from csvship.schemas.shipper import (
    BatchSummary,
    ChangeEvent,
    ChangeKind,
    ClassifiedFile,
    FileOutcome,
    Rejected,
    UploadStatus,
    printable_name,
)
from csvship.shipper.classifier import classify
from csvship.shipper.debounce import DebounceAggregator
from csvship.shipper.metadata import MetadataGenerator
from csvship.shipper.status_log import UploadStatusLog
from csvship.shipper.transfer import TransferDispatcher, group_by_table
from csvship.shipper.watcher import ChangeWatcher, is_csv

logger = logging.getLogger(__name__)

IDLE_SLEEP_SECONDS = 0.1


class CsvShipper:
    """Turns batches of change events into per-table transfers.

    Usage::

        shipper = CsvShipper(
            registry=load_headers(settings.template_dir),
            metadata=MetadataGenerator(settings.file_suffix, IdCommandResolver()),
            dispatcher=TransferDispatcher(RsyncTransferClient(), status_log),
            status_log=status_log,
            dest_user=settings.dest_user,
            dest_host=settings.dest_host,
            dest_dir=settings.dest_dir,
        )
        summary = shipper.process_batch(events)
    """

    def __init__(
        self,
        *,
        registry: Mapping[str, str],
        metadata: MetadataGenerator,
        dispatcher: TransferDispatcher,
        status_log: UploadStatusLog,
        dest_user: str,
        dest_host: str,
        dest_dir: str,
    ) -> None:
        self._registry = registry
        self._metadata = metadata
        self._dispatcher = dispatcher
        self._status_log = status_log
        self._dest_user = dest_user
        self._dest_host = dest_host
        self._dest_dir = dest_dir

    def _reject(self, path: Path, message: str) -> FileOutcome:
        name = printable_name(path.name)
        self._status_log.record(path.parent, f"Upload failed! File: {name} Reason: {message}")
        return FileOutcome(file_name=name, status=UploadStatus.REJECTED, error_message=message)

    def accept(self, path: Path) -> ClassifiedFile | FileOutcome | None:
        """Classify one file and, if it matches a table, rename it and write its sidecar.

        Returns:
            The accepted file, a rejection outcome, or None if the file vanished.
        """
        result = classify(path, self._registry)
        if result is None:
            return None
        if isinstance(result, Rejected):
            return self._reject(path, result.message)

        try:
            return self._metadata.process(path, result)
        except OSError as exc:
            logger.error("Failed to rename source file %s: %s", path, exc)
            return self._reject(path, f"Failed to rename source file: {exc}")

    def process_batch(self, events: Iterable[ChangeEvent]) -> BatchSummary:
        """Handle one released batch end to end.

        Each path is handled once per batch even if several events named it. An
        unexpected error on one file is logged and skips only that file.
        """
        paths = list(dict.fromkeys(event.path for event in events))
        logger.info("Handling CSV file events. Total file count: %d", len(paths))

        summary = BatchSummary()
        accepted: list[ClassifiedFile] = []
        for path in paths:
            try:
                result = self.accept(path)
            except Exception:
                logger.exception("Error handling %s; file skipped", path)
                continue
            if isinstance(result, ClassifiedFile):
                accepted.append(result)
            elif isinstance(result, FileOutcome):
                summary.outcomes.append(result)

        batches = group_by_table(accepted)
        summary.transfers = len(batches)
        summary.outcomes.extend(
            self._dispatcher.dispatch(batches, self._dest_user, self._dest_host, self._dest_dir)
        )
        logger.info(
            "Batch done: %d transferred, %d failed, %d rejected",
            summary.count(UploadStatus.SUCCESS),
            summary.count(UploadStatus.FAILED),
            summary.count(UploadStatus.REJECTED),
        )
        return summary

    def scan_existing(self, source_dir: Path) -> BatchSummary:
        """Process the ``.csv`` files already under ``source_dir`` as one batch."""
        events = [
            ChangeEvent(path=path.absolute(), kind=ChangeKind.CREATED)
            for path in sorted(source_dir.rglob("*"))
            if path.is_file() and is_csv(path)
        ]
        return self.process_batch(events)

    def tick(
        self,
        watcher: ChangeWatcher,
        aggregator: DebounceAggregator,
        now: float | None = None,
    ) -> bool:
        """One loop iteration: receive at most one event, then flush if due.

        Returns:
            True if an event was received.
        """
        event = watcher.receive()
        if event is not None:
            aggregator.add(event, now)

        batch = aggregator.poll(now)
        if batch:
            try:
                self.process_batch(batch)
            except Exception:
                logger.exception("Error handling csv file events; batch dropped")
        return event is not None

    def run(self, watcher: ChangeWatcher, aggregator: DebounceAggregator) -> None:
        """Poll until interrupted. Batches are never flushed on shutdown."""
        while True:
            if not self.tick(watcher, aggregator):
                time.sleep(IDLE_SLEEP_SECONDS)
