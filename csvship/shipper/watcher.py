"""Filesystem watcher for the CSV drop folder.

Uses the ``watchdog`` library to detect new and rewritten ``.csv`` files. The
Observer runs in a background thread and only enqueues ``ChangeEvent``s; the
polling loop drains the queue without blocking.
"""

import logging
import os
import queue
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from csvship.schemas.shipper import ChangeEvent, ChangeKind

logger = logging.getLogger(__name__)

CSV_SUFFIX = ".csv"


class WatchError(Exception):
    """Raised when the directory watch cannot be established."""


def is_csv(path: Path) -> bool:
    return path.suffix == CSV_SUFFIX


class CsvChangeHandler(FileSystemEventHandler):
    """Translates watchdog events into ``ChangeEvent``s on a queue.

    Creations are always forwarded. Modifications are forwarded only when the
    file's size or mtime changed since it was last seen, so attribute-only
    changes (chmod, chown) do not re-trigger processing. Moves and deletions
    enqueue nothing; they only drop the remembered signature of the old path.
    """

    def __init__(self, events: "queue.Queue[ChangeEvent]") -> None:
        super().__init__()
        self._events = events
        self._signatures: dict[Path, tuple[int, int]] = {}

    def _data_signature(self, path: Path) -> tuple[int, int] | None:
        try:
            stat = path.stat()
        except OSError:
            return None
        return stat.st_size, stat.st_mtime_ns

    def _path(self, src_path: str | bytes) -> Path:
        return Path(os.fsdecode(src_path)).absolute()

    def _forget(self, src_path: str | bytes, is_directory: bool) -> None:
        path = self._path(src_path)
        if not is_directory:
            self._signatures.pop(path, None)
            return
        for known in [p for p in self._signatures if p.is_relative_to(path)]:
            del self._signatures[known]

    def _enqueue(self, src_path: str | bytes, kind: ChangeKind) -> None:
        path = self._path(src_path)
        if not is_csv(path):
            return

        signature = self._data_signature(path)
        if kind == ChangeKind.MODIFIED:
            if signature is None or self._signatures.get(path) == signature:
                return
        if signature is not None:
            self._signatures[path] = signature

        logger.info("CSV file event detected: %s %s", kind, path)
        self._events.put(ChangeEvent(path=path, kind=kind))

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        try:
            self._enqueue(event.src_path, ChangeKind.CREATED)
        except Exception:
            logger.exception("Watch error handling %s", event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        try:
            self._enqueue(event.src_path, ChangeKind.MODIFIED)
        except Exception:
            logger.exception("Watch error handling %s", event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        try:
            self._forget(event.src_path, event.is_directory)
        except Exception:
            logger.exception("Watch error handling %s", event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        try:
            self._forget(event.src_path, event.is_directory)
        except Exception:
            logger.exception("Watch error handling %s", event.src_path)


class ChangeWatcher:
    """Watches a directory tree and hands out ``.csv`` change events.

    Usage::

        with ChangeWatcher("/data/drop", poll_interval=2) as watcher:
            event = watcher.receive()  # None when nothing is pending
    """

    def __init__(
        self,
        root: str | Path,
        *,
        poll_interval: float = 2.0,
        observer_factory: Callable[..., BaseObserver] = Observer,
    ) -> None:
        self._root = Path(root)
        self._poll_interval = poll_interval
        self._observer_factory = observer_factory
        self._events: queue.Queue[ChangeEvent] = queue.Queue()
        self._handler = CsvChangeHandler(self._events)
        self._observer: BaseObserver | None = None

    def start(self) -> None:
        """Begin watching.

        Raises:
            WatchError: If the root is not a directory or the watch cannot be set up.
        """
        if not self._root.is_dir():
            raise WatchError(f"Failed to watch directory: {self._root} is not a directory")

        observer = self._observer_factory(timeout=self._poll_interval)
        try:
            observer.schedule(self._handler, str(self._root), recursive=True)
            observer.start()
        except OSError as exc:
            raise WatchError(f"Failed to watch directory {self._root}: {exc}") from exc
        self._observer = observer
        logger.info("Watching %s for csv files (poll interval %ss)", self._root, self._poll_interval)

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None
        logger.info("Watcher stopped.")

    def __enter__(self) -> "ChangeWatcher":
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()

    def receive(self) -> ChangeEvent | None:
        """Non-blocking receive; None when no event is pending."""
        try:
            return self._events.get_nowait()
        except queue.Empty:
            return None
