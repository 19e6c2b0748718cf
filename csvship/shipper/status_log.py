"""Per-directory ``upload.log`` recording the outcome of each dropped file.

Separate from the operational log — these lines are meant for whoever drops
files into the folder, so they live next to the files themselves.
"""

import logging
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

LOG_FILE_NAME = "upload.log"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class UploadStatusLog:
    """Append-only text log of upload outcomes, one file per source directory.

    Usage::

        status_log = UploadStatusLog()
        status_log.record(csv_path.parent, f"Upload succeeded! File: {csv_path.name}")
        lines = status_log.read_entries(csv_path.parent, limit=20)
    """

    def __init__(self, file_name: str = LOG_FILE_NAME) -> None:
        self._file_name = file_name

    def path_for(self, directory: str | Path) -> Path:
        return Path(directory) / self._file_name

    def record(self, directory: str | Path, message: str) -> None:
        """Append a timestamped line. Never raises."""
        log_time = datetime.now().strftime(TIMESTAMP_FORMAT)
        log_path = self.path_for(directory)
        try:
            with log_path.open("a", encoding="utf-8", errors="backslashreplace") as f:
                f.write(f"{log_time} - {message}\n")
        except (OSError, ValueError) as exc:
            logger.error("Failed to write upload log %s: %s", log_path, exc)
            return
        logger.debug("Upload log %s: %s", log_path, message)

    def read_entries(self, directory: str | Path, *, limit: int | None = None) -> list[str]:
        """Read logged lines, oldest first; ``limit`` keeps the newest N."""
        log_path = self.path_for(directory)
        if not log_path.exists():
            return []

        with log_path.open(encoding="utf-8", errors="backslashreplace") as f:
            entries = [line.rstrip("\n") for line in f if line.strip()]

        if limit is not None:
            entries = entries[-limit:]

        return entries
