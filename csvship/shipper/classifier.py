"""Matches a dropped CSV file to a destination table by its header row."""

import logging
from collections.abc import Mapping
from pathlib import Path

from csvship.schemas.shipper import RejectReason, Rejected
from csvship.shipper.registry import header_signature

logger = logging.getLogger(__name__)


def read_header(csv_path: Path) -> str | None:
    """Return the first line of a file, or None if the file no longer exists.

    An empty file yields an empty string.
    """
    try:
        with csv_path.open(newline="", encoding="utf-8") as f:
            return f.readline()
    except FileNotFoundError:
        return None


def classify(csv_path: str | Path, registry: Mapping[str, str]) -> str | Rejected | None:
    """Determine the destination table for a CSV file.

    Returns:
        The table name on an exact header match, a ``Rejected`` result if the
        header is unknown or unreadable, or None if the file has vanished.
    """
    csv_path = Path(csv_path)
    try:
        header = read_header(csv_path)
    except (OSError, UnicodeDecodeError) as exc:
        logger.error("Cannot read headers of %s: %s", csv_path, exc)
        return Rejected(reason=RejectReason.UNREADABLE, detail=str(exc))

    if header is None:
        logger.debug("%s disappeared before classification; skipping", csv_path)
        return None

    signature = header_signature(header)
    logger.info("CSV headers of %s: %r", csv_path.name, signature)

    table_name = registry.get(signature)
    if table_name is None:
        logger.info("No matching table headers found for %s; ignoring", csv_path.name)
        return Rejected(reason=RejectReason.NO_MATCHING_SCHEMA)

    logger.info("Matched %s to table %r", csv_path.name, table_name)
    return table_name
