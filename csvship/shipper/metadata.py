"""Timestamp renaming and provenance sidecars for accepted CSV files.

An accepted ``orders.csv`` becomes ``orders_<suffix>.csv`` plus
``orders_<suffix>.csv.metadata`` holding ``<created>,<owner>,<basename>``.
"""

import logging
import os
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Protocol

from csvship.schemas.shipper import ClassifiedFile, MetadataRecord, printable_name

logger = logging.getLogger(__name__)

METADATA_SUFFIX = ".metadata"


class IdentityResolver(Protocol):
    """Resolves a numeric user id to a user name."""

    def username(self, uid: int) -> str: ...


class IdCommandResolver:
    """Looks up user names with the system ``id`` command.

    Any failure degrades to an empty user name.
    """

    def username(self, uid: int) -> str:
        try:
            result = subprocess.run(
                ["id", "-u", "-n", str(uid)],
                capture_output=True,
                text=True,
            )
        except OSError as exc:
            logger.error("Failed to execute id command: %s", exc)
            return ""
        if result.returncode != 0:
            logger.warning("id lookup for uid %d failed: %s", uid, result.stderr.strip())
            return ""
        return result.stdout.strip()


def suffixed_path(src_file: Path, file_suffix: str, now: datetime | None = None) -> Path:
    """Build ``<stem>_<timestamp><ext>`` next to the source file."""
    stamp = (now or datetime.now()).strftime(file_suffix)
    return src_file.with_name(f"{src_file.stem}_{stamp}{src_file.suffix}")


def suffix_file_name(src_file: Path, file_suffix: str, now: datetime | None = None) -> Path:
    """Rename a file in place with a timestamp suffix.

    Raises:
        FileExistsError: If the target name is already taken.
        OSError: If the rename fails.
    """
    target = suffixed_path(src_file, file_suffix, now)
    if target.exists():
        raise FileExistsError(f"Rename target already exists: {target}")
    os.rename(src_file, target)
    return target


def creation_time(stat: os.stat_result) -> datetime:
    """Birth time where the platform records it, otherwise inode change time."""
    timestamp = getattr(stat, "st_birthtime", None)
    if timestamp is None:
        timestamp = stat.st_ctime
    return datetime.fromtimestamp(int(timestamp))


def sidecar_path(src_file: Path) -> Path:
    """``<src_file>.metadata`` next to the source file."""
    return src_file.with_name(src_file.name + METADATA_SUFFIX)


def create_metadata_file(
    src_file: Path, original_name: str, identity: IdentityResolver
) -> Path:
    """Write the provenance sidecar for a renamed source file.

    ``original_name`` is the file name as it was dropped, before renaming.
    Undecodable bytes in it are written backslash-escaped.

    Returns:
        The sidecar path (``<src_file>.metadata``).
    """
    stat = src_file.stat()
    record = MetadataRecord(
        upload_time=creation_time(stat),
        owner=identity.username(stat.st_uid),
        original_name=printable_name(original_name),
    )
    metadata_path = sidecar_path(src_file)
    logger.info("Creating metadata file %s: %s", metadata_path, record.to_line())
    metadata_path.write_text(record.to_line(), encoding="utf-8", errors="backslashreplace")
    return metadata_path


def carry_sidecar(src_file: Path, renamed: Path) -> Path | None:
    """Move a sidecar left over from an earlier run along with its source file.

    Returns:
        The moved sidecar, or None if there was none or it could not be moved.
    """
    stale = sidecar_path(src_file)
    if not stale.is_file():
        return None
    target = sidecar_path(renamed)
    try:
        os.rename(stale, target)
    except OSError as exc:
        logger.error("Failed to move existing metadata file %s: %s", stale, exc)
        return None
    logger.info("Reusing metadata file %s -> %s", stale.name, target.name)
    return target


class MetadataGenerator:
    """Renames accepted files and writes their sidecars.

    Usage::

        generator = MetadataGenerator("%Y%m%d%H%M%S", IdCommandResolver())
        classified = generator.process(Path("/drop/orders.csv"), "orders")
    """

    def __init__(self, file_suffix: str, identity: IdentityResolver) -> None:
        self._file_suffix = file_suffix
        self._identity = identity

    def process(
        self, src_file: Path, table_name: str, now: datetime | None = None
    ) -> ClassifiedFile:
        """Rename the file and attach its sidecar.

        A sidecar already sitting next to ``src_file`` (a file renamed by an
        earlier run but never transferred) is moved with it and kept as is.
        A sidecar failure is logged and yields ``metadata_path=None``; the file
        is still returned for transfer.

        Raises:
            OSError: If the rename fails. The file keeps its original name.
        """
        renamed = suffix_file_name(src_file, self._file_suffix, now)
        logger.info("Renamed %s -> %s", src_file.name, renamed.name)

        metadata_path = carry_sidecar(src_file, renamed)
        if metadata_path is None:
            try:
                metadata_path = create_metadata_file(renamed, src_file.name, self._identity)
            except (OSError, ValueError) as exc:
                logger.error("Error creating metadata file for %s: %s", renamed, exc)
                metadata_path = None

        return ClassifiedFile(
            table_name=table_name,
            source_path=renamed,
            metadata_path=metadata_path,
        )
