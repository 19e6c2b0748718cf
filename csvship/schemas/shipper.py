"""Schemas for the CSV drop-folder shipper.

Covers the lifecycle of a dropped file:
  change event -> debounce batch -> header classification -> rename + sidecar -> per-table transfer
"""

from datetime import datetime
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field


class ChangeKind(StrEnum):
    """Filesystem changes the watcher reacts to."""

    CREATED = "created"
    MODIFIED = "modified"


def printable_name(name: str) -> str:
    """Escape undecodable bytes (surrogates from os.fsdecode) in a file name."""
    return name.encode("utf-8", "backslashreplace").decode("utf-8")


class ChangeEvent(BaseModel):
    """A single `.csv` change reported by the watcher."""

    path: Path
    kind: ChangeKind


# --- Classification ---


class RejectReason(StrEnum):
    """Why a dropped file was excluded from a batch."""

    NO_MATCHING_SCHEMA = "NoMatchingSchema"
    UNREADABLE = "Unreadable"


REJECT_MESSAGES: dict[RejectReason, str] = {
    RejectReason.NO_MATCHING_SCHEMA: "No matching table headers found.",
    RejectReason.UNREADABLE: "Could not read csv headers.",
}


class Rejected(BaseModel):
    """Classifier result for a file whose header matched no known table."""

    reason: RejectReason
    detail: str = ""

    @property
    def message(self) -> str:
        if self.detail:
            return f"{REJECT_MESSAGES[self.reason]} {self.detail}"
        return REJECT_MESSAGES[self.reason]


# --- Metadata ---


class MetadataRecord(BaseModel):
    """Provenance written to the ``.metadata`` sidecar of an accepted file."""

    upload_time: datetime
    owner: str = ""
    original_name: str

    def to_line(self) -> str:
        return f"{self.upload_time:%Y-%m-%d %H:%M:%S},{self.owner},{self.original_name}"


class ClassifiedFile(BaseModel):
    """An accepted, renamed file waiting for transfer."""

    table_name: str
    source_path: Path = Field(description="Source path after the timestamp rename")
    metadata_path: Path | None = Field(
        default=None,
        description="Sidecar path, or None if the sidecar could not be written",
    )


# --- Transfer ---


class TableBatch(BaseModel):
    """All files of one destination table within a dispatch cycle.

    Sources and sidecars are derived from the same entries, so they always
    line up positionally.
    """

    table_name: str
    entries: list[ClassifiedFile] = Field(default_factory=list)

    def add(self, item: ClassifiedFile) -> None:
        if item.table_name != self.table_name:
            raise ValueError(
                f"File for table {item.table_name!r} added to batch {self.table_name!r}"
            )
        self.entries.append(item)

    @property
    def source_paths(self) -> list[Path]:
        return [e.source_path for e in self.entries]

    @property
    def metadata_paths(self) -> list[Path | None]:
        return [e.metadata_path for e in self.entries]

    def transfer_paths(self) -> list[Path]:
        """Sources followed by the sidecars that exist, in transfer order."""
        return self.source_paths + [p for p in self.metadata_paths if p is not None]


class TransferResult(BaseModel):
    """Outcome of one remote-copy invocation."""

    success: bool
    output: str = ""
    error_message: str = ""


class UploadStatus(StrEnum):
    """Per-file outcome recorded in ``upload.log``."""

    SUCCESS = "success"
    FAILED = "failed"
    REJECTED = "rejected"


class FileOutcome(BaseModel):
    """What happened to one dropped file in a dispatch cycle."""

    file_name: str
    status: UploadStatus
    table_name: str = ""
    error_message: str = ""


class BatchSummary(BaseModel):
    """Counts for one processed batch."""

    outcomes: list[FileOutcome] = Field(default_factory=list)
    transfers: int = Field(default=0, ge=0, description="Remote-copy invocations issued")

    def count(self, status: UploadStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)
