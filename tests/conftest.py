"""Shared fixtures for csvship tests."""

from pathlib import Path, PurePosixPath

import pytest

from csvship.schemas.shipper import TransferResult
from csvship.shipper.metadata import MetadataGenerator
from csvship.shipper.pipeline import CsvShipper
from csvship.shipper.status_log import UploadStatusLog
from csvship.shipper.transfer import TransferDispatcher

ORDERS_HEADER = "id,amount,date"
CUSTOMERS_HEADER = "id,name,email"


class FakeTransferClient:
    """Records every send; fails for the tables listed in ``failing``."""

    def __init__(self, failing: dict[str, str] | None = None) -> None:
        self.failing = failing or {}
        self.calls: list[tuple[list[Path], str, str, PurePosixPath]] = []

    def send(self, paths, dest_user, dest_host, remote_dir):
        self.calls.append((list(paths), dest_user, dest_host, remote_dir))
        error = self.failing.get(remote_dir.name)
        if error is not None:
            return TransferResult(success=False, error_message=error)
        return TransferResult(success=True, output="sent")


class FakeIdentity:
    def __init__(self, name: str = "alice") -> None:
        self.name = name
        self.uids: list[int] = []

    def username(self, uid: int) -> str:
        self.uids.append(uid)
        return self.name


@pytest.fixture
def drop_dir(tmp_path):
    path = tmp_path / "drop"
    path.mkdir()
    return path


@pytest.fixture
def template_dir(tmp_path):
    path = tmp_path / "templates"
    path.mkdir()
    (path / "orders_template.csv").write_text(ORDERS_HEADER + "\n")
    (path / "customers_template.csv").write_text(CUSTOMERS_HEADER + ",\n")
    return path


@pytest.fixture
def registry():
    return {ORDERS_HEADER: "orders", CUSTOMERS_HEADER: "customers"}


@pytest.fixture
def transfer_client():
    return FakeTransferClient()


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def status_log():
    return UploadStatusLog()


@pytest.fixture
def make_shipper(registry, status_log, transfer_client, identity):
    """Build a CsvShipper wired to fakes."""

    def _make(file_suffix="%Y%m%d%H%M%S%f", registry_override=None):
        return CsvShipper(
            registry=registry if registry_override is None else registry_override,
            metadata=MetadataGenerator(file_suffix, identity),
            dispatcher=TransferDispatcher(transfer_client, status_log),
            status_log=status_log,
            dest_user="etl",
            dest_host="warehouse",
            dest_dir="/srv/incoming",
        )

    return _make


@pytest.fixture
def write_csv():
    """Write a CSV file with the given header row plus one data row."""

    def _write(directory: Path, name: str, header: str, rows: str = "1,2,3\n") -> Path:
        path = directory / name
        path.write_text(header + "\n" + rows)
        return path

    return _write
