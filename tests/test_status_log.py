"""Tests for the per-directory upload.log."""

import re
from unittest.mock import patch

from csvship.shipper.status_log import UploadStatusLog

LINE = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} - (.*)$")


class TestRecord:
    def test_creates_log_file(self, drop_dir):
        UploadStatusLog().record(drop_dir, "Upload succeeded! File: a.csv")
        assert (drop_dir / "upload.log").exists()

    def test_line_format(self, drop_dir):
        UploadStatusLog().record(drop_dir, "Upload succeeded! File: a.csv")
        line = (drop_dir / "upload.log").read_text()
        assert line.endswith("\n")
        match = LINE.match(line.rstrip("\n"))
        assert match is not None
        assert match.group(1) == "Upload succeeded! File: a.csv"

    def test_appends(self, drop_dir):
        log = UploadStatusLog()
        log.record(drop_dir, "one")
        log.record(drop_dir, "two")
        UploadStatusLog().record(drop_dir, "three")
        assert [LINE.match(l).group(1) for l in log.read_entries(drop_dir)] == ["one", "two", "three"]

    def test_partitioned_by_directory(self, tmp_path):
        a = tmp_path / "a"
        b = tmp_path / "b"
        a.mkdir()
        b.mkdir()
        log = UploadStatusLog()
        log.record(a, "in a")
        log.record(b, "in b")
        assert len(log.read_entries(a)) == 1
        assert len(log.read_entries(b)) == 1

    def test_missing_directory_does_not_raise(self, tmp_path, caplog):
        UploadStatusLog().record(tmp_path / "missing", "lost")
        assert "Failed to write upload log" in caplog.text

    def test_write_error_does_not_raise(self, drop_dir):
        with patch("pathlib.Path.open", side_effect=PermissionError("denied")):
            UploadStatusLog().record(drop_dir, "lost")

    def test_undecodable_file_name_is_escaped(self, drop_dir):
        name = "caf\udce9.csv"
        log = UploadStatusLog()
        log.record(drop_dir, f"Upload failed! File: {name} Reason: x")
        log.record(drop_dir, "next")

        entries = log.read_entries(drop_dir)
        assert len(entries) == 2
        assert "File: caf\\udce9.csv Reason: x" in entries[0]


class TestReadEntries:
    def test_empty(self, drop_dir):
        assert UploadStatusLog().read_entries(drop_dir) == []

    def test_limit_keeps_newest(self, drop_dir):
        log = UploadStatusLog()
        for i in range(5):
            log.record(drop_dir, f"msg{i}")
        entries = log.read_entries(drop_dir, limit=2)
        assert [e.split(" - ", 1)[1] for e in entries] == ["msg3", "msg4"]
