"""Tests for loading table header templates."""

import logging
from pathlib import Path

import pytest

from csvship.config import ConfigError
from csvship.shipper.registry import header_signature, load_headers, table_name_for


class TestTableNameFor:
    def test_strips_template_suffix(self):
        assert table_name_for(Path("orders_template.csv")) == "orders"

    def test_without_extension(self):
        assert table_name_for(Path("daily_sales_template")) == "daily_sales"

    def test_missing_suffix_returns_none(self):
        assert table_name_for(Path("orders.csv")) is None

    def test_bare_suffix_returns_none(self):
        assert table_name_for(Path("_template.csv")) is None


class TestHeaderSignature:
    def test_trims_line_ending(self):
        assert header_signature("id,amount,date\r\n") == "id,amount,date"

    def test_strips_trailing_commas(self):
        assert header_signature("id,amount,date,,\n") == "id,amount,date"

    def test_keeps_inner_spacing(self):
        assert header_signature("id, amount ,date") == "id, amount ,date"


class TestLoadHeaders:
    def test_loads_templates(self, template_dir):
        headers = load_headers(template_dir)
        assert headers == {
            "id,amount,date": "orders",
            "id,name,email": "customers",
        }

    def test_skips_file_without_template_suffix(self, template_dir, caplog):
        (template_dir / "README.txt").write_text("not a template")
        with caplog.at_level(logging.WARNING):
            headers = load_headers(template_dir)
        assert "not a template" not in headers
        assert "README.txt" in caplog.text

    def test_skips_empty_template(self, template_dir):
        (template_dir / "empty_template.csv").write_text("\n\n")
        headers = load_headers(template_dir)
        assert "empty" not in headers.values()

    def test_ignores_subdirectories(self, template_dir):
        (template_dir / "nested_template").mkdir()
        assert len(load_headers(template_dir)) == 2

    def test_last_duplicate_wins(self, tmp_path):
        (tmp_path / "a_template.csv").write_text("x,y\n")
        (tmp_path / "b_template.csv").write_text("x,y\n")
        assert load_headers(tmp_path) == {"x,y": "b"}

    def test_uses_first_line_only(self, tmp_path):
        (tmp_path / "orders_template.csv").write_text("  id,amount,date  \n1,2,3\n")
        assert load_headers(tmp_path) == {"id,amount,date": "orders"}

    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="template directory"):
            load_headers(tmp_path / "nope")

    def test_undecodable_template_raises(self, tmp_path):
        (tmp_path / "bad_template.csv").write_bytes(b"\xff\xfe\xfa")
        with pytest.raises(ConfigError, match="bad_template.csv"):
            load_headers(tmp_path)
