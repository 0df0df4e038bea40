#!/usr/bin/env python3
"""Tests for validate_bundle schema validation."""

import json

from carbook.validation import load_schema
from validate_bundle import main, validate_bundle_file


def write(path, data):
    path.write_text(json.dumps(data))
    return path


class TestLoadSchema:
    """Tests for the packaged bundle schema."""

    def test_returns_dict(self):
        assert isinstance(load_schema("bundle"), dict)

    def test_has_expected_structure(self):
        schema = load_schema("bundle")
        assert "meta" in schema["properties"]
        assert "fuelLogs" in schema["properties"]


class TestValidateBundleFile:
    """Tests for validate_bundle_file function."""

    def test_valid_minimal_returns_no_errors(self, tmp_path):
        path = write(tmp_path / "ok.json", {
            "meta": {"exportedAt": "2025-06-01T12:00:00+00:00", "version": 1},
            "profile": {"id": "profile", "odometer": 42000},
            "fuel": [{"id": 1, "odometer": 41000, "liters": 30}],
        })
        assert validate_bundle_file(path, load_schema("bundle")) == []

    def test_missing_meta_returns_schema_error(self, tmp_path):
        path = write(tmp_path / "bad.json", {"fuel": []})
        errors = validate_bundle_file(path, load_schema("bundle"))
        assert any("Schema validation" in e for e in errors)

    def test_bad_record_reported_with_index(self, tmp_path):
        path = write(tmp_path / "bad.json", {
            "meta": {"exportedAt": "now"},
            "expenses": [{"amount": 10}, {"amount": "ten"}],
        })
        errors = validate_bundle_file(path, load_schema("bundle"))
        assert len(errors) == 1
        assert errors[0].startswith("expenses[1]:")

    def test_alias_records_checked(self, tmp_path):
        path = write(tmp_path / "old.json", {
            "meta": {"exportedAt": "now"},
            "fuelLogs": [{"liters": 30}],
        })
        errors = validate_bundle_file(path, load_schema("bundle"))
        assert errors and errors[0].startswith("fuelLogs[0]:")

    def test_invalid_json_returns_parse_error(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{unclosed")
        errors = validate_bundle_file(path, load_schema("bundle"))
        assert any("JSON" in e for e in errors)

    def test_nonexistent_file_returns_errors(self, tmp_path):
        errors = validate_bundle_file(tmp_path / "nope.json", load_schema("bundle"))
        assert len(errors) >= 1


class TestMain:
    """Tests for main."""

    def test_exit_codes(self, tmp_path, capsys):
        good = write(tmp_path / "good.json", {"meta": {"exportedAt": "now"}})
        bad = write(tmp_path / "bad.json", {})
        assert main([str(good)]) == 0
        assert main([str(good), str(bad)]) == 1
        out = capsys.readouterr().out
        assert "OK: good.json" in out
        assert "FAIL: bad.json" in out

    def test_no_arguments(self, capsys):
        assert main([]) == 2
