from __future__ import annotations

import json
from pathlib import Path

import pytest

from euromakers_moderation import cli
from euromakers_moderation.catalog_validator import check_catalog, validate_catalog, validate_record_file
from euromakers_moderation.catalog_writer import write_entry
from euromakers_moderation.errors import CatalogValidationError


def _write(path: Path, data: object) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_written_entries_are_valid(tmp_path: Path, make_result) -> None:
    write_entry(make_result(), tmp_path)
    write_entry(make_result(id="vault", category="cloud", logo="/images/vault_icon.png"), tmp_path)

    report = validate_catalog(tmp_path)

    assert report.total == 2
    assert report.valid == 2
    assert report.errors == {}


def test_invalid_record_lists_every_problem(tmp_path: Path, make_result) -> None:
    output = write_entry(make_result(), tmp_path)
    record = json.loads(output.read_text(encoding="utf-8"))
    record.update(logo="https://cdn.example.com/logo.png", description="short", features=[])
    _write(output, record)

    problems = validate_record_file(output)

    assert [p.split(":", 1)[0] for p in problems] == ["description", "logo", "features"]
    assert any("should start with /images/" in p for p in problems)


@pytest.mark.parametrize(
    ("extra", "valid"),
    [
        ({"isFeatured": True, "featureReason": "Editor pick", "featurePriority": 5}, True),
        ({"featurePriority": 11}, False),
        ({"featurePriority": 0}, False),
        ({"isFeatured": "yes"}, False),
        ({"website": "not a url"}, False),
        ({"name": ""}, False),
        ({"longDescription": "Too short to describe anything."}, False),
    ],
)
def test_optional_and_required_fields(tmp_path: Path, make_result, extra: dict, valid: bool) -> None:
    output = write_entry(make_result(), tmp_path)
    record = json.loads(output.read_text(encoding="utf-8"))
    record.update(extra)
    _write(output, record)

    assert (validate_record_file(output) == []) is valid


def test_malformed_json_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "security" / "broken.json"
    path.parent.mkdir()
    path.write_text("{", encoding="utf-8")

    report = validate_catalog(tmp_path)

    assert report.errors == {"security/broken.json": [f"Invalid JSON in file: {path}"]}


def test_files_outside_category_directories_are_ignored(tmp_path: Path) -> None:
    _write(tmp_path / "index.json", [1, 2, 3])
    assert validate_catalog(tmp_path).total == 0


def test_missing_directory_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(CatalogValidationError, match="not found"):
        validate_catalog(tmp_path / "missing")


def test_check_catalog_raises_with_report(tmp_path: Path, make_result) -> None:
    write_entry(make_result(), tmp_path)
    _write(tmp_path / "cloud" / "bad.json", {"id": "bad"})

    with pytest.raises(CatalogValidationError) as excinfo:
        check_catalog(tmp_path)

    message = excinfo.value.message
    assert "Total files: 2" in message
    assert "Invalid files: 1" in message
    assert "cloud/bad.json:" in message


def test_validate_catalog_command(tmp_path: Path, monkeypatch, make_result, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    write_entry(make_result(), tmp_path / "data" / "software")

    assert cli.main(["validate-catalog"]) == 0
    assert "Valid files: 1" in capsys.readouterr().out

    _write(tmp_path / "data" / "software" / "security" / "bad.json", {"id": "bad"})
    assert cli.main(["validate-catalog"]) == 1
    assert "security/bad.json:" in capsys.readouterr().err
