from __future__ import annotations

import json
from pathlib import Path

import pytest

from euromakers_moderation.catalog_writer import RECORD_FIELDS, catalog_record, write_entry, write_entry_file
from euromakers_moderation.errors import PathSafetyError
from euromakers_moderation.handoff import write_model


def test_record_contains_only_public_fields(make_result) -> None:
    record = catalog_record(make_result())
    assert list(record) == list(RECORD_FIELDS)
    assert "score" not in record
    assert "reasons" not in record
    assert record["longDescription"].startswith("Privacy Tool lets teams")
    assert record["logo"] == "/images/placeholder.svg"


def test_write_entry_places_file_under_category(tmp_path: Path, make_result) -> None:
    output = write_entry(make_result(), tmp_path / "software")

    assert output == (tmp_path / "software" / "security" / "privacy-tool.json").resolve()
    data = json.loads(output.read_text(encoding="utf-8"))
    assert list(data) == list(RECORD_FIELDS)
    assert data["features"] == ["End-to-end encryption", "Hosted in the EU", "Open source clients"]


def test_write_entry_is_idempotent(tmp_path: Path, make_result) -> None:
    output = write_entry(make_result(), tmp_path)
    first = output.read_bytes()
    write_entry(make_result(), tmp_path)
    assert output.read_bytes() == first
    assert first.endswith(b"}\n")


def test_write_entry_overwrites_existing_record(tmp_path: Path, make_result) -> None:
    output = write_entry(make_result(), tmp_path)
    write_entry(make_result(description="A completely different description."), tmp_path)
    assert json.loads(output.read_text(encoding="utf-8"))["description"] == "A completely different description."


@pytest.mark.parametrize(
    "overrides",
    [{"category": "../etc"}, {"id": "../../passwd"}, {"id": ""}, {"category": "Security"}],
)
def test_unsafe_category_or_id_rejected(tmp_path: Path, make_result, overrides) -> None:
    result = make_result(**overrides)
    result.normalized_category = ""
    with pytest.raises(PathSafetyError, match="unsafe category or id"):
        write_entry(result, tmp_path)
    assert list(tmp_path.iterdir()) == []


def test_normalized_category_takes_precedence(tmp_path: Path, make_result) -> None:
    result = make_result()
    result.normalized_category = "productivity"
    output = write_entry(result, tmp_path)
    assert output.parent.name == "productivity"


def test_write_entry_file_reads_score_output(tmp_path: Path, make_result) -> None:
    score_file = tmp_path / "moderation-score.json"
    write_model(score_file, make_result(logo="/images/privacy-tool_icon.svg"))

    output = write_entry_file(score_file, tmp_path / "data" / "software")

    assert json.loads(output.read_text(encoding="utf-8"))["logo"] == "/images/privacy-tool_icon.svg"
