from __future__ import annotations

import json
from pathlib import Path

import pytest

from euromakers_moderation import cli
from euromakers_moderation.issue_body import build_submission_issue_body


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    for name in (
        "MODERATION_USER_AGENT",
        "MODERATION_REACHABILITY_TIMEOUT_S",
        "MODERATION_LOGO_TIMEOUT_S",
        "MODERATION_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("euromakers_moderation.scorer.check_url_reachable", lambda url, **kwargs: True)


def test_full_pipeline(tmp_path: Path, make_payload, capsys) -> None:
    (tmp_path / "body.md").write_text(build_submission_issue_body(make_payload()), encoding="utf-8")

    assert cli.main(["parse-issue", "--body-file", "body.md"]) == 0
    assert cli.main(["score"]) == 0
    assert cli.main(["resolve-logo"]) == 0
    assert cli.main(["write-entry"]) == 0

    out = capsys.readouterr().out.splitlines()
    assert out[0] == "Parsed payload written to submission-payload.json"
    assert out[1] == "Moderation score 95 (auto-merge) written to moderation-score.json"
    assert out[2] == "No remote logo URL found. Skipped logo download."
    assert out[3].startswith("Wrote software entry to ")

    record = json.loads((tmp_path / "data" / "software" / "security" / "privacy-tool.json").read_text(encoding="utf-8"))
    assert record["id"] == "privacy-tool"
    assert record["logo"] == "/images/placeholder.svg"


def test_parse_issue_failure_exits_nonzero(tmp_path: Path, capsys) -> None:
    (tmp_path / "body.md").write_text("## Payload\n\nno json here", encoding="utf-8")

    assert cli.main(["parse-issue", "--body-file", "body.md", "--output", "out.json"]) == 1

    assert "No JSON payload block found" in capsys.readouterr().err
    assert not (tmp_path / "out.json").exists()


def test_missing_input_file_exits_nonzero(capsys) -> None:
    assert cli.main(["score", "--input", "missing.json"]) == 1
    assert "missing.json" in capsys.readouterr().err


def test_resolve_logo_writes_to_separate_output(tmp_path: Path, make_payload, capsys) -> None:
    (tmp_path / "payload.json").write_text(json.dumps(make_payload()), encoding="utf-8")
    assert cli.main(["score", "--input", "payload.json", "--output", "score.json"]) == 0

    assert cli.main(["resolve-logo", "--input", "score.json", "--output", "resolved.json", "--images-dir", "img"]) == 0

    assert (tmp_path / "resolved.json").exists()


def test_write_entry_rejects_unsafe_input(tmp_path: Path, make_result, capsys) -> None:
    result = make_result(id="../../escape")
    (tmp_path / "moderation-score.json").write_text(result.model_dump_json(by_alias=True), encoding="utf-8")

    assert cli.main(["write-entry"]) == 1
    assert "unsafe category or id" in capsys.readouterr().err


def test_render_issue(tmp_path: Path, make_payload, capsys) -> None:
    (tmp_path / "submission-payload.json").write_text(json.dumps(make_payload()), encoding="utf-8")

    assert cli.main(["render-issue"]) == 0

    assert capsys.readouterr().out.strip() == "Issue body written to issue-body.md"
    assert (tmp_path / "issue-body.md").read_text(encoding="utf-8").startswith("## New Software Submission")


def test_invalid_configuration_exits_with_two(monkeypatch, capsys) -> None:
    monkeypatch.setenv("MODERATION_REACHABILITY_TIMEOUT_S", "soon")
    assert cli.main(["render-issue"]) == 2
    assert "Invalid configuration" in capsys.readouterr().err


def test_max_bytes_must_be_positive() -> None:
    with pytest.raises(SystemExit):
        cli.main(["resolve-logo", "--max-bytes", "0"])


def test_non_utf8_issue_body_exits_nonzero(tmp_path: Path, capsys) -> None:
    (tmp_path / "body.md").write_bytes(b"## Payload\n```json\n{\"name\": \"\xff\xfe\"}\n```")

    assert cli.main(["parse-issue", "--body-file", "body.md"]) == 1

    err = capsys.readouterr().err
    assert "Issue body is not valid UTF-8" in err
    assert "Traceback" not in err
    assert not (tmp_path / "submission-payload.json").exists()


def test_non_utf8_handoff_file_exits_nonzero(tmp_path: Path, capsys) -> None:
    (tmp_path / "submission-payload.json").write_bytes(b"{\"name\": \"\xff\"}")

    assert cli.main(["score"]) == 1
    assert "is not valid JSON" in capsys.readouterr().err
