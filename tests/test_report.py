import json

import pytest

from quiz_ocr.config import OutputTarget
from quiz_ocr.models import CorrectionStats, PageResult, SheetResult
from quiz_ocr.report import missing_questions, write_html_report, write_outputs, write_results_json


def _results():
    clean = SheetResult(
        sheet_id="alice",
        answers={"Q1": "CRUEL SUMMER", "Q2": "WATERLOO"},
        name="Alice",
        email="alice@example.com",
        pages=[PageResult(source="p1", answers={"Q1": "CRUEL SUMMER", "Q2": "WATERLOO"}, method="table")],
    )
    flagged = SheetResult(
        sheet_id="bob",
        answers={"Q1": "<b>RIO</b>", "Q3": "GOLD"},
        name="Bob",
        stats=CorrectionStats(fuzzy_corrections=1),
    )
    return {"bob": flagged, "alice": clean}


def test_missing_questions():
    assert missing_questions(_results()["bob"]) == [2]
    assert missing_questions(SheetResult(sheet_id="x")) == []


def test_results_json(tmp_path):
    out = tmp_path / "nested" / "results.json"
    write_results_json(_results(), str(out))
    data = json.loads(out.read_text(encoding="utf-8"))
    assert list(data) == ["alice", "bob"]
    assert data["alice"]["answers"] == {"Q1": "CRUEL SUMMER", "Q2": "WATERLOO"}
    assert data["alice"]["pages"] == [
        {"source": "p1", "method": "table", "answers": 2, "corrections": data["alice"]["corrections"]}
    ]
    assert data["bob"]["corrections"]["fuzzy_corrections"] == 1
    assert data["bob"]["email"] is None


def test_html_report_flags_and_escapes(tmp_path):
    out = tmp_path / "report.html"
    write_html_report(_results(), str(out))
    text = out.read_text(encoding="utf-8")
    assert "Needs Review (1)" in text
    assert "All Sheets (1)" in text
    assert "identity_missing" in text
    assert "Missing: Q2" in text
    assert "&lt;b&gt;RIO&lt;/b&gt;" in text
    assert "<b>RIO</b>" not in text


def test_write_outputs(tmp_path):
    targets = [OutputTarget("file", str(tmp_path / "r.json")), OutputTarget("html_report", str(tmp_path / "r.html"))]
    write_outputs(_results(), targets)
    assert (tmp_path / "r.json").exists()
    assert (tmp_path / "r.html").exists()
    with pytest.raises(ValueError):
        write_outputs(_results(), [OutputTarget("s3", "bucket")])
