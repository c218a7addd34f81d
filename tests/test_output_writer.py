"""Tests for report serialization."""

import csv
import io
import json

import pytest

from xray.models import (
    Classification, Finding, InspectionParams, PageReport, PageStatus, Report
)
from xray.output_writer import (
    CSV_FIELDS, SCHEMA_VERSION, render, report_to_dict, report_to_pages, summarize,
    write_report
)


@pytest.fixture
def report():
    clean = Finding(
        page_index=0,
        bbox=(10.0, 10.0, 100.0, 30.0),
        classification=Classification.CLEAN,
        confidence=0.98,
        recoverable_text="hidden",
    )
    leak = Finding(
        page_index=1,
        bbox=(10.0, 10.0, 80.0, 30.0),
        classification=Classification.LEAK_SUSPECTED,
        confidence=0.7,
        leaked_text="AL",
        recoverable_text="CONFIDENTI",
        leaked_images=("xref:4",),
    )
    return Report(source="doc.pdf", page_count=3, pages=(
        PageReport(page_index=0, findings=(clean,)),
        PageReport(page_index=1, findings=(leak,)),
        PageReport(page_index=2, status=PageStatus.FAILED, error="boom"),
    ))


def test_report_to_dict(report):
    data = report_to_dict(report, InspectionParams(password="secret"))

    assert data["schema_version"] == SCHEMA_VERSION
    assert data["source"] == "doc.pdf"
    assert [p["outcome"] for p in data["pages"]] == ["clean", "leak-suspected", "failed"]
    assert data["pages"][2]["error"] == "boom"

    finding = data["pages"][1]["findings"][0]
    assert finding["classification"] == "leak-suspected"
    assert finding["bbox"] == [10.0, 10.0, 80.0, 30.0]
    assert finding["leaked_text"] == "AL"
    assert finding["leaked_images"] == ["xref:4"]

    assert "password" not in data["parameters"]


def test_summary(report):
    stats = summarize(report)

    assert stats["pages_analyzed"] == 2
    assert stats["pages_failed"] == 1
    assert stats["total_candidates"] == 2
    assert stats["total_leaks"] == 1
    assert stats["leaked_characters"] == 2
    assert stats["leak_confidence"]["count"] == 1


def test_json_round_trips(report):
    assert json.loads(render(report, "json"))["page_count"] == 3


def test_csv_has_marker_rows(report):
    rows = list(csv.DictReader(io.StringIO(render(report, "csv"))))

    assert list(rows[0].keys()) == CSV_FIELDS
    assert [r["status"] for r in rows] == ["analyzed", "analyzed", "failed"]
    assert rows[1]["leaked_text"] == "AL"
    assert rows[2]["error"] == "boom"


def test_pages_format(report):
    pages = report_to_pages(report)

    assert pages == {2: [{"bbox": (10.0, 10.0, 80.0, 30.0), "text": "CONFIDENTI"}]}
    assert json.loads(render(report, "pages")) == {
        "2": [{"bbox": [10.0, 10.0, 80.0, 30.0], "text": "CONFIDENTI"}]
    }


def test_unknown_format(report):
    with pytest.raises(ValueError):
        render(report, "xml")


def test_write_report(report, tmp_path):
    path = write_report(report, tmp_path / "out" / "report.json")

    assert json.loads(path.read_text(encoding="utf-8"))["source"] == "doc.pdf"
