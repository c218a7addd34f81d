"""Tests for report assembly."""

import pytest

from xray.models import (
    Classification, Document, Finding, PageReport, PageStatus
)
from xray.report_builder import build


def _finding(page_index, bbox, z_order=0):
    return Finding(
        page_index=page_index,
        bbox=bbox,
        classification=Classification.CLEAN,
        confidence=1.0,
        z_order=z_order,
    )


@pytest.fixture
def three_page_document(page_factory):
    return Document(source="test.pdf", pages=[page_factory(index=i) for i in range(3)])


def test_pages_are_reassembled_in_order(three_page_document):
    reports = [PageReport(page_index=i) for i in (2, 0, 1)]

    report = build(three_page_document, reports)

    assert [p.page_index for p in report.pages] == [0, 1, 2]
    assert report.page_count == 3
    assert report.source == "test.pdf"


def test_accepts_mapping(three_page_document):
    reports = {i: PageReport(page_index=i) for i in (1, 2, 0)}

    report = build(three_page_document, reports)

    assert [p.page_index for p in report.pages] == [0, 1, 2]


def test_missing_page_is_marked_failed(three_page_document):
    report = build(three_page_document, [PageReport(page_index=0), PageReport(page_index=2)])

    assert report.pages[1].status is PageStatus.FAILED
    assert report.pages[1].outcome == "failed"


def test_findings_sorted_in_discovery_order(three_page_document):
    findings = (
        _finding(0, (300, 100, 350, 110), 3),
        _finding(0, (10, 100, 60, 110), 5),
        _finding(0, (10, 100, 60, 110), 1),
        _finding(0, (10, 20, 60, 30), 9),
    )

    report = build(three_page_document, [PageReport(page_index=0, findings=findings)])

    assert [(f.bbox[0], f.bbox[1], f.z_order) for f in report.findings] == [
        (10, 20, 9), (10, 100, 1), (10, 100, 5), (300, 100, 3),
    ]


def test_report_is_immutable(three_page_document):
    report = build(three_page_document, [])

    with pytest.raises(AttributeError):
        report.pages = ()
    assert isinstance(report.pages, tuple)
