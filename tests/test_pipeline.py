"""End-to-end tests for the inspection pipeline."""

import threading

import pytest

from xray import analyze, inspect, load, parallel
from xray.models import Classification, Document, InspectionParams, Page, PageStatus
from xray.output_writer import render
from xray.parallel import analyze_document


def test_fully_covered_confidential_is_clean(confidential_pdf):
    report = analyze(confidential_pdf())

    assert len(report.findings) == 1
    finding = report.findings[0]
    assert finding.classification is Classification.CLEAN
    assert finding.confidence >= 0.95
    assert finding.page_index == 0


def test_shrunk_box_leaks_the_tail(confidential_pdf):
    report = analyze(confidential_pdf(shrink_right=0.2))

    assert len(report.findings) == 1
    finding = report.findings[0]
    assert finding.classification is Classification.LEAK_SUSPECTED
    assert "AL" in finding.leaked_text
    assert report.pages[0].outcome == "leak-suspected"


def test_text_painted_on_top_is_not_leaked(confidential_pdf):
    report = analyze(confidential_pdf(text_on_top=True, text_color=(1, 1, 1)))

    assert len(report.findings) == 1
    finding = report.findings[0]
    assert finding.classification is Classification.CLEAN
    assert "CONFIDENTIAL" not in finding.leaked_text
    assert "CONFIDENTIAL" not in finding.recoverable_text


def test_strict_mode_flags_covered_text(confidential_pdf):
    report = analyze(confidential_pdf(), InspectionParams(flag_hidden_content=True))

    finding = report.findings[0]
    assert finding.is_leak
    assert finding.recoverable_text == "CONFIDENTIAL"


def test_pipeline_is_idempotent(confidential_pdf):
    data = confidential_pdf(shrink_right=0.2).read_bytes()

    first = analyze(data)
    second = analyze(data)

    assert first == second
    assert render(first) == render(second)


def test_multipage_outcomes(multipage_pdf):
    report = analyze(multipage_pdf)

    assert [p.outcome for p in report.pages] == ["clean", "leak-suspected", "clean"]
    assert report.pages[2].findings == ()


def test_parallel_matches_sequential(multipage_pdf):
    params = InspectionParams()
    with load(multipage_pdf, render_dpi=params.dpi) as doc:
        sequential = analyze_document(doc, params, workers=1)
        pooled = analyze_document(doc, params, workers=2)

    assert pooled == sequential


def test_page_load_error_is_isolated(page_factory, rect_factory):
    document = Document(source="broken.pdf", pages=[
        page_factory(index=0, graphics=[rect_factory((10, 10, 100, 30), 0)]),
        Page(index=1, width=0, height=0, load_error="RuntimeError: bad content stream"),
        page_factory(index=2),
    ])

    report = analyze_document(document)

    assert [p.status for p in report.pages] == [
        PageStatus.ANALYZED, PageStatus.FAILED, PageStatus.ANALYZED,
    ]
    assert "bad content stream" in report.pages[1].error
    assert len(report.findings) == 1


def test_analysis_error_is_isolated(page_factory, monkeypatch):
    real_find = parallel.find_candidates

    def _find(page, params=None):
        if page.index == 1:
            raise ValueError("boom")
        return real_find(page, params)

    monkeypatch.setattr(parallel, "find_candidates", _find)
    document = Document(source="x.pdf", pages=[page_factory(index=i) for i in range(3)])

    report = analyze_document(document)

    assert [p.outcome for p in report.pages] == ["clean", "failed", "clean"]
    assert "boom" in report.pages[1].error


def test_cancel_before_start(page_factory):
    document = Document(source="x.pdf", pages=[page_factory(index=i) for i in range(3)])
    cancel = threading.Event()
    cancel.set()

    report = analyze_document(document, cancel=cancel)

    assert [p.status for p in report.pages] == [PageStatus.CANCELLED] * 3


def test_cancel_abandons_remaining_pages(page_factory):
    document = Document(source="x.pdf", pages=[page_factory(index=i) for i in range(4)])
    cancel = threading.Event()

    def _progress(current, total):
        if current == 2:
            cancel.set()

    report = analyze_document(document, progress_callback=_progress, cancel=cancel)

    assert [p.status for p in report.pages] == [
        PageStatus.ANALYZED, PageStatus.ANALYZED, PageStatus.CANCELLED, PageStatus.CANCELLED,
    ]


def test_progress_callback_counts_pages(page_factory):
    document = Document(source="x.pdf", pages=[page_factory(index=i) for i in range(3)])
    calls = []

    analyze_document(document, progress_callback=lambda c, t: calls.append((c, t)))

    assert calls == [(1, 3), (2, 3), (3, 3)]


def test_inspect_lists_only_leaks(multipage_pdf):
    result = inspect(multipage_pdf)

    assert list(result) == [2]
    entry = result[2][0]
    assert len(entry["bbox"]) == 4
    assert entry["text"]


@pytest.mark.parametrize("progress", [True, False])
def test_analyze_with_and_without_progress(confidential_pdf, progress):
    report = analyze(confidential_pdf(), progress=progress)
    assert report.page_count == 1
