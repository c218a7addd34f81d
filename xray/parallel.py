"""
Page-level orchestration of the inspection pipeline.

Runs candidate detection, content extraction and classification for each
page, either sequentially or on a multiprocessing Pool. Page failures are
isolated; cancellation abandons pages that have not been scheduled yet.
"""

import logging
import multiprocessing
import threading
from functools import partial
from typing import Callable, Optional

from tqdm import tqdm

from .candidate_detector import find_candidates
from .classifier import classify
from .content_extractor import extract_underlying
from .errors import PageAnalysisError, describe
from .models import (
    Document, InspectionParams, Page, PageReport, PageStatus, Report
)
from .output_writer import report_to_pages
from .pdf_loader import Source, load
from .report_builder import build


logger = logging.getLogger(__name__)


def analyze_page_strict(page: Page, params: InspectionParams) -> PageReport:
    """
    Analyze a single page, raising on failure.

    Raises:
        PageAnalysisError: the page could not be read or analyzed
    """
    if page.load_error is not None:
        raise PageAnalysisError(page.index, page.load_error)

    try:
        findings = []
        for candidate in find_candidates(page, params):
            leaks = extract_underlying(page, candidate, params)
            findings.append(classify(candidate, leaks, params))
    except Exception as e:
        raise PageAnalysisError(page.index, describe(e)) from e

    return PageReport(page_index=page.index, findings=tuple(findings))


def analyze_page(page: Page, params: Optional[InspectionParams] = None) -> PageReport:
    """
    Analyze a single page.

    Args:
        page: Page snapshot
        params: Inspection parameters (defaults if None)

    Returns:
        PageReport; failures are recorded on it instead of raised
    """
    params = params or InspectionParams()
    try:
        return analyze_page_strict(page, params)
    except PageAnalysisError as e:
        logger.error(f"Error analyzing page {page.index}: {e.reason}")
        return PageReport(
            page_index=page.index,
            status=PageStatus.FAILED,
            error=e.reason,
        )


def _cancelled(page: Page) -> PageReport:
    return PageReport(page_index=page.index, status=PageStatus.CANCELLED, error="Cancelled")


def analyze_document(
    document: Document,
    params: Optional[InspectionParams] = None,
    workers: int = 1,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    cancel: Optional[threading.Event] = None
) -> Report:
    """
    Analyze every page of a loaded document.

    Args:
        document: Loaded document
        params: Inspection parameters (defaults if None)
        workers: Number of worker processes (1 runs in-process)
        progress_callback: Optional callback for progress updates (current, total)
        cancel: Event that, once set, stops scheduling further pages

    Returns:
        Report covering every page of the document
    """
    params = params or InspectionParams()
    pages = document.pages
    total_pages = len(pages)
    results: list[PageReport] = []

    def _record(result: PageReport) -> None:
        results.append(result)
        if progress_callback:
            progress_callback(len(results), total_pages)

    if workers <= 1 or total_pages <= 1:
        for page in pages:
            if cancel is not None and cancel.is_set():
                break
            _record(analyze_page(page, params))
    else:
        worker = partial(analyze_page, params=params)
        with multiprocessing.Pool(min(workers, total_pages)) as pool:
            # imap yields in page order whatever order workers finish in
            for result in pool.imap(worker, pages):
                _record(result)
                if cancel is not None and cancel.is_set():
                    # Leaving the context terminates outstanding work
                    break

    done = {r.page_index for r in results}
    for page in pages:
        if page.index not in done:
            results.append(_cancelled(page))

    if cancel is not None and cancel.is_set():
        logger.warning(f"Analysis of {document.source} cancelled after {len(done)} page(s)")

    return build(document, results)


def analyze_document_with_tqdm(
    document: Document,
    params: Optional[InspectionParams] = None,
    workers: int = 1,
    cancel: Optional[threading.Event] = None
) -> Report:
    """Analyze a document with a tqdm progress bar over its pages."""
    with tqdm(total=document.page_count, desc="Analyzing pages", unit="page") as bar:
        def _update(current: int, total: int) -> None:
            bar.update(current - bar.n)

        return analyze_document(document, params, workers, _update, cancel)


def analyze(
    source: Source,
    params: Optional[InspectionParams] = None,
    workers: int = 1,
    progress: bool = False,
    cancel: Optional[threading.Event] = None
) -> Report:
    """
    Load a PDF and analyze it.

    Args:
        source: Path to a PDF file, or the PDF's bytes
        params: Inspection parameters (defaults if None)
        workers: Number of worker processes for page analysis
        progress: Show a tqdm progress bar
        cancel: Event that stops scheduling further pages

    Returns:
        Report for the document

    Raises:
        UnreadableDocument, EncryptedDocument, LoadTimeout: loading failed
    """
    params = params or InspectionParams()
    render_dpi = params.dpi if params.pixel_check else None

    with load(source, params.password, params.load_timeout, render_dpi) as document:
        if progress:
            return analyze_document_with_tqdm(document, params, workers, cancel)
        return analyze_document(document, params, workers, cancel=cancel)


def inspect(source: Source, params: Optional[InspectionParams] = None) -> dict[int, list[dict]]:
    """
    Find bad redactions and return them keyed by 1-based page number.

    Only pages with leak-suspected findings appear. Each entry has the
    redaction's bbox and the text recovered from it.
    """
    return report_to_pages(analyze(source, params))
