"""
Report assembly.

Page results may arrive in any order (workers finish when they finish);
the report always lists pages in page order and findings in discovery
order.
"""

import logging
from typing import Iterable, Union

from .candidate_detector import discovery_key
from .models import Document, PageReport, PageStatus, Report


logger = logging.getLogger(__name__)


def build(
    document: Document,
    page_reports: Union[Iterable[PageReport], dict[int, PageReport]]
) -> Report:
    """
    Build the immutable report for a document.

    Args:
        document: The analyzed document
        page_reports: Per-page results, as an iterable or keyed by page index

    Returns:
        Report with exactly one PageReport per document page
    """
    if isinstance(page_reports, dict):
        page_reports = page_reports.values()

    by_index: dict[int, PageReport] = {}
    for page_report in page_reports:
        if page_report.page_index in by_index:
            logger.warning(f"Duplicate result for page {page_report.page_index}, keeping the first")
            continue
        by_index[page_report.page_index] = page_report

    pages = []
    for page in document.pages:
        page_report = by_index.get(page.index)
        if page_report is None:
            # Never drop a page silently
            page_report = PageReport(
                page_index=page.index,
                status=PageStatus.FAILED,
                error="No analysis result",
            )
        else:
            findings = tuple(sorted(
                page_report.findings,
                key=lambda f: discovery_key(f.bbox, f.z_order)
            ))
            page_report = PageReport(
                page_index=page_report.page_index,
                status=page_report.status,
                findings=findings,
                error=page_report.error,
            )
        pages.append(page_report)

    return Report(
        source=document.source,
        page_count=document.page_count,
        pages=tuple(pages),
    )
