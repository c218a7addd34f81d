"""
Output generation for inspection reports.

Serializes a Report as:
- json: full structured report (schema version 1)
- csv: one row per finding, plus one marker row per failed/cancelled page
- pages: compact mapping of 1-based page number to leaked redactions
"""

import csv
import io
import json
from pathlib import Path
from statistics import mean, median
from typing import Any, Optional

from .models import Finding, InspectionParams, PageStatus, Report


SCHEMA_VERSION = 1

FORMATS = ("json", "csv", "pages")

CSV_FIELDS = [
    "page_index",
    "status",
    "bbox_x0",
    "bbox_y0",
    "bbox_x1",
    "bbox_y1",
    "classification",
    "confidence",
    "leaked_text",
    "recoverable_text",
    "leaked_images",
    "z_order",
    "source",
    "error",
]


def calculate_distribution_stats(values: list[float]) -> dict[str, Any]:
    """
    Calculate distribution statistics for a list of values.

    Args:
        values: List of numeric values

    Returns:
        Dictionary with distribution statistics
    """
    if not values:
        return {
            "count": 0,
            "mean": 0,
            "median": 0,
            "min": 0,
            "max": 0,
        }

    return {
        "count": len(values),
        "mean": round(mean(values), 4),
        "median": round(median(values), 4),
        "min": min(values),
        "max": max(values),
    }


def summarize(report: Report) -> dict:
    """Aggregate statistics for a report."""
    findings = report.findings
    leaks = report.leaks
    statuses = [p.status for p in report.pages]

    return {
        "page_count": report.page_count,
        "pages_analyzed": statuses.count(PageStatus.ANALYZED),
        "pages_failed": statuses.count(PageStatus.FAILED),
        "pages_cancelled": statuses.count(PageStatus.CANCELLED),
        "pages_with_leaks": sum(1 for p in report.pages if p.outcome == "leak-suspected"),
        "total_candidates": len(findings),
        "total_leaks": len(leaks),
        "leaked_characters": sum(
            len(f.leaked_text.replace(" ", "")) for f in leaks
        ),
        "leak_confidence": calculate_distribution_stats([f.confidence for f in leaks]),
    }


def report_to_dict(report: Report, params: Optional[InspectionParams] = None) -> dict:
    """
    Convert a report to the documented JSON structure.

    The output only depends on the report (and params), never on wall-clock
    time, so identical inputs serialize identically.
    """
    data = {
        "schema_version": SCHEMA_VERSION,
        "source": report.source,
        "page_count": report.page_count,
        "summary": summarize(report),
        "pages": [
            {
                "page_index": page.page_index,
                "status": page.status.value,
                "outcome": page.outcome,
                "error": page.error,
                "findings": [f.to_dict() for f in page.findings],
            }
            for page in report.pages
        ],
    }
    if params is not None:
        data["parameters"] = params.to_dict()
    return data


def report_to_pages(report: Report) -> dict[int, list[dict]]:
    """
    Compact view: leak-suspected findings keyed by 1-based page number.

    Each entry holds the redaction bbox and the text recovered from it;
    text hidden under the mark is preferred over text escaping its edges.
    """
    pages: dict[int, list[dict]] = {}
    for finding in report.leaks:
        pages.setdefault(finding.page_index + 1, []).append({
            "bbox": tuple(round(v, 3) for v in finding.bbox),
            "text": finding.recoverable_text or finding.leaked_text,
        })
    return pages


def _marker_row(page_index: int, status: PageStatus, error: Optional[str]) -> dict:
    row = {name: "" for name in CSV_FIELDS}
    row["page_index"] = page_index
    row["status"] = status.value
    row["error"] = error or ""
    return row


def report_to_rows(report: Report) -> list[dict]:
    """Flatten a report into CSV rows in report order."""
    rows = []
    for page in report.pages:
        if page.status is not PageStatus.ANALYZED:
            rows.append(_marker_row(page.page_index, page.status, page.error))
            continue
        rows.extend(f.to_csv_row() for f in page.findings)
    return rows


def render(report: Report, fmt: str = "json", params: Optional[InspectionParams] = None) -> str:
    """
    Render a report in one of the supported formats.

    Args:
        report: Report to render
        fmt: "json", "csv" or "pages"
        params: Inspection parameters to embed (json only)

    Returns:
        The rendered text
    """
    if fmt == "json":
        return json.dumps(report_to_dict(report, params), indent=2, ensure_ascii=False)

    if fmt == "pages":
        pages = {str(k): v for k, v in report_to_pages(report).items()}
        return json.dumps(pages, indent=2, ensure_ascii=False)

    if fmt == "csv":
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for row in report_to_rows(report):
            writer.writerow(row)
        return buffer.getvalue()

    raise ValueError(f"Unknown output format: {fmt}")


def write_report(
    report: Report,
    output_path: Path,
    fmt: str = "json",
    params: Optional[InspectionParams] = None
) -> Path:
    """
    Write a report to a file.

    Args:
        report: Report to write
        output_path: Destination file
        fmt: "json", "csv" or "pages"
        params: Inspection parameters to embed (json only)

    Returns:
        The path written
    """
    text = render(report, fmt, params)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    newline = "" if fmt == "csv" else None
    with open(output_path, "w", encoding="utf-8", newline=newline) as f:
        f.write(text)

    return output_path


def finding_line(finding: Finding) -> str:
    """One-line human description of a finding."""
    x0, y0, x1, y1 = finding.bbox
    line = (
        f"page {finding.page_index + 1} "
        f"[{x0:.1f}, {y0:.1f}, {x1:.1f}, {y1:.1f}] "
        f"{finding.classification.value} ({finding.confidence:.2f})"
    )
    if finding.leaked_text:
        line += f" leaked: {finding.leaked_text!r}"
    if finding.recoverable_text and finding.is_leak:
        line += f" under mark: {finding.recoverable_text!r}"
    if finding.leaked_images:
        line += f" images: {', '.join(finding.leaked_images)}"
    return line
