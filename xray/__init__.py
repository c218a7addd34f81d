"""
X-Ray - a tool for finding bad redactions in PDF documents.

Detects opaque redaction marks, recovers the text and images that escape
or sit beneath them, and classifies each mark as clean or leak-suspected.
"""

__version__ = "0.1.0"

from .errors import (  # noqa: E402
    XRayError, UnreadableDocument, EncryptedDocument, LoadTimeout, PageAnalysisError
)
from .models import (  # noqa: E402
    Classification, Document, Finding, InspectionParams, Page, PageReport,
    PageStatus, Report
)
from .pdf_loader import load  # noqa: E402
from .parallel import analyze, analyze_document, analyze_page, inspect  # noqa: E402

__all__ = [
    "__version__",
    "XRayError",
    "UnreadableDocument",
    "EncryptedDocument",
    "LoadTimeout",
    "PageAnalysisError",
    "Classification",
    "Document",
    "Finding",
    "InspectionParams",
    "Page",
    "PageReport",
    "PageStatus",
    "Report",
    "load",
    "analyze",
    "analyze_document",
    "analyze_page",
    "inspect",
]
