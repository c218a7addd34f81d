"""
Exception taxonomy for redaction inspection.

Loader failures (unreadable, encrypted, timed out) abort the whole run.
Page analysis failures are isolated to the page that raised them.
"""

from typing import Optional


class XRayError(Exception):
    """Base class for all inspection errors."""


class UnreadableDocument(XRayError):
    """Input is missing, empty, or not a valid PDF structure."""


class EncryptedDocument(XRayError):
    """Document needs a password that was not supplied (or was wrong)."""


class LoadTimeout(XRayError):
    """Document parsing did not finish within the configured timeout."""


class PageAnalysisError(XRayError):
    """Analysis of a single page failed; sibling pages are unaffected."""

    def __init__(self, page_index: int, message: str):
        super().__init__(f"page {page_index}: {message}")
        self.page_index = page_index
        self.reason = message

    def __reduce__(self):
        # Keep the exception picklable across worker processes
        return (self.__class__, (self.page_index, self.reason))


def describe(exc: BaseException, default: Optional[str] = None) -> str:
    """Return a one-line description of an exception."""
    text = str(exc).strip()
    if text:
        return f"{type(exc).__name__}: {text}"
    return default or type(exc).__name__
