"""
Underlying-content extraction for redaction candidates.

For every text span and image that touches a candidate, works out how much
of it is hidden by the candidate's members and what escapes:
- Only members painted after an item can hide it; content painted on top
  of the mark is never leaked
- Text is scored per glyph, so fragments of partly covered characters are
  counted even when no whole character escapes
"""

from typing import Optional

from .geometry import covered_fraction
from .models import (
    InspectionParams, LeakedImage, LeakedText, LeakSet, Page, PageImage,
    RedactionCandidate, TextSpan
)


def blocking_boxes(candidate: RedactionCandidate, z_order: int) -> list:
    """Boxes of the candidate's members painted after the given z_order."""
    return [m.bbox for m in candidate.members if m.z_order > z_order]


def analyze_span(
    span: TextSpan,
    candidate: RedactionCandidate,
    params: InspectionParams
) -> Optional[LeakedText]:
    """
    Work out what a text span gives away around a candidate.

    Returns:
        LeakedText, or None when the span is painted above the mark or
        does not overlap any member painted after it
    """
    blockers = blocking_boxes(candidate, span.z_order)
    if not blockers:
        return None

    coverage = covered_fraction(span.bbox, blockers)
    if coverage <= 0:
        return None

    exposed, hidden = [], []
    partial = 0
    for char in span.chars:
        char_coverage = covered_fraction(char.bbox, blockers)
        if char_coverage > 1 - params.char_exposure:
            hidden.append(char.char)
        else:
            exposed.append(char.char)
        if 0 < char_coverage < params.full_coverage:
            partial += 1

    fully_covered = coverage >= params.full_coverage
    if fully_covered:
        # Glyph boxes can poke out by rounding; a covered span exposes nothing
        hidden = [c.char for c in span.chars]
        exposed = []
        partial = 0
        leaking = params.flag_hidden_content or candidate.has_redaction_mark
    else:
        leaking = True

    return LeakedText(
        span_text=span.text,
        bbox=span.bbox,
        coverage=round(coverage, 4),
        exposed_text="".join(exposed),
        hidden_text="".join(hidden),
        partial_glyphs=partial,
        leaking=leaking,
    )


def analyze_image(
    image: PageImage,
    candidate: RedactionCandidate,
    params: InspectionParams
) -> Optional[LeakedImage]:
    """Work out what an image gives away around a candidate."""
    blockers = blocking_boxes(candidate, image.z_order)
    if not blockers:
        return None

    coverage = covered_fraction(image.bbox, blockers)
    if coverage <= 0:
        return None

    if coverage >= params.full_coverage:
        return LeakedImage(
            ref=image.ref,
            bbox=image.bbox,
            coverage=round(coverage, 4),
            exposed_area=0.0,
            leaking=params.flag_hidden_content or candidate.has_redaction_mark,
        )

    return LeakedImage(
        ref=image.ref,
        bbox=image.bbox,
        coverage=round(coverage, 4),
        exposed_area=round(image.area * (1 - coverage), 3),
        leaking=True,
    )


def extract_underlying(
    page: Page,
    candidate: RedactionCandidate,
    params: Optional[InspectionParams] = None
) -> LeakSet:
    """
    Collect the content beneath or around a candidate.

    Args:
        page: Page snapshot the candidate was found on
        candidate: Redaction candidate
        params: Inspection parameters (defaults if None)

    Returns:
        LeakSet with one entry per related span/image, in paint order;
        entries are flagged leaking or merely covered
    """
    params = params or InspectionParams()

    # The candidate already lists intersecting content; fall back to the page
    spans = candidate.spans or page.spans
    images = candidate.images or page.images

    texts = []
    for span in spans:
        result = analyze_span(span, candidate, params)
        if result is not None:
            texts.append(result)

    leaked_images = []
    for image in images:
        result = analyze_image(image, candidate, params)
        if result is not None:
            leaked_images.append(result)

    return LeakSet(texts=tuple(texts), images=tuple(leaked_images))
