"""
Bad-redaction classification.

Turns a candidate and the content found around it into a Finding. The
confidence of a leak grows with the amount of evidence (leaked characters,
cut glyphs and exposed image area) and saturates at 1.0.
"""

import math
from typing import Optional

from .models import (
    Classification, Finding, InspectionParams, LeakSet, RedactionCandidate
)


def _text_length(text: str) -> int:
    return sum(1 for c in text if not c.isspace())


def leak_weight(leaks: LeakSet, params: InspectionParams) -> float:
    """Amount of leaked evidence, in units of text_scale characters."""
    weight = 0.0

    for text in leaks.leaking_texts:
        weight += _text_length(text.exposed_text) / params.text_scale
        weight += text.partial_glyphs / (4 * params.text_scale)
        if not text.exposed_text and not text.partial_glyphs:
            # Fully covered but still in the content stream
            weight += _text_length(text.hidden_text) / params.text_scale

    for image in leaks.leaking_images:
        exposed = image.exposed_area
        if exposed <= 0:
            exposed = (image.bbox[2] - image.bbox[0]) * (image.bbox[3] - image.bbox[1])
        weight += exposed / params.image_area_scale

    return weight


def leak_confidence(weight: float, params: InspectionParams) -> float:
    """Map evidence weight onto a confidence in [base, 1.0]."""
    base = params.leak_base_confidence
    confidence = base + (1 - base) * (1 - math.exp(-weight))
    return round(min(1.0, confidence), 4)


def _join(pieces: list[str]) -> str:
    return " ".join(p.strip() for p in pieces if p.strip())


def classify(
    candidate: RedactionCandidate,
    leaks: LeakSet,
    params: Optional[InspectionParams] = None
) -> Finding:
    """
    Classify a redaction candidate.

    Args:
        candidate: Redaction candidate
        leaks: Content found beneath or around the candidate
        params: Inspection parameters (defaults if None)

    Returns:
        Finding marked clean or leak-suspected
    """
    params = params or InspectionParams()

    recoverable_text = _join([t.hidden_text for t in leaks.texts])

    if leaks.is_empty:
        confidence = params.clean_confidence if leaks.has_underlying_content else 1.0
        return Finding(
            page_index=candidate.page_index,
            bbox=candidate.bbox,
            classification=Classification.CLEAN,
            confidence=confidence,
            recoverable_text=recoverable_text,
            z_order=candidate.z_order,
            source=candidate.source,
        )

    leaking_texts = leaks.leaking_texts
    leaking_images = leaks.leaking_images

    return Finding(
        page_index=candidate.page_index,
        bbox=candidate.bbox,
        classification=Classification.LEAK_SUSPECTED,
        confidence=leak_confidence(leak_weight(leaks, params), params),
        leaked_text=_join([t.exposed_text for t in leaking_texts]),
        recoverable_text=recoverable_text,
        leaked_images=tuple(i.ref for i in leaking_images),
        z_order=candidate.z_order,
        source=candidate.source,
        leaks=leaking_texts + leaking_images,
    )
