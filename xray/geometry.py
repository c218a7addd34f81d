"""
Bounding box arithmetic.

Boxes are (x0, y0, x1, y1) tuples in PDF points with a top-left origin,
the same convention PyMuPDF uses.
"""

from typing import Optional


BBox = tuple[float, float, float, float]


def area(bbox: BBox) -> float:
    """Area of a box, zero for empty or inverted boxes."""
    width = bbox[2] - bbox[0]
    height = bbox[3] - bbox[1]
    if width <= 0 or height <= 0:
        return 0.0
    return width * height


def intersection(bbox1: BBox, bbox2: BBox) -> Optional[BBox]:
    """Intersection box of two boxes, or None if they do not overlap."""
    x0 = max(bbox1[0], bbox2[0])
    y0 = max(bbox1[1], bbox2[1])
    x1 = min(bbox1[2], bbox2[2])
    y1 = min(bbox1[3], bbox2[3])

    if x1 <= x0 or y1 <= y0:
        return None

    return (x0, y0, x1, y1)


def intersection_area(bbox1: BBox, bbox2: BBox) -> float:
    overlap = intersection(bbox1, bbox2)
    return area(overlap) if overlap is not None else 0.0


def union_bbox(bboxes: list[BBox]) -> BBox:
    """Smallest box containing every box in the list."""
    return (
        min(b[0] for b in bboxes),
        min(b[1] for b in bboxes),
        max(b[2] for b in bboxes),
        max(b[3] for b in bboxes),
    )


def union_area(bboxes: list[BBox]) -> float:
    """
    Exact area covered by the union of a list of boxes.

    Uses coordinate compression, which is plenty for the handful of boxes
    that make up a single redaction mark.
    """
    boxes = [b for b in bboxes if area(b) > 0]
    if not boxes:
        return 0.0
    if len(boxes) == 1:
        return area(boxes[0])

    xs = sorted({b[0] for b in boxes} | {b[2] for b in boxes})
    ys = sorted({b[1] for b in boxes} | {b[3] for b in boxes})

    total = 0.0
    for i in range(len(xs) - 1):
        for j in range(len(ys) - 1):
            cx = (xs[i] + xs[i + 1]) / 2
            cy = (ys[j] + ys[j + 1]) / 2
            if any(b[0] <= cx < b[2] and b[1] <= cy < b[3] for b in boxes):
                total += (xs[i + 1] - xs[i]) * (ys[j + 1] - ys[j])
    return total


def covered_fraction(bbox: BBox, blockers: list[BBox]) -> float:
    """
    Fraction of a box's area covered by the union of blocking boxes.

    Degenerate (zero-area) boxes count as covered when they lie inside a
    blocker, which happens for whitespace glyphs with no width.
    """
    box_area = area(bbox)
    if box_area <= 0:
        for b in blockers:
            if b[0] <= bbox[0] and bbox[2] <= b[2] and b[1] <= bbox[1] and bbox[3] <= b[3]:
                return 1.0
        return 0.0

    clipped = [c for c in (intersection(bbox, b) for b in blockers) if c is not None]
    if not clipped:
        return 0.0
    return min(1.0, union_area(clipped) / box_area)


def axis_gap(a0: float, a1: float, b0: float, b1: float) -> float:
    """
    Gap between two intervals on one axis.

    Positive when the intervals are separated, negative (minus the overlap
    length) when they overlap.
    """
    return max(a0, b0) - min(a1, b1)

