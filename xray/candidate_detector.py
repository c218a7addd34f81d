"""
Redaction candidate detection.

Finds opaque blocking shapes on a page and merges the parts of multi-part
marks into single candidate regions:
- Filter graphic objects by opacity, fill color and size
- Merge overlapping or abutting regions until nothing changes
- Drop regions whose rendered pixels do not show the fill
"""

import logging
from typing import Optional

from .geometry import BBox, area, axis_gap, intersection_area, union_bbox
from .models import GraphicObject, InspectionParams, Page, RedactionCandidate
from .pixel_check import block_fraction, luminance


logger = logging.getLogger(__name__)


def is_dark_color(color: Optional[tuple], threshold: float = 0.15) -> bool:
    """
    Check if a color is dark enough to be a potential redaction.

    Args:
        color: RGB tuple (0-1 scale) or None
        threshold: Maximum luminance considered dark

    Returns:
        True if color is dark (close to black)
    """
    if color is None:
        return False
    return luminance(color) < threshold


def matches_declared_fill(
    color: Optional[tuple],
    declared: tuple[tuple[float, ...], ...],
    tolerance: float = 0.05
) -> bool:
    """Check a fill against the colors the page's Redact annotations use."""
    if color is None:
        return False
    for fill in declared:
        if len(fill) == len(color) and all(abs(a - b) <= tolerance for a, b in zip(fill, color)):
            return True
    return False


def is_blocking(obj: GraphicObject, page: Page, params: InspectionParams) -> bool:
    """Decide whether a graphic object can act as a redaction mark."""
    if obj.is_redaction_mark:
        return True

    if obj.fill_opacity < params.opacity_threshold:
        # Translucent fills are highlights, not redactions
        return False

    if obj.width < params.min_width or obj.height < params.min_height:
        return False

    return (
        is_dark_color(obj.fill, params.dark_threshold)
        or matches_declared_fill(obj.fill, page.redaction_fills, params.color_tolerance)
    )


def should_merge(bbox1: BBox, bbox2: BBox, params: InspectionParams) -> bool:
    """
    Decide whether two regions belong to the same redaction mark.

    Regions merge when they overlap by more than merge_overlap of the
    smaller region's area, or when they abut along one axis (within
    adjacency_tolerance) while sharing more than merge_overlap of the
    shorter extent on the other axis.
    """
    smaller = min(area(bbox1), area(bbox2))
    if smaller <= 0:
        return False

    if intersection_area(bbox1, bbox2) > params.merge_overlap * smaller:
        return True

    x_gap = axis_gap(bbox1[0], bbox1[2], bbox2[0], bbox2[2])
    y_gap = axis_gap(bbox1[1], bbox1[3], bbox2[1], bbox2[3])
    tolerance = params.adjacency_tolerance

    # Side by side: touching horizontally, sharing a vertical band
    if abs(x_gap) <= tolerance and y_gap < 0:
        shorter = min(bbox1[3] - bbox1[1], bbox2[3] - bbox2[1])
        if -y_gap > params.merge_overlap * shorter:
            return True

    # Stacked: touching vertically, sharing a horizontal band
    if abs(y_gap) <= tolerance and x_gap < 0:
        shorter = min(bbox1[2] - bbox1[0], bbox2[2] - bbox2[0])
        if -x_gap > params.merge_overlap * shorter:
            return True

    return False


def merge_regions(
    objects: list[GraphicObject],
    params: InspectionParams
) -> list[list[GraphicObject]]:
    """
    Group blocking objects into regions, merging until no pair qualifies.

    Args:
        objects: Blocking graphic objects in paint order
        params: Inspection parameters

    Returns:
        List of member groups, each in paint order
    """
    regions = [[obj] for obj in objects]

    while True:
        merged = _merge_pass(regions, params)
        if len(merged) == len(regions):
            return regions
        regions = merged


def _merge_pass(
    regions: list[list[GraphicObject]],
    params: InspectionParams
) -> list[list[GraphicObject]]:
    """
    One sweep over regions sorted by left edge, joining every qualifying pair.

    A region whose right edge (plus the adjacency tolerance) lies left of
    the current left edge can no longer merge with anything later.
    """
    boxes = [union_bbox([m.bbox for m in region]) for region in regions]
    parent = list(range(len(regions)))

    def _root(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    active: list[int] = []
    for i in sorted(range(len(boxes)), key=lambda k: boxes[k][0]):
        x0 = boxes[i][0]
        active = [j for j in active if boxes[j][2] + params.adjacency_tolerance >= x0]
        for j in active:
            if should_merge(boxes[i], boxes[j], params):
                root_i, root_j = _root(i), _root(j)
                if root_i != root_j:
                    parent[max(root_i, root_j)] = min(root_i, root_j)
        active.append(i)

    groups: dict[int, list[GraphicObject]] = {}
    for i, region in enumerate(regions):
        groups.setdefault(_root(i), []).extend(region)

    # Roots are the lowest index in each group, so regions keep their order
    return [sorted(groups[root], key=lambda m: m.z_order) for root in sorted(groups)]


def discovery_key(bbox: BBox, z_order: int) -> tuple:
    """Sort key: top-to-bottom, then left-to-right, ties by paint order."""
    return (round(bbox[1], 3), round(bbox[0], 3), z_order)


def passes_pixel_check(
    page: Page,
    members: list[GraphicObject],
    bbox: BBox,
    params: InspectionParams
) -> bool:
    """Check that the rendered page actually shows the mark's fill."""
    if not params.pixel_check or page.raster is None:
        return True
    if any(m.is_redaction_mark for m in members):
        # Unapplied Redact annotations only render as outlines
        return True

    fill = max(members, key=lambda m: m.area).fill
    fraction = block_fraction(page.raster, page.raster_dpi, bbox, fill, params.pixel_tolerance)
    # Gaps between members of a merged mark are not painted at all
    painted = sum(m.area for m in members) / area(bbox) if area(bbox) > 0 else 0.0
    required = params.min_block_fraction * min(1.0, painted)

    if fraction < required:
        logger.debug(
            f"Page {page.index}: dropping candidate at {bbox}, "
            f"only {fraction:.2f} of pixels match its fill"
        )
        return False
    return True


def find_candidates(
    page: Page,
    params: Optional[InspectionParams] = None
) -> list[RedactionCandidate]:
    """
    Find redaction candidates on a page.

    Args:
        page: Page snapshot
        params: Inspection parameters (defaults if None)

    Returns:
        Candidates in discovery order, each carrying the spans and images
        that intersect it
    """
    params = params or InspectionParams()

    blocking = [obj for obj in page.graphics if is_blocking(obj, page, params)]
    if not blocking:
        return []

    candidates = []
    for members in merge_regions(blocking, params):
        bbox = union_bbox([m.bbox for m in members])

        if not passes_pixel_check(page, members, bbox, params):
            continue

        candidates.append(RedactionCandidate(
            page_index=page.index,
            bbox=bbox,
            members=tuple(members),
            spans=tuple(s for s in page.spans if intersection_area(s.bbox, bbox) > 0),
            images=tuple(i for i in page.images if intersection_area(i.bbox, bbox) > 0),
        ))

    candidates.sort(key=lambda c: discovery_key(c.bbox, c.z_order))
    return candidates
