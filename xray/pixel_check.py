"""
Rendered-pixel verification of redaction candidates.

A shape can be dark and opaque in the content stream yet not visibly block
anything, e.g. when a later white image or shape is painted over it. The
page is rendered once at load time and each candidate is checked against
the pixels:
1. Crop the candidate region from the grayscale raster
2. Keep pixels within a tolerance of the expected fill gray level
3. Compare the matching share against a minimum
"""

import cv2
import fitz
import numpy as np

from .geometry import BBox


def render_page_to_gray(page: fitz.Page, dpi: int = 72) -> np.ndarray:
    """
    Render a PyMuPDF page to a grayscale numpy array.

    Args:
        page: PyMuPDF page object
        dpi: Resolution for rendering

    Returns:
        2-D uint8 array, one value per pixel
    """
    # PyMuPDF renders at 72 DPI for a unit matrix
    zoom = dpi / 72.0
    pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)

    img = np.frombuffer(pix.samples, dtype=np.uint8).reshape(
        pix.height, pix.width, pix.n
    )

    if pix.n == 1:
        return img[:, :, 0].copy()
    if pix.n == 4:
        return cv2.cvtColor(img, cv2.COLOR_RGBA2GRAY)
    return cv2.cvtColor(img, cv2.COLOR_RGB2GRAY)


def points_to_pixels(
    bbox_points: BBox,
    dpi: int
) -> tuple[int, int, int, int]:
    """
    Convert PyMuPDF points to pixel coordinates.

    Both coordinate systems use a top-left origin, so only a scale applies.
    """
    x0, y0, x1, y1 = bbox_points
    scale = dpi / 72.0

    return (
        int(round(x0 * scale)),
        int(round(y0 * scale)),
        int(round(x1 * scale)),
        int(round(y1 * scale)),
    )


def luminance(color) -> float:
    """Luminance (0-1) of an RGB or grayscale color on a 0-1 scale."""
    if isinstance(color, (int, float)):
        return float(color)
    if len(color) >= 3:
        return 0.299 * color[0] + 0.587 * color[1] + 0.114 * color[2]
    if len(color) == 1:
        return float(color[0])
    return 1.0


def crop_region(raster: np.ndarray, bbox: BBox, dpi: int) -> np.ndarray:
    """Crop a box (in points) out of a rendered page, clamped to the page."""
    height, width = raster.shape[:2]
    x0, y0, x1, y1 = points_to_pixels(bbox, dpi)

    x0 = max(0, min(width, x0))
    x1 = max(0, min(width, x1))
    y0 = max(0, min(height, y0))
    y1 = max(0, min(height, y1))

    return raster[y0:y1, x0:x1]


def block_fraction(
    raster: np.ndarray,
    dpi: int,
    bbox: BBox,
    fill,
    tolerance: int = 32
) -> float:
    """
    Share of a region's rendered pixels that match the expected fill.

    Args:
        raster: Grayscale page render
        dpi: DPI the raster was rendered at
        bbox: Region in PDF points
        fill: Expected fill color (0-1 scale)
        tolerance: Allowed gray-level deviation (0-255)

    Returns:
        Fraction between 0 and 1; 0 for regions outside the raster
    """
    region = crop_region(raster, bbox, dpi)
    if region.size == 0:
        return 0.0

    expected = int(round(luminance(fill) * 255))
    lower = max(0, expected - tolerance)
    upper = min(255, expected + tolerance)

    mask = cv2.inRange(region, lower, upper)
    return cv2.countNonZero(mask) / float(region.size)
