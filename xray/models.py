"""
Data models for redaction inspection.

Defines the read-only page snapshot produced by the loader, the ephemeral
redaction candidates, and the immutable findings and report.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional

import numpy as np

from .geometry import BBox, area, union_area


class GraphicSource(Enum):
    """Where a graphic object came from in the PDF."""
    DRAWING = "drawing"
    REDACT_ANNOTATION = "redact-annotation"
    SQUARE_ANNOTATION = "square-annotation"
    POLYGON_ANNOTATION = "polygon-annotation"


class Classification(Enum):
    """Verdict for a single redaction candidate."""
    CLEAN = "clean"
    LEAK_SUSPECTED = "leak-suspected"


class PageStatus(Enum):
    """Whether a page's analysis ran to completion."""
    ANALYZED = "analyzed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class GraphicObject:
    """
    A filled vector shape on a page.

    Coordinates are in PDF points (72 per inch), origin top-left.
    """
    bbox: BBox
    fill: Optional[tuple[float, ...]]  # RGB on a 0-1 scale, None if unfilled
    fill_opacity: float
    z_order: int
    kind: str = "rect"  # "rect" or "polygon"
    source: GraphicSource = GraphicSource.DRAWING

    @property
    def width(self) -> float:
        return self.bbox[2] - self.bbox[0]

    @property
    def height(self) -> float:
        return self.bbox[3] - self.bbox[1]

    @property
    def area(self) -> float:
        return area(self.bbox)

    @property
    def is_redaction_mark(self) -> bool:
        """True for Redact annotations that were never applied."""
        return self.source is GraphicSource.REDACT_ANNOTATION


@dataclass(frozen=True)
class TextChar:
    """A single glyph with its exact bounding box."""
    char: str
    bbox: BBox


@dataclass(frozen=True)
class TextSpan:
    """A run of text painted by one text-showing operation."""
    text: str
    bbox: BBox
    chars: tuple[TextChar, ...]
    z_order: int
    font: str = ""
    size: float = 0.0
    visible: bool = True  # False for render mode 3 (e.g. OCR layers)

    @property
    def area(self) -> float:
        return area(self.bbox)


@dataclass(frozen=True)
class PageImage:
    """An image placement on a page."""
    ref: str  # stable reference, e.g. "xref:12" or "inline:3"
    bbox: BBox
    z_order: int
    xref: int = 0
    width_pixels: int = 0
    height_pixels: int = 0

    @property
    def area(self) -> float:
        return area(self.bbox)


@dataclass(frozen=True)
class Page:
    """
    Library-independent snapshot of one PDF page.

    Graphics, spans and images are each ordered by z_order; z_order values
    are unique across all three collections.
    """
    index: int  # 0-indexed
    width: float
    height: float
    graphics: tuple[GraphicObject, ...] = ()
    spans: tuple[TextSpan, ...] = ()
    images: tuple[PageImage, ...] = ()
    redaction_fills: tuple[tuple[float, ...], ...] = ()
    raster: Optional[np.ndarray] = field(default=None, compare=False, repr=False)
    raster_dpi: int = 0
    load_error: Optional[str] = None


@dataclass
class Document:
    """
    A loaded PDF: an ordered sequence of pages.

    The PDF library handle is already closed; close() releases page rasters.
    """
    source: str
    pages: list[Page] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)
    closed: bool = False

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def close(self) -> None:
        self.pages = []
        self.closed = True

    def __enter__(self) -> "Document":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


@dataclass(frozen=True)
class RedactionCandidate:
    """
    A region suspected of being a redaction mark.

    Holds the member graphic objects that were merged into it along with
    every span and image whose box intersects the region.
    """
    page_index: int
    bbox: BBox
    members: tuple[GraphicObject, ...]
    spans: tuple[TextSpan, ...] = ()
    images: tuple[PageImage, ...] = ()

    @property
    def z_order(self) -> int:
        return min(m.z_order for m in self.members)

    @property
    def opacity(self) -> float:
        return min(m.fill_opacity for m in self.members)

    @property
    def coverage_ratio(self) -> float:
        """Share of the candidate box actually painted by its members."""
        box_area = area(self.bbox)
        if box_area <= 0:
            return 0.0
        return min(1.0, union_area([m.bbox for m in self.members]) / box_area)

    @property
    def has_redaction_mark(self) -> bool:
        return any(m.is_redaction_mark for m in self.members)

    @property
    def source(self) -> str:
        sources = sorted({m.source.value for m in self.members})
        return "+".join(sources)


@dataclass(frozen=True)
class LeakedText:
    """What one text span gives away around a candidate."""
    span_text: str
    bbox: BBox
    coverage: float  # fraction of the span area under blocking members
    exposed_text: str  # glyphs visible outside the mark
    hidden_text: str  # glyphs under the mark but still in the content stream
    partial_glyphs: int  # glyphs cut by an edge of the mark
    leaking: bool

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = "text"
        data["bbox"] = list(self.bbox)
        return data


@dataclass(frozen=True)
class LeakedImage:
    """What one image gives away around a candidate."""
    ref: str
    bbox: BBox
    coverage: float
    exposed_area: float  # square points visible outside the mark
    leaking: bool

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = "image"
        data["bbox"] = list(self.bbox)
        return data


@dataclass(frozen=True)
class LeakSet:
    """Content related to one candidate, split into leaking and covered."""
    texts: tuple[LeakedText, ...] = ()
    images: tuple[LeakedImage, ...] = ()

    @property
    def leaking_texts(self) -> tuple[LeakedText, ...]:
        return tuple(t for t in self.texts if t.leaking)

    @property
    def leaking_images(self) -> tuple[LeakedImage, ...]:
        return tuple(i for i in self.images if i.leaking)

    @property
    def is_empty(self) -> bool:
        """True when nothing leaks (covered content may still be present)."""
        return not self.leaking_texts and not self.leaking_images

    @property
    def has_underlying_content(self) -> bool:
        return bool(self.texts or self.images)


@dataclass(frozen=True)
class Finding:
    """Classification result for one redaction candidate."""
    page_index: int
    bbox: BBox
    classification: Classification
    confidence: float
    leaked_text: str = ""
    recoverable_text: str = ""
    leaked_images: tuple[str, ...] = ()
    z_order: int = 0
    source: str = GraphicSource.DRAWING.value
    leaks: tuple = ()  # LeakedText / LeakedImage details for leaking items

    @property
    def is_leak(self) -> bool:
        return self.classification is Classification.LEAK_SUSPECTED

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "page_index": self.page_index,
            "bbox": [round(v, 3) for v in self.bbox],
            "classification": self.classification.value,
            "confidence": self.confidence,
            "leaked_text": self.leaked_text,
            "recoverable_text": self.recoverable_text,
            "leaked_images": list(self.leaked_images),
            "z_order": self.z_order,
            "source": self.source,
            "leaks": [leak.to_dict() for leak in self.leaks],
        }

    def to_csv_row(self) -> dict:
        """Convert to flat dictionary for CSV output."""
        return {
            "page_index": self.page_index,
            "status": PageStatus.ANALYZED.value,
            "bbox_x0": round(self.bbox[0], 3),
            "bbox_y0": round(self.bbox[1], 3),
            "bbox_x1": round(self.bbox[2], 3),
            "bbox_y1": round(self.bbox[3], 3),
            "classification": self.classification.value,
            "confidence": self.confidence,
            "leaked_text": self.leaked_text,
            "recoverable_text": self.recoverable_text,
            "leaked_images": ";".join(self.leaked_images),
            "z_order": self.z_order,
            "source": self.source,
            "error": "",
        }


@dataclass(frozen=True)
class PageReport:
    """Results from analyzing a single page."""
    page_index: int
    status: PageStatus = PageStatus.ANALYZED
    findings: tuple[Finding, ...] = ()
    error: Optional[str] = None

    @property
    def outcome(self) -> str:
        """One of clean, leak-suspected, failed or cancelled."""
        if self.status is not PageStatus.ANALYZED:
            return self.status.value
        if any(f.is_leak for f in self.findings):
            return Classification.LEAK_SUSPECTED.value
        return Classification.CLEAN.value


@dataclass(frozen=True)
class Report:
    """Immutable results for a whole document."""
    source: str
    page_count: int
    pages: tuple[PageReport, ...] = ()

    @property
    def findings(self) -> tuple[Finding, ...]:
        return tuple(f for page in self.pages for f in page.findings)

    @property
    def leaks(self) -> tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.is_leak)


@dataclass
class InspectionParams:
    """Parameters for redaction inspection."""
    opacity_threshold: float = 0.95  # Minimum fill opacity for a blocking shape
    dark_threshold: float = 0.15  # Maximum fill luminance (0-1) for "dark"
    color_tolerance: float = 0.05  # Per-channel match against declared redaction fills
    min_width: float = 2.0  # Points
    min_height: float = 2.0  # Points
    merge_overlap: float = 0.5  # Overlap share of the smaller region that forces a merge
    adjacency_tolerance: float = 1.0  # Points between abutting parts of one mark
    full_coverage: float = 0.98  # Coverage at which content counts as fully covered
    char_exposure: float = 0.5  # Visible share at which a glyph counts as exposed
    flag_hidden_content: bool = False  # Treat covered-but-present content as leaking
    pixel_check: bool = True  # Verify candidates against the rendered page
    dpi: int = 72  # Render DPI for pixel verification
    pixel_tolerance: int = 32  # Gray levels (0-255) around the expected fill
    min_block_fraction: float = 0.6  # Rendered share that must match the fill
    clean_confidence: float = 0.98
    leak_base_confidence: float = 0.5
    text_scale: float = 4.0  # Leaked characters per unit of evidence
    image_area_scale: float = 400.0  # Square points of image per unit of evidence
    load_timeout: Optional[float] = None  # Seconds
    password: Optional[str] = field(default=None, repr=False)

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("password", None)
        return data
