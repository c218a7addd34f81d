"""
PyMuPDF-based document loading.

Opens a PDF and maps PyMuPDF's dict-shaped page content onto the typed
snapshot in models.py:
- Drawing commands (filled rectangles, quads and other closed paths)
- Redact, Square and Polygon annotations (painted after page content)
- Text trace spans with per-glyph bounding boxes
- Image placements with native pixel sizes

The snapshot holds no PyMuPDF objects, so pages can be analyzed on any
worker once load() returns.
"""

import logging
import multiprocessing
import threading
from pathlib import Path
from typing import Optional, Union

import fitz

from .errors import EncryptedDocument, LoadTimeout, UnreadableDocument, describe
from .models import (
    Document, Page, GraphicObject, GraphicSource, TextChar, TextSpan, PageImage
)
from .pixel_check import render_page_to_gray


logger = logging.getLogger(__name__)

Source = Union[str, Path, bytes, bytearray, memoryview]

# PyMuPDF keeps global context state; never touch it from two threads at once.
_FITZ_LOCK = threading.Lock()

# Text trace types that actually paint glyphs (0 = fill, 1 = stroke)
_PAINTED_TEXT_TYPES = (0, 1)

# Annotations are drawn after all page content
_ANNOT_SOURCES = {
    fitz.PDF_ANNOT_REDACT: GraphicSource.REDACT_ANNOTATION,
    fitz.PDF_ANNOT_SQUARE: GraphicSource.SQUARE_ANNOTATION,
    fitz.PDF_ANNOT_POLYGON: GraphicSource.POLYGON_ANNOTATION,
}


def to_rgb(color) -> Optional[tuple[float, float, float]]:
    """
    Normalize a PyMuPDF color to an RGB tuple (0-1 scale).

    PyMuPDF reports gray as one value, RGB as three and CMYK as four.
    """
    if color is None:
        return None
    if isinstance(color, (int, float)):
        return (float(color),) * 3
    if len(color) == 0:
        return None
    if len(color) == 1:
        return (float(color[0]),) * 3
    if len(color) == 3:
        return (float(color[0]), float(color[1]), float(color[2]))
    if len(color) == 4:
        c, m, y, k = (float(v) for v in color)
        return ((1 - c) * (1 - k), (1 - m) * (1 - k), (1 - y) * (1 - k))
    return None


def _bbox(rect) -> tuple[float, float, float, float]:
    rect = fitz.Rect(rect)
    return (float(rect.x0), float(rect.y0), float(rect.x1), float(rect.y1))


def _drawing_shapes(drawing: dict) -> list[tuple[str, tuple]]:
    """
    Split a filled path into the shapes it paints.

    A path made only of rectangles/quads is split into one shape per part,
    since redaction tools often emit several bars in a single path.
    """
    items = drawing.get("items") or []
    if items and all(item[0] in ("re", "qu") for item in items):
        shapes = []
        for item in items:
            if item[0] == "re":
                shapes.append(("rect", _bbox(item[1])))
            else:
                quad = item[1]
                kind = "rect" if quad.is_rectangular else "polygon"
                shapes.append((kind, _bbox(quad.rect)))
        return shapes

    rect = drawing.get("rect")
    if rect is None:
        return []
    return [("polygon", _bbox(rect))]


def _collect_drawings(page: fitz.Page) -> list[tuple[float, int, dict]]:
    entries = []
    for drawing in page.get_drawings():
        fill = to_rgb(drawing.get("fill"))
        if fill is None:
            continue

        opacity = drawing.get("fill_opacity")
        opacity = 1.0 if opacity is None else float(opacity)

        for part, (kind, bbox) in enumerate(_drawing_shapes(drawing)):
            entries.append((float(drawing.get("seqno", 0)), part, {
                "type": "graphic",
                "bbox": bbox,
                "fill": fill,
                "fill_opacity": opacity,
                "kind": kind,
                "source": GraphicSource.DRAWING,
            }))
    return entries


def _collect_text(page: fitz.Page) -> list[tuple[float, int, dict]]:
    entries = []
    for span in page.get_texttrace():
        chars = []
        for char in span.get("chars", ()):
            ucs, _gid, _origin, char_bbox = char[:4]
            chars.append(TextChar(char=chr(ucs), bbox=_bbox(char_bbox)))
        if not chars:
            continue

        span_type = span.get("type", 0)
        opacity = span.get("opacity", 1.0)
        entries.append((float(span.get("seqno", 0)), 0, {
            "type": "text",
            "text": "".join(c.char for c in chars),
            "bbox": _bbox(span["bbox"]),
            "chars": tuple(chars),
            "font": span.get("font", "") or "",
            "size": float(span.get("size", 0.0) or 0.0),
            "visible": span_type in _PAINTED_TEXT_TYPES and opacity > 0,
        }))
    return entries


def _close_enough(a: tuple, b: tuple, tolerance: float = 1.0) -> bool:
    return all(abs(x - y) <= tolerance for x, y in zip(a, b))


def _collect_images(page: fitz.Page) -> list[tuple[float, int, dict]]:
    """
    Collect image placements.

    get_image_info() carries no sequence number, so each placement is
    matched to a "fill-image" entry of the page's paint-order box log.
    """
    log = [
        (index, _bbox(rect))
        for index, (kind, rect) in enumerate(page.get_bboxlog())
        if kind == "fill-image"
    ]
    used = set()
    seen_refs: dict[str, int] = {}
    entries = []

    for info in page.get_image_info(xrefs=True):
        bbox = _bbox(info["bbox"])

        seq = -1
        for index, logged in log:
            if index not in used and _close_enough(bbox, logged):
                seq = index
                used.add(index)
                break
        else:
            # Unknown paint position: assume the image was painted first
            logger.debug(f"No paint-order entry for image at {bbox}")

        xref = int(info.get("xref") or 0)
        ref = f"xref:{xref}" if xref > 0 else f"inline:{info.get('number', len(entries))}"
        count = seen_refs.get(ref, 0)
        seen_refs[ref] = count + 1
        if count:
            ref = f"{ref}#{count}"

        entries.append((float(seq), 0, {
            "type": "image",
            "ref": ref,
            "bbox": bbox,
            "xref": xref,
            "width_pixels": int(info.get("width") or 0),
            "height_pixels": int(info.get("height") or 0),
        }))
    return entries


def _collect_annotations(page: fitz.Page, after: float) -> tuple[list, list]:
    """
    Collect blocking annotations and declared redaction fill colors.

    Args:
        page: PyMuPDF page object
        after: Sequence number to place annotations after

    Returns:
        Tuple of (entries, redaction_fills)
    """
    entries = []
    redaction_fills = []

    for index, annot in enumerate(page.annots() or []):
        annot_type = annot.type[0]
        source = _ANNOT_SOURCES.get(annot_type)
        if source is None:
            continue

        colors = annot.colors or {}
        fill = to_rgb(colors.get("fill"))
        opacity = annot.opacity
        opacity = 1.0 if opacity is None or opacity < 0 else float(opacity)

        if source is GraphicSource.REDACT_ANNOTATION:
            if fill is not None:
                redaction_fills.append(fill)
            # Redact marks block regardless of how they look before being applied
            fill = fill or (0.0, 0.0, 0.0)
            opacity = 1.0
        elif fill is None:
            continue

        entries.append((after + 1 + index, 0, {
            "type": "graphic",
            "bbox": _bbox(annot.rect),
            "fill": fill,
            "fill_opacity": opacity,
            "kind": "polygon" if source is GraphicSource.POLYGON_ANNOTATION else "rect",
            "source": source,
        }))

    return entries, redaction_fills


def snapshot_page(page: fitz.Page, index: int, render_dpi: Optional[int] = None) -> Page:
    """
    Build a typed snapshot of one page.

    Every drawn item gets a unique z_order that follows paint order.
    """
    entries = []
    entries.extend(_collect_drawings(page))
    entries.extend(_collect_text(page))
    entries.extend(_collect_images(page))

    last_seq = max((e[0] for e in entries), default=0.0)
    annot_entries, redaction_fills = _collect_annotations(page, last_seq)
    entries.extend(annot_entries)

    # Stable sort keeps collection order for equal sequence numbers
    entries.sort(key=lambda e: (e[0], e[1]))

    graphics, spans, images = [], [], []
    for z_order, (_seq, _part, item) in enumerate(entries):
        item_type = item.pop("type")
        if item_type == "graphic":
            graphics.append(GraphicObject(z_order=z_order, **item))
        elif item_type == "text":
            spans.append(TextSpan(z_order=z_order, **item))
        else:
            images.append(PageImage(z_order=z_order, **item))

    raster = None
    if render_dpi:
        raster = render_page_to_gray(page, render_dpi)

    return Page(
        index=index,
        width=float(page.rect.width),
        height=float(page.rect.height),
        graphics=tuple(graphics),
        spans=tuple(spans),
        images=tuple(images),
        redaction_fills=tuple(redaction_fills),
        raster=raster,
        raster_dpi=render_dpi or 0,
    )


def _source_name(source: Source) -> str:
    if isinstance(source, (str, Path)):
        return str(source)
    return "<bytes>"


def _open(source: Source) -> fitz.Document:
    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.is_file():
            raise UnreadableDocument(f"File not found: {path}")
        if path.stat().st_size == 0:
            raise UnreadableDocument(f"File is empty: {path}")
        return fitz.open(str(path), filetype="pdf")

    data = bytes(source)
    if not data:
        raise UnreadableDocument("Input is empty")
    return fitz.open(stream=data, filetype="pdf")


def _load(source: Source, password: Optional[str], render_dpi: Optional[int]) -> Document:
    name = _source_name(source)

    with _FITZ_LOCK:
        try:
            doc = _open(source)
        except UnreadableDocument:
            raise
        except (RuntimeError, ValueError, OSError) as e:
            raise UnreadableDocument(f"Cannot open {name}: {e}") from e

        try:
            if not doc.is_pdf:
                raise UnreadableDocument(f"{name} is not a PDF")

            if doc.needs_pass:
                if password is None:
                    raise EncryptedDocument(f"{name} requires a password")
                if not doc.authenticate(password):
                    raise EncryptedDocument(f"Incorrect password for {name}")

            if doc.page_count == 0:
                raise UnreadableDocument(f"{name} has no pages")

            pages = []
            for index in range(doc.page_count):
                try:
                    page = doc[index]
                    pages.append(snapshot_page(page, index, render_dpi))
                except Exception as e:
                    # Keep the page in the document; analysis reports it as failed
                    logger.error(f"Error reading page {index} of {name}: {e}")
                    pages.append(Page(index=index, width=0.0, height=0.0, load_error=describe(e)))

            metadata = dict(doc.metadata or {})
        finally:
            doc.close()

    logger.debug(f"Loaded {name}: {len(pages)} page(s)")
    return Document(source=name, pages=pages, metadata=metadata)


def load(
    source: Source,
    password: Optional[str] = None,
    timeout: Optional[float] = None,
    render_dpi: Optional[int] = None
) -> Document:
    """
    Load a PDF into a read-only Document snapshot.

    Args:
        source: Path to a PDF file, or the PDF's bytes
        password: Password for encrypted documents
        timeout: Seconds to wait for parsing before giving up (None waits)
        render_dpi: If set, render each page in grayscale for pixel checks

    Returns:
        Document with one Page per PDF page

    Raises:
        UnreadableDocument: input is missing, empty, or not a valid PDF
        EncryptedDocument: a password is required and was missing or wrong
        LoadTimeout: parsing took longer than timeout
    """
    if timeout is None:
        return _load(source, password, render_dpi)
    return _load_with_timeout(source, password, timeout, render_dpi)


def _load_worker(
    conn,
    source: Source,
    password: Optional[str],
    render_dpi: Optional[int]
) -> None:
    """Process entry point: load a document and send it back over conn."""
    try:
        conn.send(("ok", _load(source, password, render_dpi)))
    except (UnreadableDocument, EncryptedDocument) as e:
        conn.send(("error", e))
    except Exception as e:
        conn.send(("error", UnreadableDocument(describe(e))))
    finally:
        conn.close()


def _load_with_timeout(
    source: Source,
    password: Optional[str],
    timeout: float,
    render_dpi: Optional[int]
) -> Document:
    """
    Load in a separate process that is terminated when it overruns.

    PyMuPDF cannot be interrupted from Python, so a stuck parse is killed
    rather than abandoned; it never holds this process's PyMuPDF lock.
    """
    if isinstance(source, (bytearray, memoryview)):
        source = bytes(source)
    name = _source_name(source)

    receiver, sender = multiprocessing.Pipe(duplex=False)
    worker = multiprocessing.Process(
        target=_load_worker,
        args=(sender, source, password, render_dpi),
        name="xray-load",
        daemon=True,
    )
    worker.start()
    # Only the child writes; closing our copy lets recv() see a dead child
    sender.close()

    status, payload = None, None
    try:
        if receiver.poll(timeout):
            status, payload = receiver.recv()
    except EOFError:
        status = "exited"
    finally:
        receiver.close()
        if status is None and worker.is_alive():
            logger.debug(f"Terminating loader process for {name}")
            worker.terminate()
        worker.join()

    if status is None:
        raise LoadTimeout(f"Loading {name} took longer than {timeout}s")
    if status == "exited":
        raise UnreadableDocument(f"Loader for {name} exited with code {worker.exitcode}")
    if status == "error":
        raise payload
    return payload
