"""Pytest configuration and fixtures."""

import time

import fitz
import pytest

from xray import pdf_loader
from xray.models import (
    GraphicObject, GraphicSource, Page, PageImage, TextChar, TextSpan
)


CONFIDENTIAL_ORIGIN = (72.0, 100.0)
CONFIDENTIAL_SIZE = 12
STALL_SECONDS = 30

_load_worker = pdf_loader._load_worker


def make_span(text, x0, y0, char_width=6.0, height=12.0, z_order=0):
    """Text span with evenly spaced glyph boxes."""
    chars = tuple(
        TextChar(char=c, bbox=(x0 + i * char_width, y0, x0 + (i + 1) * char_width, y0 + height))
        for i, c in enumerate(text)
    )
    return TextSpan(
        text=text,
        bbox=(x0, y0, x0 + len(text) * char_width, y0 + height),
        chars=chars,
        z_order=z_order,
    )


def make_rect(bbox, z_order, fill=(0.0, 0.0, 0.0), opacity=1.0,
              source=GraphicSource.DRAWING):
    return GraphicObject(
        bbox=bbox,
        fill=fill,
        fill_opacity=opacity,
        z_order=z_order,
        source=source,
    )


def make_image(ref, bbox, z_order):
    return PageImage(ref=ref, bbox=bbox, z_order=z_order, width_pixels=100, height_pixels=100)


def make_page(graphics=(), spans=(), images=(), index=0, **kwargs):
    return Page(
        index=index,
        width=612.0,
        height=792.0,
        graphics=tuple(graphics),
        spans=tuple(spans),
        images=tuple(images),
        **kwargs,
    )


@pytest.fixture
def span_factory():
    return make_span


@pytest.fixture
def rect_factory():
    return make_rect


@pytest.fixture
def image_factory():
    return make_image


@pytest.fixture
def page_factory():
    return make_page


def _confidential_width() -> float:
    return fitz.get_text_length("CONFIDENTIAL", fontname="helv", fontsize=CONFIDENTIAL_SIZE)


def build_confidential_pdf(path, shrink_right=0.0, text_on_top=False, text_color=(0, 0, 0)):
    """
    One-page PDF with "CONFIDENTIAL" and a black box over it.

    Args:
        path: Where to save the PDF
        shrink_right: Share of the box width cut off its right edge
        text_on_top: Paint the text after the box instead of before it
        text_color: RGB color of the text
    """
    x, y = CONFIDENTIAL_ORIGIN
    width = _confidential_width()
    box = fitz.Rect(x - 2, y - 16, x + width + 2, y + 6)
    box.x1 = box.x0 + box.width * (1 - shrink_right)

    doc = fitz.open()
    page = doc.new_page(width=612, height=792)

    def _text():
        page.insert_text(fitz.Point(x, y), "CONFIDENTIAL", fontname="helv",
                         fontsize=CONFIDENTIAL_SIZE, color=text_color)

    if not text_on_top:
        _text()
    page.draw_rect(box, color=None, fill=(0, 0, 0))
    if text_on_top:
        _text()

    doc.save(str(path))
    doc.close()
    return path


@pytest.fixture
def confidential_pdf(tmp_path):
    """Factory for the CONFIDENTIAL redaction scenarios."""
    def _build(name="redacted.pdf", **kwargs):
        return build_confidential_pdf(tmp_path / name, **kwargs)
    return _build


@pytest.fixture
def multipage_pdf(tmp_path):
    """
    Three pages: a clean redaction, a leaking one, and no redaction.
    """
    path = tmp_path / "multipage.pdf"
    doc = fitz.open()

    for index in range(3):
        page = doc.new_page(width=612, height=792)
        page.insert_text(fitz.Point(72, 100), f"Account number 12345 page {index}",
                         fontname="helv", fontsize=12)
        if index == 0:
            page.draw_rect(fitz.Rect(60, 80, 400, 110), color=None, fill=(0, 0, 0))
        elif index == 1:
            page.draw_rect(fitz.Rect(60, 80, 120, 110), color=None, fill=(0, 0, 0))

    doc.save(str(path))
    doc.close()
    return path


def stall_then_load(conn, *args):
    """Loader process target that hangs before parsing."""
    time.sleep(STALL_SECONDS)
    _load_worker(conn, *args)


@pytest.fixture
def stalled_loader(monkeypatch):
    """Make timed loads hang long enough to overrun any test timeout."""
    monkeypatch.setattr(pdf_loader, "_load_worker", stall_then_load)
    return monkeypatch
