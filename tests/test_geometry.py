"""Tests for bounding box arithmetic."""

import pytest

from xray.geometry import (
    area, axis_gap, covered_fraction, intersection, union_area, union_bbox
)


def test_area_of_inverted_box_is_zero():
    assert area((10, 10, 5, 20)) == 0.0
    assert area((0, 0, 4, 5)) == 20.0


def test_intersection():
    assert intersection((0, 0, 10, 10), (5, 5, 15, 15)) == (5, 5, 10, 10)
    assert intersection((0, 0, 10, 10), (10, 0, 20, 10)) is None


def test_union_bbox():
    assert union_bbox([(0, 0, 1, 1), (5, -2, 6, 3)]) == (0, -2, 6, 3)


def test_union_area_counts_overlap_once():
    assert union_area([(0, 0, 10, 10), (5, 0, 15, 10)]) == pytest.approx(150.0)
    assert union_area([(0, 0, 10, 10), (0, 0, 10, 10)]) == pytest.approx(100.0)
    assert union_area([]) == 0.0


def test_covered_fraction():
    assert covered_fraction((0, 0, 10, 10), [(0, 0, 5, 10)]) == pytest.approx(0.5)
    assert covered_fraction((0, 0, 10, 10), [(0, 0, 5, 10), (5, 0, 10, 10)]) == pytest.approx(1.0)
    assert covered_fraction((0, 0, 10, 10), [(20, 20, 30, 30)]) == 0.0


def test_covered_fraction_of_zero_width_box():
    assert covered_fraction((5, 0, 5, 10), [(0, 0, 10, 10)]) == 1.0
    assert covered_fraction((50, 0, 50, 10), [(0, 0, 10, 10)]) == 0.0


def test_axis_gap():
    assert axis_gap(0, 10, 12, 20) == 2
    assert axis_gap(0, 10, 8, 20) == -2
