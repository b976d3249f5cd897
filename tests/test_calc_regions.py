"""Tests for gridcalc.calc error-region merging."""

from __future__ import annotations

from gridcalc.calc._parser import Span
from gridcalc.calc._regions import merge_regions


class TestMergeRegions:
    def test_empty(self) -> None:
        assert merge_regions([]) == []

    def test_disjoint_are_sorted(self) -> None:
        regions = [Span(8, 2), Span(1, 3)]
        assert merge_regions(regions) == [Span(1, 3), Span(8, 2)]

    def test_overlapping(self) -> None:
        assert merge_regions([Span(0, 4), Span(2, 5)]) == [Span(0, 7)]

    def test_touching(self) -> None:
        assert merge_regions([Span(2, 1), Span(0, 2)]) == [Span(0, 3)]

    def test_contained(self) -> None:
        assert merge_regions([Span(0, 10), Span(3, 2), Span(12, 1)]) == [Span(0, 10), Span(12, 1)]

    def test_duplicates(self) -> None:
        assert merge_regions([Span(4, 5), Span(4, 5), Span(4, 5)]) == [Span(4, 5)]

    def test_zero_length_dropped(self) -> None:
        assert merge_regions([Span(3, 0), Span(5, 1), Span(0, 0)]) == [Span(5, 1)]

    def test_in_place(self) -> None:
        regions = [Span(5, 2), Span(0, 6)]
        result = merge_regions(regions)
        assert result is regions
        assert regions == [Span(0, 7)]

    def test_chain_of_overlaps(self) -> None:
        regions = [Span(0, 2), Span(1, 2), Span(3, 2), Span(9, 1)]
        assert merge_regions(regions) == [Span(0, 5), Span(9, 1)]
