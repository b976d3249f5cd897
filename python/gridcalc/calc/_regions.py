"""Error-region bookkeeping for formula diagnostics."""

from __future__ import annotations

from gridcalc.calc._parser import Span


def _sort_key(span: Span) -> tuple[bool, int, int]:
    # zero-length spans sort first so they can be dropped in one slice
    return (span.length != 0, span.index, span.end)


def merge_regions(regions: list[Span]) -> list[Span]:
    """Coalesce overlapping or touching spans, in place.

    Zero-length spans are discarded.  The list ends up sorted by start and
    the same list object is returned for convenience.
    """
    regions.sort(key=_sort_key)
    first = 0
    while first < len(regions) and regions[first].length == 0:
        first += 1
    del regions[:first]

    i = 0
    while i < len(regions):
        start = regions[i].index
        end = regions[i].end
        j = i + 1
        while j < len(regions) and regions[j].index <= end:
            end = max(end, regions[j].end)
            j += 1
        if j != i + 1:
            regions[i] = Span(start, end - start)
            del regions[i + 1 : j]
        i += 1
    return regions
