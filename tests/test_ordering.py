"""Tests for filtering and deterministic ordering."""

from __future__ import annotations

import itertools
import random

import pytest

from stack_analyzer.models.records import FunctionReport, Qualifier
from stack_analyzer.ordering import filter_reports, order_reports, sort_reports


def _r(name, code, stack):
    return FunctionReport(display_name=name, code_size=code, stack_size=stack)


REPORTS = [
    _r("foo", 16, 48),
    _r("bar", 8, 1000),
    _r("baz", 100, 48),
    _r("alpha", 16, 48),
    _r("zeta", 4, 0),
    _r("mid", 32, 100),
]


class TestFilter:
    @pytest.mark.parametrize("threshold", [0, 1, 48, 49, 100, 1000, 1001])
    def test_exact_subset(self, threshold):
        kept = filter_reports(REPORTS, threshold)
        assert kept == [r for r in REPORTS if r.stack_size >= threshold]

    def test_default_keeps_everything(self):
        assert filter_reports(REPORTS) == REPORTS

    def test_negative_threshold(self):
        with pytest.raises(ValueError):
            filter_reports(REPORTS, -1)


class TestSort:
    def test_order(self):
        names = [r.display_name for r in sort_reports(REPORTS)]
        assert names == ["bar", "mid", "baz", "alpha", "foo", "zeta"]

    def test_invariants(self):
        ordered = sort_reports(REPORTS)
        for a, b in zip(ordered, ordered[1:]):
            assert a.stack_size >= b.stack_size
            if a.stack_size == b.stack_size:
                assert a.code_size >= b.code_size
                if a.code_size == b.code_size:
                    assert a.display_name <= b.display_name

    def test_independent_of_input_order(self):
        expected = sort_reports(REPORTS)
        for perm in itertools.islice(itertools.permutations(REPORTS), 200):
            assert sort_reports(perm) == expected
        shuffled = list(REPORTS)
        random.Random(7).shuffle(shuffled)
        assert sort_reports(shuffled) == expected

    def test_same_name_orders_by_address(self):
        first = FunctionReport("helper", 4, 8, Qualifier.STATIC, 0x100)
        second = FunctionReport("helper", 4, 8, Qualifier.UNBOUNDED_DYNAMIC, 0x200)
        assert sort_reports([second, first]) == [first, second]
        assert sort_reports([first, second]) == [first, second]

    def test_empty(self):
        assert sort_reports([]) == []


class TestOrderReports:
    def test_filter_then_sort(self):
        assert [r.display_name for r in order_reports(REPORTS, 100)] == ["bar", "mid"]
