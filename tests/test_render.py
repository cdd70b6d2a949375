"""Tests for report renderers."""

from __future__ import annotations

import json

from stack_analyzer.models.records import FunctionReport, Qualifier
from stack_analyzer.render import render_json, render_table


class TestRenderTable:
    def test_single_row(self):
        out = render_table([FunctionReport("bar", 8, 1000)])
        assert out == "Code Stack Name\n   8  1000 bar\n"

    def test_columns_widen_to_values(self):
        out = render_table(
            [
                FunctionReport("big", 123456, 5),
                FunctionReport("deep", 7, 1234567),
            ]
        )
        assert out.splitlines() == [
            "  Code   Stack Name",
            "123456       5 big",
            "     7 1234567 deep",
        ]

    def test_empty_report_has_header(self):
        assert render_table([]) == "Code Stack Name\n"

    def test_names_are_left_aligned_verbatim(self):
        out = render_table([FunctionReport("<T as core::ops::Drop>::drop", 1, 2)])
        assert out.splitlines()[1].endswith(" <T as core::ops::Drop>::drop")


class TestRenderJson:
    def test_structure(self):
        out = render_json(
            [FunctionReport("foo", 16, 48, Qualifier.UNBOUNDED_DYNAMIC, 0x100)],
            ["unmatched_stack_record: x"],
        )
        data = json.loads(out)
        assert data == {
            "functions": [
                {
                    "name": "foo",
                    "address": 256,
                    "code_size": 16,
                    "stack_size": 48,
                    "qualifier": "unbounded-dynamic",
                }
            ],
            "warnings": ["unmatched_stack_record: x"],
        }
