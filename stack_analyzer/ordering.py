"""Filter by minimum stack usage and sort into a deterministic order."""

from __future__ import annotations

from typing import Iterable

from stack_analyzer.models.records import FunctionReport


def filter_reports(reports: Iterable[FunctionReport], min_stack: int = 0) -> list[FunctionReport]:
    """Keep reports whose stack_size >= min_stack."""
    if min_stack < 0:
        raise ValueError(f"min_stack must be non-negative, got {min_stack}")
    return [r for r in reports if r.stack_size >= min_stack]


def sort_key(report: FunctionReport) -> tuple[int, int, str, int]:
    # address last: same-named statics from different objects still order totally
    return (-report.stack_size, -report.code_size, report.display_name, report.address)


def sort_reports(reports: Iterable[FunctionReport]) -> list[FunctionReport]:
    """Stack descending, then code size descending, then name and address ascending."""
    return sorted(reports, key=sort_key)


def order_reports(reports: Iterable[FunctionReport], min_stack: int = 0) -> list[FunctionReport]:
    return sort_reports(filter_reports(reports, min_stack))
