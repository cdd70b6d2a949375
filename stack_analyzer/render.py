"""Report rendering: plain-text table and JSON."""

from __future__ import annotations

import json
from typing import Sequence

from stack_analyzer.models.records import FunctionReport

_HEADERS = ("Code", "Stack", "Name")


def render_table(reports: Sequence[FunctionReport]) -> str:
    """Render reports as a table; numbers right-aligned, names left-aligned.

    Example::

        Code Stack Name
           8  1000 bar
    """
    code_width = max([len(_HEADERS[0])] + [len(str(r.code_size)) for r in reports])
    stack_width = max([len(_HEADERS[1])] + [len(str(r.stack_size)) for r in reports])

    lines = [f"{_HEADERS[0]:>{code_width}} {_HEADERS[1]:>{stack_width}} {_HEADERS[2]}"]
    for r in reports:
        lines.append(f"{r.code_size:>{code_width}} {r.stack_size:>{stack_width}} {r.display_name}")
    return "\n".join(lines) + "\n"


def render_json(reports: Sequence[FunctionReport], warnings: Sequence[str] = ()) -> str:
    return json.dumps(
        {"functions": [r.to_dict() for r in reports], "warnings": list(warnings)},
        indent=2,
    ) + "\n"
