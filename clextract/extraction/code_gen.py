"""Text synthesis for the call site and the new function definition."""

from __future__ import annotations

from typing import Sequence

from .planner import ParameterPlan


def generate_call(name: str, arguments: Sequence[str]) -> str:
    """Build the statement that replaces the selection."""
    return f"{name}({', '.join(arguments)});"


def generate_function(
    name: str, plan: ParameterPlan, body: str, storage_class: str = "static"
) -> str:
    """Build the new function definition, followed by a blank separator line.

    The body is placed verbatim: its first line starts at column 0 and the
    remaining lines keep their original indentation.
    """
    prefix = f"{storage_class} void" if storage_class else "void"
    return f"{prefix} {name}({plan.parameter_list()}) {{\n{body}\n}}\n\n"
