"""Printing the header and the rows of a select result."""

from __future__ import annotations

import math
import sys
from typing import TextIO

from .dtypes import SqlDtype, SqlError, double_is_integer
from .expr import Value
from .names import split_column_name
from .plan import QueryPlan

SCREEN_WIDTH = 80
COLUMN_WIDTH = 20


def _column_width(n_cols: int) -> int:
    return SCREEN_WIDTH // n_cols if n_cols > 0 else COLUMN_WIDTH


def _line(n_cols: int, width: int) -> str:
    return ("-" * width + "+") * n_cols + "\n"


def _stream(plan: QueryPlan) -> TextIO:
    return plan.out if plan.out is not None else sys.stdout


def format_cell(value: Value, width: int) -> str:
    """One cell of output: the value left-justified to ``width``, then ``|``."""
    dtype = value.dtype
    if dtype is SqlDtype.INT:
        return f"{value.data:<{width}d}|"
    if dtype is SqlDtype.DOUBLE:
        d = value.data
        if math.isfinite(d) and double_is_integer(d):
            return f"{int(d):<{width}d}|"
        return f"{d:<{width}f}|"
    if dtype in (
        SqlDtype.STRING,
        SqlDtype.BOOL,
        SqlDtype.IPV4_ADDR,
        SqlDtype.INTERVAL,
    ):
        return f"{value.text:<{width}}|"
    raise SqlError(f"cannot print a value of type {dtype}")


def format_header(plan: QueryPlan) -> str:
    """The header block of the select columns; empty when a reader is set."""
    if plan.record_reader is not None:
        return ""
    cols = plan.select_cols
    width = _column_width(len(cols))
    cells = []
    for col in cols:
        if len(plan.tables) > 1:
            title = col.alias_name
        elif col.alias_name:
            title = split_column_name(plan, col.alias_name)[1]
        else:
            title = ""
        cells.append(f"{title:<{width}}|")
    line = _line(len(cols), width)
    return line + "".join(cells) + "\n" + line


def format_row(plan: QueryPlan) -> str:
    """The current values of the select columns as one output line."""
    cols = plan.select_cols
    width = _column_width(len(cols))
    cells = []
    for col in cols:
        value = col.current_value
        if value is None:
            raise SqlError(f"Column {col.alias_name or col.name} has no value")
        cells.append(format_cell(value, width))
    return "".join(cells) + "\n"


def print_header(plan: QueryPlan) -> None:
    """Write the header unless rows go to a record reader."""
    if plan.record_reader is not None:
        return
    _stream(plan).write(format_header(plan))


def emit_row(plan: QueryPlan) -> None:
    """Hand the current row to the record reader, or print it."""
    if plan.record_reader is not None:
        plan.record_reader(plan.app_data, [col.current_value for col in plan.select_cols])
        return
    _stream(plan).write(format_row(plan))