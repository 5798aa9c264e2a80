"""Classification and splitting of column names used in queries."""

from __future__ import annotations

import enum

from .dtypes import COLUMN_NAME_MAX_SIZE, FQCN_SIZE, TABLE_NAME_MAX_SIZE
from .plan import QueryPlan


class ColNameType(enum.Enum):
    """How a column name refers to its table."""

    NOT_KNOWN = "not_known"
    FQCN = "fqcn"  # table_name.column_name
    ACN = "acn"  # alias.column_name
    LCN = "lcn"  # lone column_name


def _tokens(name: str) -> list[str]:
    """Non-empty dot-separated parts of the name."""
    return [part for part in name[:FQCN_SIZE].split(".") if part]


def column_name_type(plan: QueryPlan, name: str) -> ColNameType:
    """Tell how ``name`` refers to a table of the plan."""
    parts = _tokens(name)
    if not parts:
        return ColNameType.NOT_KNOWN
    if len(parts) == 1:
        return ColNameType.LCN
    if parts[0] in plan.alias_map():
        return ColNameType.ACN
    if plan.catalog.lookup(parts[0]) is not None:
        return ColNameType.FQCN
    return ColNameType.NOT_KNOWN


def split_column_name(plan: QueryPlan, name: str) -> tuple[str, str]:
    """Split a column name into (table name, column name).

    A lone column name belongs to the first table of the join list; a
    name that cannot be placed gives two empty strings.
    """
    parts = _tokens(name)
    kind = column_name_type(plan, name)
    if kind is ColNameType.FQCN:
        table, column = parts[0], parts[1]
    elif kind is ColNameType.ACN:
        table, column = plan.alias_map()[parts[0]], parts[1]
    elif kind is ColNameType.LCN:
        table = plan.tables[0].table_name if plan.tables else ""
        column = parts[0]
    else:
        return "", ""
    return table[:TABLE_NAME_MAX_SIZE], column[:COLUMN_NAME_MAX_SIZE]


def to_fqcn(plan: QueryPlan, name: str) -> str:
    """The name written as ``table.column``."""
    if column_name_type(plan, name) is ColNameType.FQCN:
        return name
    table, column = split_column_name(plan, name)
    return f"{table}.{column}"[: FQCN_SIZE - 1]