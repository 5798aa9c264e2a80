"""Nested-loop join over the tables of a plan, with WHERE filtering."""

from __future__ import annotations

from typing import Iterator

from .dtypes import SqlError
from .expr import JoinedRow, evaluate_condition
from .plan import QueryPlan
from .resolve import (
    expand_all_aliases,
    operand_names_to_fqcn,
    resolve_tree,
    resolve_tree_against_table,
)


def initialize_join_clause(plan: QueryPlan) -> None:
    """Bind every table of the join list to its catalog table."""
    for ref in plan.tables:
        table = plan.catalog.lookup(ref.table_name)
        if table is None:
            raise SqlError(f"Could not find table {ref.table_name}")
        ref.table = table


def initialize_where_clause(plan: QueryPlan) -> None:
    """Prepare the WHERE condition.

    Aliases are expanded and operands renamed to ``table.column``; a copy
    of the condition is resolved against each table alone, keeping only
    that table's operands, and the whole condition is resolved against
    all join tables together.
    """
    if plan.where is None:
        plan.where_per_table = [None] * len(plan.tables)
        return

    expand_all_aliases(plan, plan.where)
    operand_names_to_fqcn(plan, plan.where)

    per_table = []
    for index, ref in enumerate(plan.tables):
        if ref.table is None:
            raise SqlError(f"Table {ref.table_name} is not initialized")
        tree = plan.where.clone()
        try:
            resolve_tree_against_table(plan, tree, ref.table, index)
        except SqlError as exc:
            raise SqlError(
                f"Failed to resolve per table Where Expression Tree: {exc}"
            ) from exc
        per_table.append(tree)
    plan.where_per_table = per_table

    try:
        resolve_tree(plan, plan.where)
    except SqlError as exc:
        raise SqlError(
            f"Failed to resolve Global Where Expression Tree: {exc}"
        ) from exc


def _walk(plan: QueryPlan, row: JoinedRow, index: int) -> Iterator[JoinedRow]:
    if index == len(plan.tables):
        yield row
        return
    table = plan.tables[index].table
    if table is None:
        raise SqlError(f"Table {plan.tables[index].table_name} is not initialized")
    condition = (
        plan.where_per_table[index] if index < len(plan.where_per_table) else None
    )
    for key, record in table.iter_records():
        row.keys[index] = key
        row.records[index] = record
        if evaluate_condition(condition):
            yield from _walk(plan, row, index + 1)
    row.keys[index] = None
    row.records[index] = None


def iterate_join(plan: QueryPlan) -> Iterator[JoinedRow]:
    """Yield every combination of records that passes the per-table filters.

    The first table of the join list is the outermost loop.  The same
    row object, also kept in ``plan.joined_row``, is updated in place and
    yielded each time.
    """
    n = len(plan.tables)
    row = JoinedRow([None] * n, [None] * n)
    plan.joined_row = row
    plan.is_join_started = True
    plan.is_join_finished = False
    if n:
        yield from _walk(plan, row, 0)
    plan.is_join_started = False
    plan.is_join_finished = True


def join_predicate_holds(plan: QueryPlan) -> bool:
    """Evaluate the whole WHERE condition on the current joined row."""
    return evaluate_condition(plan.where)