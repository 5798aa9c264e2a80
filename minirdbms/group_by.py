"""GROUP BY and HAVING: grouping joined rows and emitting one row per group."""

from __future__ import annotations

import sys
from typing import Optional

from .dtypes import SqlError
from .expr import AggFn, JoinedRow, Value, evaluate_condition, make_aggregator
from .names import split_column_name
from .order_by import collect_for_sorting, iter_sorted_rows, sort_collected
from .output import emit_row, print_header
from .plan import QpCol, QueryPlan
from .resolve import (
    expand_all_aliases,
    operand_names_to_fqcn,
    resolve_tree,
    resolve_tree_against_table,
)


def _select_column(plan: QueryPlan, name: str) -> Optional[QpCol]:
    """A select column named by user alias, else by column name."""
    col = plan.find_column(name, True)
    if col is None:
        col = plan.find_column(name, False)
    return col


def initialize_groupby_clause(plan: QueryPlan) -> None:
    """Resolve the GROUP BY columns.

    A group-by entry may be a select-list alias, a table column or an
    expression; raises SqlError when one cannot be resolved.
    """
    for position, gcol in enumerate(plan.groupby_cols):
        tree = gcol.tree
        if tree.is_single_operand():
            scol = plan.find_column(gcol.name, True)
            if scol is not None:
                if scol.agg_fn is not AggFn.NONE:
                    raise SqlError(
                        f"Aggregate fn cannot be applied on column {scol.alias_name}"
                    )
                expand_all_aliases(plan, tree)
                operand_names_to_fqcn(plan, tree)
                try:
                    resolve_tree(plan, tree)
                except SqlError as exc:
                    raise SqlError(
                        f"Group by Column {scol.alias_name} could not be resolved: {exc}"
                    ) from exc
            else:
                name = gcol.name
                table_name, _ = split_column_name(plan, name)
                index = plan.table_index(table_name)
                if index is None:
                    raise SqlError(
                        f"Table {table_name} is not specified in Join list"
                    )
                table = plan.tables[index].table
                assert table is not None
                operand_names_to_fqcn(plan, tree)
                try:
                    resolve_tree_against_table(plan, tree, table, index)
                except SqlError as exc:
                    raise SqlError(
                        f"Group by column {name} could not be resolved "
                        f"against table {table.name}: {exc}"
                    ) from exc

        expand_all_aliases(plan, tree)
        operand_names_to_fqcn(plan, tree)
        try:
            resolve_tree(plan, tree)
        except SqlError as exc:
            raise SqlError(
                f"Could not resolve Unnamed {position}th group by Expression Tree: {exc}"
            ) from exc


def _initialize_having_phase1(plan: QueryPlan) -> None:
    """Keep only the operands that can filter individual records."""
    tree = plan.having_phase1
    assert tree is not None
    for node in tree.operands():
        col = _select_column(plan, node.name)
        if col is not None and col.agg_fn is not AggFn.NONE:
            node.mark_unresolvable()

    expand_all_aliases(plan, tree)
    operand_names_to_fqcn(plan, tree)
    try:
        resolve_tree(plan, tree)
    except SqlError:
        # Operands that cannot be bound simply take no part in filtering.
        pass
    tree.remove_unresolved_operands()


def initialize_having_clause(plan: QueryPlan) -> None:
    """Split HAVING into a per-record phase and a per-group phase."""
    if plan.having_phase1 is None:
        return
    if plan.having_phase2 is None:
        plan.having_phase2 = plan.having_phase1.clone()
    _initialize_having_phase1(plan)


def _aggregated_value(col: QpCol) -> Optional[Value]:
    return col.aggregator.value if col.aggregator is not None else None


def _initialize_having_phase2(plan: QueryPlan) -> None:
    """Keep only the aggregated operands and bind them to their aggregators."""
    tree = plan.having_phase2
    if tree is None:
        return
    for node in tree.operands():
        col = _select_column(plan, node.name)
        if col is None or col.agg_fn is AggFn.NONE:
            node.mark_unresolvable()

    for node in tree.operands():
        if node.unresolvable:
            continue
        col = _select_column(plan, node.name)
        assert col is not None
        value = _aggregated_value(col)
        if value is None:
            raise SqlError(f"Column {node.name} has no aggregated value")
        node.resolve(value.dtype, col, _aggregated_value)

    tree.remove_unresolved_operands()


def group_record(plan: QueryPlan) -> None:
    """Put the current joined row into its group, if it passes HAVING phase 1."""
    if not evaluate_condition(plan.having_phase1):
        return
    row = plan.joined_row
    if row is None:
        raise SqlError("no joined row to group")

    key = tuple(
        (value.dtype, value.data)
        for value in (gcol.tree.evaluate() for gcol in plan.groupby_cols)
    )
    if plan.groups is None:
        plan.groups = {}
    copy = JoinedRow(list(row.keys), list(row.records))
    plan.groups.setdefault(key, []).append(copy)


def _compute_aggregation(plan: QueryPlan) -> None:
    for col in plan.select_cols:
        if col.agg_fn is AggFn.NONE:
            continue
        value = col.tree.evaluate()
        if col.aggregator is None:
            col.aggregator = make_aggregator(col.agg_fn, value.dtype)
            assert col.aggregator is not None
        col.aggregator.aggregate(value)


def process_groups(plan: QueryPlan) -> int:
    """Aggregate each group, filter with HAVING and emit the rows.

    Returns the number of rows emitted; nothing is written when no row
    was grouped.
    """
    if not plan.groups:
        return 0
    out = plan.out if plan.out is not None else sys.stdout
    backup = plan.joined_row
    qualified = 0

    try:
        for row_no, records in enumerate(plan.groups.values(), start=1):
            if row_no == 1 and not plan.orderby_column:
                print_header(plan)

            for record in records:
                plan.joined_row = record
                _compute_aggregation(plan)
            plan.joined_row = records[0]

            for col in plan.select_cols:
                if col.agg_fn is AggFn.NONE:
                    col.computed_value = col.tree.evaluate()

            if row_no == 1:
                _initialize_having_phase2(plan)

            if not evaluate_condition(plan.having_phase2):
                plan.flush_computed_values()
                continue

            if not collect_for_sorting(plan):
                emit_row(plan)
                plan.flush_computed_values()
                qualified += 1
                if plan.limit == qualified:
                    break

        sort_collected(plan)
        plan.orderby_iterator_index = 0
        for _ in iter_sorted_rows(plan):
            if plan.orderby_iterator_index == 1:
                print_header(plan)
            emit_row(plan)
            plan.flush_computed_values()
            qualified += 1
            if plan.limit == plan.orderby_iterator_index:
                break

        out.write(f"({qualified} rows)\n")
    finally:
        plan.joined_row = backup
    return qualified