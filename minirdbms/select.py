"""SELECT: building the select list and producing the result rows."""

from __future__ import annotations

import sys
from contextlib import closing

from .dtypes import SqlError
from .expr import AggFn, make_aggregator, single_operand_tree
from .group_by import group_record, process_groups
from .join import iterate_join, join_predicate_holds
from .names import split_column_name
from .order_by import collect_for_sorting, iter_sorted_rows, sort_collected
from .output import emit_row, print_header
from .plan import QpCol, QueryPlan
from .resolve import expand_all_aliases, operand_names_to_fqcn, resolve_tree


def expand_select_asterisk(plan: QueryPlan) -> None:
    """Fill an empty select list with every column of every join table."""
    if plan.select_cols:
        return
    for ref in plan.tables:
        table = ref.table
        if table is None:
            raise SqlError(f"Table {ref.table_name} is not initialized")
        for column in table.columns:
            name = f"{table.name}.{column}"
            plan.select_cols.append(
                QpCol(
                    tree=single_operand_tree(name),
                    agg_fn=AggFn.NONE,
                    alias_name=name,
                    alias_provided_by_user=False,
                )
            )


def initialize_select_columns(plan: QueryPlan) -> None:
    """Name and resolve the expression of every select column."""
    if not plan.select_cols:
        expand_select_asterisk(plan)
    else:
        # A lone column without a user alias is named after itself.
        for col in plan.select_cols:
            if col.tree.is_single_operand() and not col.alias_name:
                table_name, column = split_column_name(plan, col.name)
                col.alias_name = f"{table_name}.{column}"

    for col in plan.select_cols:
        expand_all_aliases(plan, col.tree)
        operand_names_to_fqcn(plan, col.tree)
        try:
            resolve_tree(plan, col.tree)
        except SqlError as exc:
            raise SqlError(
                f"Failed to resolve Expression Tree for select column "
                f"{col.alias_name}: {exc}"
            ) from exc


def _compute_select_columns(plan: QueryPlan) -> bool:
    """Evaluate the select list on the current row; tell if any aggregates."""
    is_aggregation = False
    for col in plan.select_cols:
        value = col.tree.evaluate()
        if col.agg_fn is AggFn.NONE:
            col.computed_value = value
            continue
        is_aggregation = True
        if col.aggregator is None:
            col.aggregator = make_aggregator(col.agg_fn, value.dtype)
            assert col.aggregator is not None
        col.aggregator.aggregate(value)
    return is_aggregation


def process_select_query(plan: QueryPlan) -> int:
    """Run a prepared SELECT, writing or handing out its rows.

    Returns the row count that is reported.
    """
    out = plan.out if plan.out is not None else sys.stdout
    row_no = 0
    is_aggregation = False

    with closing(iterate_join(plan)) as rows:
        for _ in rows:
            if len(plan.tables) > 1 and not join_predicate_holds(plan):
                continue
            row_no += 1

            if plan.groupby_cols:
                group_record(plan)
                continue

            if _compute_select_columns(plan):
                is_aggregation = True

            if not is_aggregation:
                if collect_for_sorting(plan):
                    continue
                if row_no == 1:
                    print_header(plan)
                emit_row(plan)
                if plan.limit == row_no:
                    break

    if plan.groupby_cols:
        return process_groups(plan)

    if is_aggregation:
        print_header(plan)
        emit_row(plan)
        out.write("(1 rows)\n")
        return 1

    sort_collected(plan)
    plan.orderby_iterator_index = 0
    for _ in iter_sorted_rows(plan):
        if plan.orderby_iterator_index == 1:
            print_header(plan)
        emit_row(plan)
        plan.flush_computed_values()
        if plan.limit == plan.orderby_iterator_index:
            break

    out.write(f"({row_no} rows)\n")
    return row_no