"""ORDER BY: collecting result rows, sorting them and handing them back."""

from __future__ import annotations

from typing import Iterator

from .dtypes import SqlDtype, SqlError
from .expr import AggFn, Value, make_aggregator
from .names import split_column_name
from .plan import QueryPlan


def initialize_orderby_clause(plan: QueryPlan) -> None:
    """Find the select column the query is ordered by.

    The name is looked up first as a user alias, then as a column name
    in ``table.column`` form.
    """
    if not plan.orderby_column:
        return

    col = plan.find_column(plan.orderby_column, True)
    if col is None:
        table, column = split_column_name(plan, plan.orderby_column)
        plan.orderby_column = f"{table}.{column}"
        col = plan.find_column(plan.orderby_column, False)
    if col is None:
        raise SqlError("Order by columns is not recognized")

    plan.orderby_col_select_index = next(
        idx for idx, sel in enumerate(plan.select_cols) if sel is col
    )


def collect_for_sorting(plan: QueryPlan) -> bool:
    """Move the current select values into the rows to sort.

    Returns False, collecting nothing, when the query has no ORDER BY.
    """
    if not plan.orderby_column:
        return False

    row: list[Value] = []
    for col in plan.select_cols:
        if col.computed_value is not None:
            value = col.computed_value
            col.computed_value = None
        else:
            value = col.aggregator.value if col.aggregator else None
            col.aggregator = None
        if value is None:
            raise SqlError(f"Column {col.alias_name or col.name} has no value")
        row.append(value)

    plan.orderby_rows.append(row)
    return True


def sort_collected(plan: QueryPlan) -> None:
    """Sort the collected rows on the ORDER BY column."""
    if not plan.orderby_column:
        return
    index = plan.orderby_col_select_index
    plan.orderby_rows.sort(key=lambda row: row[index], reverse=not plan.orderby_asc)


def iter_sorted_rows(plan: QueryPlan) -> Iterator[list[Value]]:
    """Put each collected row back into the select columns and yield it.

    ``plan.orderby_iterator_index`` counts the rows handed out; a row's
    slot is emptied once it has been handed out.
    """
    if not plan.orderby_column:
        return
    while plan.orderby_iterator_index < len(plan.orderby_rows):
        row = plan.orderby_rows[plan.orderby_iterator_index]
        if row is None:
            raise SqlError("sorted row was already consumed")
        for col, value in zip(plan.select_cols, row):
            if col.agg_fn is not AggFn.NONE:
                aggregator = make_aggregator(col.agg_fn, SqlDtype.MAX)
                assert aggregator is not None
                aggregator.value = value
                col.aggregator = aggregator
            else:
                col.computed_value = value
        plan.orderby_rows[plan.orderby_iterator_index] = None
        plan.orderby_iterator_index += 1
        yield row