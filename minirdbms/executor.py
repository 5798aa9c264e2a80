"""Preparing a query plan and running it."""

from __future__ import annotations

import sys

from .delete import process_delete_query
from .dtypes import SqlError
from .expr import JoinedRow
from .group_by import initialize_groupby_clause, initialize_having_clause
from .join import initialize_join_clause, initialize_where_clause
from .order_by import initialize_orderby_clause
from .plan import QueryPlan, QueryType
from .select import (
    expand_select_asterisk,
    initialize_select_columns,
    process_select_query,
)
from .update import initialize_update_query, process_update_query


def init_execution_plan(plan: QueryPlan) -> None:
    """Bind and resolve every clause of the plan; raises SqlError on failure.

    The select list is initialized after the clauses that copy its
    expression trees.
    """
    n = len(plan.tables)
    plan.joined_row = JoinedRow([None] * n, [None] * n)
    plan.data_sources = []

    initialize_join_clause(plan)
    expand_select_asterisk(plan)
    initialize_where_clause(plan)
    initialize_groupby_clause(plan)
    initialize_having_clause(plan)
    initialize_select_columns(plan)
    initialize_orderby_clause(plan)
    initialize_update_query(plan)

    plan.is_join_started = False
    plan.is_join_finished = False


def execute_plan(plan: QueryPlan) -> bool:
    """Prepare and run the plan, reporting errors; tell whether it succeeded."""
    out = plan.out if plan.out is not None else sys.stdout
    try:
        init_execution_plan(plan)
    except SqlError as exc:
        out.write(f"Error : {exc}\n")
        out.write("Error : Failed to initialize Query Execution Plan\n")
        return False

    try:
        if plan.query_type is QueryType.SELECT:
            process_select_query(plan)
        elif plan.query_type is QueryType.DELETE:
            process_delete_query(plan)
        elif plan.query_type is QueryType.UPDATE:
            process_update_query(plan)
        else:
            out.write("Error : Could not identify Query type\n")
            return False
    except SqlError as exc:
        out.write(f"Error : {exc}\n")
        return False
    return True