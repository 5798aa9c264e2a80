"""UPDATE: assigning new values to columns of the qualifying records."""

from __future__ import annotations

import sys
from contextlib import closing
from typing import Any

from .catalog import SchemaRecord
from .dtypes import SqlDtype, SqlError, is_dtype_compatible
from .expr import Value
from .join import iterate_join
from .plan import QueryPlan
from .resolve import resolve_tree_against_table


def initialize_update_query(plan: QueryPlan) -> None:
    """Check the assigned columns and resolve their value expressions."""
    if not plan.update_cols:
        return
    if not plan.tables or plan.tables[0].table is None:
        raise SqlError("No table to update")
    table = plan.tables[0].table

    for ucol in plan.update_cols:
        schema_rec = table.schema_record(ucol.col_name)
        if schema_rec is None:
            raise SqlError(
                f"Column {ucol.col_name} does not exist in table {table.name}"
            )
        if schema_rec.is_primary_key:
            raise SqlError(
                f"Column {ucol.col_name} is a primary key, cannot be updated"
            )
        ucol.schema_rec = schema_rec
        try:
            resolve_tree_against_table(plan, ucol.value_tree, table, 0)
        except SqlError as exc:
            raise SqlError(
                f"Value Expresssion for Column {ucol.col_name} could not be "
                f"resolved against table {table.name}: {exc}"
            ) from exc


def _stored(schema_rec: SchemaRecord, value: Value) -> Any:
    dtype = schema_rec.dtype
    if dtype is SqlDtype.INT:
        return int(value.data)
    if dtype is SqlDtype.DOUBLE:
        return float(value.data)
    if dtype is SqlDtype.STRING:
        return str(value.data)[: schema_rec.dtype_size]
    if dtype is SqlDtype.IPV4_ADDR:
        return int(value.data)
    if dtype is SqlDtype.INTERVAL:
        lb, ub = value.data
        return int(lb), int(ub)
    raise SqlError(f"column {schema_rec.column_name} has unsupported type {dtype}")


def process_update_query(plan: QueryPlan) -> int:
    """Apply the assignments to every qualifying record; return the count.

    A value of the wrong type aborts the update with SqlError; records
    already changed stay changed.
    """
    row_no = 0
    with closing(iterate_join(plan)) as rows:
        for row in rows:
            row_no += 1
            record = row.records[0]
            for ucol in plan.update_cols:
                schema_rec = ucol.schema_rec
                if schema_rec is None:
                    raise SqlError(f"Column {ucol.col_name} is not initialized")
                value = ucol.value_tree.evaluate()
                if not is_dtype_compatible(schema_rec.dtype, value.dtype):
                    raise SqlError(
                        f"Value Expression for Column {ucol.col_name} is of type "
                        f"{value.dtype}, expected type is {schema_rec.dtype}. "
                        f"Update Query aborted"
                    )
                record[schema_rec.column_name] = _stored(schema_rec, value)

    out = plan.out if plan.out is not None else sys.stdout
    out.write(f"UPDATE {row_no}\n")
    return row_no