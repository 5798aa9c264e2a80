"""INSERT INTO: building a record and its key and storing them."""

from __future__ import annotations

import ipaddress
import sys
from dataclasses import dataclass, field
from typing import Any, Optional, TextIO

from .catalog import Catalog, SchemaRecord
from .dtypes import SqlDtype, SqlError, is_dtype_compatible


@dataclass
class SqlValue:
    """One literal of an INSERT statement.

    ``value`` is a str for strings and IPv4 addresses, an int or float for
    numbers and an ``(lb, ub)`` pair for intervals.
    """

    dtype: SqlDtype
    value: Any


@dataclass
class InsertData:
    """A parsed INSERT INTO statement."""

    table_name: str
    values: list[SqlValue] = field(default_factory=list)


def _stored_value(rec: SchemaRecord, value: Any) -> Any:
    dtype = rec.dtype
    try:
        if dtype is SqlDtype.STRING:
            return str(value)[: rec.dtype_size]
        if dtype is SqlDtype.INT:
            return int(value)
        if dtype is SqlDtype.DOUBLE:
            return float(value)
        if dtype is SqlDtype.IPV4_ADDR:
            return int(ipaddress.IPv4Address(value))
        if dtype is SqlDtype.INTERVAL:
            lb, ub = value
            return int(lb), int(ub)
    except (TypeError, ValueError) as exc:
        raise SqlError(
            f"invalid {dtype} value {value!r} for col name {rec.column_name}"
        ) from exc
    raise SqlError(f"column {rec.column_name} has unsupported type {dtype}")


def insert_record(catalog: Catalog, idata: InsertData) -> tuple:
    """Insert one row and return its primary key.

    Values are taken in the order the columns were declared.
    """
    table = catalog.lookup(idata.table_name)
    if table is None:
        raise SqlError("Table not found")
    if len(idata.values) < len(table.columns):
        raise SqlError(
            f"Expected {len(table.columns)} values, provided {len(idata.values)}"
        )

    key = []
    record: dict[str, Any] = {}
    for i, (name, sql_value) in enumerate(zip(table.columns, idata.values)):
        rec = table.schema[name]
        if not is_dtype_compatible(rec.dtype, sql_value.dtype):
            raise SqlError(
                f"{i}th Data Type Mis-Match, Expected {rec.dtype}, "
                f"Provided {sql_value.dtype} for col name {rec.column_name}"
            )
        stored = _stored_value(rec, sql_value.value)
        record[name] = stored
        if rec.is_primary_key:
            key.append(stored)

    key_tuple = tuple(key)
    table.insert_record(key_tuple, record)
    return key_tuple


def process_insert_query(
    catalog: Catalog, idata: InsertData, out: Optional[TextIO] = None
) -> bool:
    """Run an INSERT and report the outcome; tell whether a row was stored."""
    stream = out if out is not None else sys.stdout
    try:
        insert_record(catalog, idata)
    except SqlError as exc:
        stream.write(f"Error : {exc}\n")
        return False
    stream.write("INSERT 0 1\n")
    return True