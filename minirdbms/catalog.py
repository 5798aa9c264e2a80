"""Table catalog: table definitions, schemas and record storage."""

from __future__ import annotations

import bisect
import enum
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Any, Iterator, Optional, Sequence

from .dtypes import (
    MAX_COLUMNS_SUPPORTED_PER_TABLE,
    MAX_ENTITY_NAME_LEN,
    KeyField,
    SqlDtype,
    SqlError,
    compare_keys,
)

OWNER = "postgres"


class _Scope(enum.IntEnum):
    PUBLIC = 0


class _EntryType(enum.IntEnum):
    TABLE = 0


_CATALOG_KEY_FIELDS = (
    KeyField(SqlDtype.INT, 4),
    KeyField(SqlDtype.STRING, 32),
    KeyField(SqlDtype.INT, 4),
    KeyField(SqlDtype.STRING, 32),
)


@dataclass
class ColumnDef:
    """One column of a CREATE TABLE statement."""

    name: str
    dtype: SqlDtype
    size: int
    is_primary_key: bool = False


@dataclass
class CreateTableData:
    """A parsed CREATE TABLE statement."""

    table_name: str
    columns: list[ColumnDef] = field(default_factory=list)


@dataclass
class SchemaRecord:
    """Stored description of one table column."""

    column_name: str
    dtype: SqlDtype
    dtype_size: int
    offset: int
    is_primary_key: bool = False
    is_non_null: bool = False


def construct_key_fields(cdata: CreateTableData) -> list[KeyField]:
    """Key layout made of the primary key columns in declaration order."""
    return [KeyField(c.dtype, c.size) for c in cdata.columns if c.is_primary_key]


class Table:
    """A table: its schema and its records ordered by primary key."""

    def __init__(
        self, name: str, schema: Sequence[SchemaRecord], key_fields: Sequence[KeyField]
    ) -> None:
        self.name = name
        self.columns = [rec.column_name for rec in schema]
        self.schema = {rec.column_name: rec for rec in schema}
        self.key_fields = tuple(key_fields)
        self._entries: list[tuple[tuple, Any]] = []
        self._order = cmp_to_key(lambda a, b: -compare_keys(a, b, self.key_fields))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Table({self.name!r}, columns={self.columns!r}, rows={len(self)})"

    def schema_record(self, column_name: str) -> Optional[SchemaRecord]:
        """The schema record of a column, or None if there is no such column."""
        return self.schema.get(column_name)

    def _locate(self, key: tuple) -> tuple[int, bool]:
        idx = bisect.bisect_left(
            self._entries, self._order(key), key=lambda e: self._order(e[0])
        )
        found = idx < len(self._entries) and (
            compare_keys(self._entries[idx][0], key, self.key_fields) == 0
        )
        return idx, found

    def query(self, key: Sequence[Any]) -> Optional[Any]:
        """The record stored under ``key``, or None."""
        idx, found = self._locate(tuple(key))
        return self._entries[idx][1] if found else None

    def insert_record(self, key: Sequence[Any], record: Any) -> None:
        """Store a record; a key that is already present raises SqlError."""
        key = tuple(key)
        idx, found = self._locate(key)
        if found:
            raise SqlError(
                f'duplicate key value violates unique constraint "{self.name}_pkey"'
            )
        self._entries.insert(idx, (key, record))

    def delete_record(self, key: Sequence[Any]) -> bool:
        """Remove the record under ``key``; tell whether one was removed."""
        idx, found = self._locate(tuple(key))
        if found:
            del self._entries[idx]
        return found

    def iter_records(self) -> Iterator[tuple[tuple, Any]]:
        """Yield (key, record) pairs in key order."""
        yield from list(self._entries)


def _catalog_key(name: str) -> tuple:
    return (_Scope.PUBLIC, name[:MAX_ENTITY_NAME_LEN], _EntryType.TABLE, OWNER)


class Catalog:
    """All tables of one database."""

    def __init__(self) -> None:
        self._tables: dict[tuple, Table] = {}

    def __len__(self) -> int:
        return len(self._tables)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.lookup(name) is not None

    def __iter__(self) -> Iterator[Table]:
        order = cmp_to_key(lambda a, b: -compare_keys(a, b, _CATALOG_KEY_FIELDS))
        for key in sorted(self._tables, key=order):
            yield self._tables[key]

    def create_table(self, cdata: CreateTableData) -> Table:
        """Create a table from a CREATE TABLE statement and return it."""
        key = _catalog_key(cdata.table_name)
        if key in self._tables:
            raise SqlError("Table Already Exist")
        if len(cdata.columns) > MAX_COLUMNS_SUPPORTED_PER_TABLE:
            raise SqlError(
                f"Table can have at most {MAX_COLUMNS_SUPPORTED_PER_TABLE} columns"
            )

        schema: list[SchemaRecord] = []
        seen: set[str] = set()
        offset = 0
        for col in cdata.columns:
            if col.name in seen:
                raise SqlError(f"Column {col.name} specified more than once")
            seen.add(col.name)
            schema.append(
                SchemaRecord(
                    column_name=col.name,
                    dtype=col.dtype,
                    dtype_size=col.size,
                    offset=offset,
                    is_primary_key=col.is_primary_key,
                )
            )
            offset += col.size

        key_fields = construct_key_fields(cdata)
        if not key_fields:
            raise SqlError("Table Must have atleast one primary key")

        table = Table(cdata.table_name, schema, key_fields)
        self._tables[key] = table
        return table

    def drop_table(self, name: str) -> None:
        """Remove a table; a missing table raises SqlError."""
        key = _catalog_key(name)
        if key not in self._tables:
            raise SqlError("Table does not exist")
        del self._tables[key]

    def lookup(self, name: str) -> Optional[Table]:
        """The table with this name, or None."""
        return self._tables.get(_catalog_key(name))

    def format_listing(self) -> str:
        """The list of relations as printed by the catalog listing."""
        lines = [
            "           List of relations",
            " Schema    |           Name           | Type  | Owner  ",
            "-----------+--------------------------+-------+--------------",
        ]
        rows = 0
        for table in self:
            lines.append(f" public    | {table.name:<23}  | table | {OWNER}  ")
            rows += 1
        lines.append(f"({rows} rows)")
        return "\n".join(lines) + "\n"