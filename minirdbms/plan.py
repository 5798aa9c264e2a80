"""The query execution plan and its column descriptions."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TextIO

from .catalog import Catalog, SchemaRecord, Table
from .dtypes import ALIAS_NAME_LEN, FQCN_SIZE, MAX_TABLES_IN_JOIN_LIST, SqlError
from .expr import AggFn, Aggregator, ColumnSource, ExprTree, JoinedRow, Value, Variable


class QueryType(enum.Enum):
    """Kinds of query a plan can execute."""

    SELECT = "select"
    DELETE = "delete"
    UPDATE = "update"


@dataclass(eq=False)
class QpCol:
    """A column expression of a select or group-by list."""

    tree: ExprTree
    agg_fn: AggFn = AggFn.NONE
    alias_name: str = ""
    alias_provided_by_user: bool = False
    computed_value: Optional[Value] = None
    aggregator: Optional[Aggregator] = None

    @property
    def name(self) -> str:
        """Name of the lone variable operand, or "" for an expression."""
        root = self.tree.root
        return root.name if isinstance(root, Variable) else ""

    @property
    def current_value(self) -> Optional[Value]:
        """The aggregated value for an aggregate column, else the computed one."""
        if self.agg_fn is not AggFn.NONE:
            return self.aggregator.value if self.aggregator else None
        return self.computed_value


@dataclass
class TableRef:
    """A table named in the FROM list, with its optional alias."""

    table_name: str
    alias_name: str = ""
    table: Optional[Table] = None


@dataclass
class UpdateColumn:
    """One ``column = expression`` assignment of an UPDATE."""

    col_name: str
    value_tree: ExprTree
    schema_rec: Optional[SchemaRecord] = None


@dataclass(eq=False)
class QueryPlan:
    """Everything needed to execute one query."""

    catalog: Catalog = field(default_factory=Catalog)
    query_type: QueryType = QueryType.SELECT
    tables: list[TableRef] = field(default_factory=list)

    where: Optional[ExprTree] = None
    where_per_table: list[Optional[ExprTree]] = field(default_factory=list)

    groupby_cols: list[QpCol] = field(default_factory=list)
    groups: Optional[dict[tuple, list[JoinedRow]]] = None

    having_phase1: Optional[ExprTree] = None
    having_phase2: Optional[ExprTree] = None

    select_cols: list[QpCol] = field(default_factory=list)
    record_reader: Optional[Callable[[Any, list[Value]], None]] = None
    app_data: Any = None

    update_cols: list[UpdateColumn] = field(default_factory=list)

    distinct: bool = False
    distinct_col: Optional[QpCol] = None

    orderby_column: str = ""
    orderby_asc: bool = True
    orderby_col_select_index: int = -1
    orderby_rows: list[Optional[list[Value]]] = field(default_factory=list)
    orderby_iterator_index: int = 0

    limit: int = 0

    is_join_started: bool = False
    is_join_finished: bool = False
    table_iterators: Any = None
    joined_row: Optional[JoinedRow] = None
    data_sources: list[ColumnSource] = field(default_factory=list)

    out: Optional[TextIO] = None

    def __post_init__(self) -> None:
        if len(self.tables) > MAX_TABLES_IN_JOIN_LIST:
            raise SqlError(
                f"at most {MAX_TABLES_IN_JOIN_LIST} tables can be joined"
            )

    def table_index(self, table_name: str) -> Optional[int]:
        """Position of the named table in the join list, or None."""
        table = self.catalog.lookup(table_name)
        if table is None:
            return None
        for idx, ref in enumerate(self.tables):
            if ref.table is table:
                return idx
        return None

    def find_column(self, name: str, is_alias: bool) -> Optional[QpCol]:
        """The select column with this user alias, or this column name."""
        for col in self.select_cols:
            if is_alias:
                if not col.alias_provided_by_user:
                    continue
                if name[:ALIAS_NAME_LEN] != col.alias_name[:ALIAS_NAME_LEN]:
                    continue
                if len(name) != len(col.alias_name):
                    continue
                return col
            if not col.tree.is_single_operand():
                continue
            if name[:FQCN_SIZE] == col.alias_name[:FQCN_SIZE]:
                return col
        return None

    def flush_computed_values(self) -> None:
        """Forget computed values and aggregators of all select columns."""
        for col in self.select_cols:
            col.computed_value = None
            col.aggregator = None

    def alias_map(self) -> dict[str, str]:
        """Mapping from table alias to table name."""
        return {ref.alias_name: ref.table_name for ref in self.tables if ref.alias_name}