# minirdbms

A small in-memory relational database engine. Tables live in a `Catalog`, and
each table keeps its records in primary-key order. A query is described by a
`QueryPlan`, which supports:

- joins over several tables
- `WHERE`, `GROUP BY` and `HAVING`
- the aggregate functions `sum`, `min`, `max`, `count` and `avg`
- `ORDER BY` and `LIMIT`
- `UPDATE` and `DELETE`

## Installing

```
pip install .
```

## Modules

- `minirdbms.dtypes`: the column types (`SqlDtype`) and key comparison
  (`compare_keys`). It also defines `SqlError`, the exception raised when a
  statement cannot be carried out.
- `minirdbms.catalog`: `Catalog`, `Table`, `CreateTableData`, `ColumnDef` and
  `SchemaRecord`.
  - `Catalog.create_table` adds a table. A table needs at least one primary key
    column.
  - `Catalog.drop_table` removes a table.
  - `Catalog.lookup` finds a table by name.
  - `Catalog.format_listing` returns the list of relations as text.
- `minirdbms.insert`: `InsertData`, `SqlValue`, `insert_record` and
  `process_insert_query`. `process_insert_query` reports `INSERT 0 1` or an
  error.
- `minirdbms.expr`: expression trees and aggregates.
  - The trees are built from `ExprTree`, `Variable`, `Constant`, `Operator` and
    `Value`.
  - Aggregates use `AggFn`, `Aggregator` and `make_aggregator`.
  - The operators are `+ - * / %`, `< <= > >= = !=`, `and`, `or`, `not`, `neg`
    (unary minus) and `in` (a number within an interval).
- `minirdbms.plan`: `QueryPlan`, `QpCol`, `TableRef`, `UpdateColumn` and
  `QueryType`, which together describe one query.
- `minirdbms.executor`: `init_execution_plan` binds and resolves every clause
  of a plan. `execute_plan` prepares the plan, runs it and writes any error.
- The clause handling lives in these modules:
  - `minirdbms.join`
  - `minirdbms.group_by`
  - `minirdbms.order_by`
  - `minirdbms.select`
  - `minirdbms.update`
  - `minirdbms.delete`
  - `minirdbms.names`
  - `minirdbms.resolve`
  - `minirdbms.output`

## Example

```python
from minirdbms.catalog import Catalog, ColumnDef, CreateTableData
from minirdbms.dtypes import SqlDtype
from minirdbms.executor import execute_plan
from minirdbms.expr import Constant, ExprTree, Operator, Value, Variable, single_operand_tree
from minirdbms.insert import InsertData, SqlValue, insert_record
from minirdbms.plan import QpCol, QueryPlan, TableRef

catalog = Catalog()
catalog.create_table(CreateTableData(
    table_name="emp",
    columns=[
        ColumnDef("id", SqlDtype.INT, 4, is_primary_key=True),
        ColumnDef("name", SqlDtype.STRING, 32),
    ],
))
insert_record(catalog, InsertData("emp", [
    SqlValue(SqlDtype.INT, 1),
    SqlValue(SqlDtype.STRING, "alice"),
]))
print(catalog.format_listing())

plan = QueryPlan(
    catalog=catalog,
    tables=[TableRef("emp")],
    select_cols=[QpCol(single_operand_tree("name"))],
    where=ExprTree(Operator(">", Variable("id"), Constant(Value(SqlDtype.INT, 0)))),
)
execute_plan(plan)
```

### Column names

A column name in a plan can take three forms:

- `column`: a lone name, which refers to the first table of the join list
- `table.column`
- `alias.column`, where the alias is set with `TableRef.alias_name`

### Where results go

Results are written as a text table to `plan.out`, or to standard output if
`plan.out` is not set.

If `plan.record_reader` is set, the header is not printed. Each result row is
passed to the reader as `reader(plan.app_data, values)`.

### Select list

- An empty `select_cols` list selects every column of every joined table.
- To aggregate a column, create its `QpCol` with `agg_fn=AggFn.SUM` (or
  another `AggFn`).
- A user alias is set with `alias_name` and `alias_provided_by_user=True`.

## What it does not do

- There is no SQL text parser and no command-line shell. Queries are built as
  `QueryPlan` objects in Python.
- Data is held in memory only and is never saved to disk.
- The `distinct` fields of `QueryPlan` are not acted on.

## Tests

```
pip install .[test]
pytest
```