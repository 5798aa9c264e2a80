import io

import pytest

from minirdbms.catalog import Catalog, ColumnDef, CreateTableData
from minirdbms.dtypes import SqlDtype, SqlError
from minirdbms.executor import execute_plan, init_execution_plan
from minirdbms.expr import Constant, ExprTree, Operator, Value, Variable
from minirdbms.insert import InsertData, SqlValue, insert_record
from minirdbms.plan import QueryPlan, QueryType, TableRef, UpdateColumn

ROWS = [(1, "alice", 100), (2, "bob", 250), (3, "carol", 175)]


def _catalog():
    catalog = Catalog()
    catalog.create_table(
        CreateTableData(
            "emp",
            [
                ColumnDef("id", SqlDtype.INT, 4, True),
                ColumnDef("name", SqlDtype.STRING, 32),
                ColumnDef("salary", SqlDtype.INT, 4),
            ],
        )
    )
    for id_, name, salary in ROWS:
        insert_record(
            catalog,
            InsertData(
                "emp",
                [
                    SqlValue(SqlDtype.INT, id_),
                    SqlValue(SqlDtype.STRING, name),
                    SqlValue(SqlDtype.INT, salary),
                ],
            ),
        )
    return catalog


def _collect(app_data, values):
    app_data.append(tuple(v.data for v in values))


def _salary_over(limit):
    return ExprTree(
        Operator(">", Variable("salary"), Constant(Value(SqlDtype.INT, limit)))
    )


def test_execute_select_all():
    plan = QueryPlan(
        catalog=_catalog(),
        tables=[TableRef("emp")],
        record_reader=_collect,
        app_data=[],
        out=io.StringIO(),
    )
    assert execute_plan(plan) is True
    assert plan.app_data == ROWS


def test_init_prepares_joined_row_and_select_list():
    plan = QueryPlan(catalog=_catalog(), tables=[TableRef("emp")], out=io.StringIO())
    init_execution_plan(plan)
    assert len(plan.joined_row) == len(plan.tables)
    assert [c.alias_name for c in plan.select_cols] == [
        "emp.id",
        "emp.name",
        "emp.salary",
    ]


def test_init_rejects_unknown_table():
    plan = QueryPlan(catalog=_catalog(), tables=[TableRef("nosuch")], out=io.StringIO())
    with pytest.raises(SqlError):
        init_execution_plan(plan)


def test_execute_reports_init_failure():
    plan = QueryPlan(catalog=_catalog(), tables=[TableRef("nosuch")], out=io.StringIO())
    assert execute_plan(plan) is False
    assert (
        "Error : Failed to initialize Query Execution Plan\n" in plan.out.getvalue()
    )


def test_execute_delete():
    catalog = _catalog()
    plan = QueryPlan(
        catalog=catalog,
        query_type=QueryType.DELETE,
        tables=[TableRef("emp")],
        where=_salary_over(150),
        out=io.StringIO(),
    )
    assert execute_plan(plan) is True
    removed = [r for r in ROWS if r[2] > 150]
    kept = [r[0] for r in ROWS if r[2] <= 150]
    table = catalog.lookup("emp")
    assert [rec["id"] for _, rec in table.iter_records()] == kept
    assert plan.out.getvalue() == f"DELETE {len(removed)}\n"


def test_execute_update():
    catalog = _catalog()
    plan = QueryPlan(
        catalog=catalog,
        query_type=QueryType.UPDATE,
        tables=[TableRef("emp")],
        update_cols=[
            UpdateColumn("name", ExprTree(Constant(Value(SqlDtype.STRING, "zed"))))
        ],
        where=_salary_over(150),
        out=io.StringIO(),
    )
    assert execute_plan(plan) is True
    names = {rec["id"]: rec["name"] for _, rec in catalog.lookup("emp").iter_records()}
    assert names == {r[0]: ("zed" if r[2] > 150 else r[1]) for r in ROWS}


def test_execute_update_type_mismatch_reports_error():
    plan = QueryPlan(
        catalog=_catalog(),
        query_type=QueryType.UPDATE,
        tables=[TableRef("emp")],
        update_cols=[UpdateColumn("name", ExprTree(Variable("salary")))],
        out=io.StringIO(),
    )
    assert execute_plan(plan) is False
    assert "Update Query aborted" in plan.out.getvalue()