import itertools

import pytest

from minirdbms.catalog import Catalog, ColumnDef, CreateTableData
from minirdbms.dtypes import SqlDtype, SqlError
from minirdbms.expr import Constant, ExprTree, Operator, Value, Variable
from minirdbms.join import (
    initialize_join_clause,
    initialize_where_clause,
    iterate_join,
    join_predicate_holds,
)
from minirdbms.plan import QueryPlan, TableRef

EMPLOYEES = [(3, 45, 1), (1, 25, 2), (2, 35, 1)]
DEPTS = [(1, "eng"), (2, "ops")]


def make_catalog():
    cat = Catalog()
    cat.create_table(
        CreateTableData(
            "emp",
            [
                ColumnDef("id", SqlDtype.INT, 4, True),
                ColumnDef("age", SqlDtype.INT, 4),
                ColumnDef("dept", SqlDtype.INT, 4),
            ],
        )
    )
    cat.create_table(
        CreateTableData(
            "dept",
            [
                ColumnDef("id", SqlDtype.INT, 4, True),
                ColumnDef("name", SqlDtype.STRING, 16),
            ],
        )
    )
    emp = cat.lookup("emp")
    for emp_id, age, dept in EMPLOYEES:
        emp.insert_record((emp_id,), {"id": emp_id, "age": age, "dept": dept})
    dept = cat.lookup("dept")
    for dept_id, name in DEPTS:
        dept.insert_record((dept_id,), {"id": dept_id, "name": name})
    return cat


def make_plan(*names, where=None):
    cat = make_catalog()
    plan = QueryPlan(catalog=cat, tables=[TableRef(n) for n in names], where=where)
    initialize_join_clause(plan)
    initialize_where_clause(plan)
    return plan


def int_const(n):
    return Constant(Value(SqlDtype.INT, n))


def test_initialize_join_clause_binds_tables():
    cat = make_catalog()
    plan = QueryPlan(catalog=cat, tables=[TableRef("emp"), TableRef("dept")])
    initialize_join_clause(plan)
    assert plan.tables[0].table is cat.lookup("emp")
    assert plan.tables[1].table is cat.lookup("dept")


def test_initialize_join_clause_missing_table():
    plan = QueryPlan(catalog=make_catalog(), tables=[TableRef("nope")])
    with pytest.raises(SqlError, match="Could not find table nope"):
        initialize_join_clause(plan)


def test_single_table_in_key_order():
    plan = make_plan("emp")
    ids = [row.records[0]["id"] for row in iterate_join(plan)]
    assert ids == sorted(e[0] for e in EMPLOYEES)
    assert plan.is_join_finished


def test_cross_product_outer_table_first():
    plan = make_plan("emp", "dept")
    pairs = [(r.records[0]["id"], r.records[1]["id"]) for r in iterate_join(plan)]
    expected = list(
        itertools.product(sorted(e[0] for e in EMPLOYEES), sorted(d[0] for d in DEPTS))
    )
    assert pairs == expected


def test_keys_follow_records():
    plan = make_plan("emp")
    for row in iterate_join(plan):
        assert row.keys[0] == (row.records[0]["id"],)
    assert plan.joined_row.records == [None]


def test_per_table_where_filters():
    where = ExprTree(Operator(">", Variable("emp.age"), int_const(30)))
    plan = make_plan("emp", where=where)
    ids = [row.records[0]["id"] for row in iterate_join(plan)]
    assert ids == [2, 3]


def test_per_table_where_leaves_other_table_unfiltered():
    where = ExprTree(Operator(">", Variable("emp.age"), int_const(30)))
    plan = make_plan("emp", "dept", where=where)
    rows = [(r.records[0]["id"], r.records[1]["id"]) for r in iterate_join(plan)]
    assert len(rows) == 2 * len(DEPTS)
    assert plan.where_per_table[1].root is None


def test_lone_column_names_become_fqcn():
    where = ExprTree(Operator(">", Variable("age"), int_const(30)))
    plan = make_plan("emp", where=where)
    assert [v.name for v in plan.where.operands()] == ["emp.age"]


def test_join_predicate_across_tables():
    where = ExprTree(Operator("=", Variable("emp.dept"), Variable("dept.id")))
    plan = make_plan("emp", "dept", where=where)
    matched = []
    for row in iterate_join(plan):
        if join_predicate_holds(plan):
            matched.append((row.records[0]["dept"], row.records[1]["id"]))
    assert len(matched) == len(EMPLOYEES)
    assert all(a == b for a, b in matched)


def test_no_qualified_rows():
    where = ExprTree(Operator(">", Variable("emp.age"), int_const(100)))
    plan = make_plan("emp", "dept", where=where)
    assert list(iterate_join(plan)) == []
    assert plan.is_join_finished


def test_join_predicate_without_where():
    plan = make_plan("emp")
    assert join_predicate_holds(plan) is True


def test_unknown_column_in_where():
    where = ExprTree(Operator(">", Variable("emp.salary"), int_const(1)))
    cat = make_catalog()
    plan = QueryPlan(catalog=cat, tables=[TableRef("emp")], where=where)
    initialize_join_clause(plan)
    with pytest.raises(SqlError, match="Global Where"):
        initialize_where_clause(plan)