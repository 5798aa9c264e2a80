import pytest

from minirdbms.catalog import Catalog, ColumnDef, CreateTableData
from minirdbms.dtypes import SqlDtype, SqlError
from minirdbms.expr import (
    AggFn,
    Constant,
    ExprTree,
    JoinedRow,
    Operator,
    Value,
    Variable,
)
from minirdbms.plan import QpCol, QueryPlan, TableRef
from minirdbms.resolve import (
    expand_all_aliases,
    operand_names_to_fqcn,
    resolve_tree,
    resolve_tree_against_table,
)


def _plan(with_dept=False, alias=""):
    catalog = Catalog()
    catalog.create_table(
        CreateTableData(
            "emp",
            [
                ColumnDef("name", SqlDtype.STRING, 32, True),
                ColumnDef("age", SqlDtype.INT, 4),
            ],
        )
    )
    refs = [TableRef("emp", alias_name=alias, table=catalog.lookup("emp"))]
    if with_dept:
        catalog.create_table(
            CreateTableData(
                "dept",
                [
                    ColumnDef("dname", SqlDtype.STRING, 32, True),
                    ColumnDef("floor", SqlDtype.INT, 4),
                ],
            )
        )
        refs.append(TableRef("dept", table=catalog.lookup("dept")))
    return QueryPlan(catalog=catalog, tables=refs)


EMP_ROW = {"name": "bob", "age": 30}
DEPT_ROW = {"dname": "ops", "floor": 3}


def test_resolve_tree_reads_current_row():
    plan = _plan()
    tree = ExprTree(Variable("emp.age"))
    resolve_tree(plan, tree)
    plan.joined_row = JoinedRow(keys=[("bob",)], records=[EMP_ROW])
    assert tree.evaluate() == Value(SqlDtype.INT, EMP_ROW["age"])
    plan.joined_row = JoinedRow(keys=[("amy",)], records=[{"name": "amy", "age": 41}])
    assert tree.evaluate() == Value(SqlDtype.INT, 41)


def test_resolve_tree_lone_name_and_sources():
    plan = _plan()
    tree = ExprTree(
        Operator(">", Variable("age"), Constant(Value(SqlDtype.INT, 18)))
    )
    resolve_tree(plan, tree)
    assert len(plan.data_sources) == 1
    assert all(node.is_resolved for node in tree.operands())
    plan.joined_row = JoinedRow(keys=[("bob",)], records=[EMP_ROW])
    assert tree.evaluate() == Value(SqlDtype.BOOL, True)


def test_resolve_tree_missing_column():
    plan = _plan()
    with pytest.raises(SqlError):
        resolve_tree(plan, ExprTree(Variable("emp.salary")))


def test_resolve_tree_unknown_table():
    plan = _plan()
    with pytest.raises(SqlError):
        resolve_tree(plan, ExprTree(Variable("zzz.age")))


def test_resolve_tree_skips_unresolvable():
    plan = _plan()
    node = Variable("emp.nothing")
    node.mark_unresolvable()
    tree = ExprTree(node)
    resolve_tree(plan, tree)
    assert plan.data_sources == []
    assert node.is_resolved is False


def test_resolve_against_table_drops_other_tables():
    plan = _plan(with_dept=True)
    tree = ExprTree(
        Operator(
            "and",
            Operator(">", Variable("emp.age"), Constant(Value(SqlDtype.INT, 1))),
            Operator(">", Variable("dept.floor"), Constant(Value(SqlDtype.INT, 2))),
        )
    )
    resolve_tree_against_table(plan, tree, plan.tables[0].table, 0)
    assert [node.name for node in tree.operands()] == ["emp.age"]
    plan.joined_row = JoinedRow(keys=[("bob",), None], records=[EMP_ROW, None])
    assert tree.evaluate() == Value(SqlDtype.BOOL, True)


def test_resolve_against_second_table_uses_its_index():
    plan = _plan(with_dept=True)
    tree = ExprTree(Variable("dept.floor"))
    resolve_tree_against_table(plan, tree, plan.tables[1].table, 1)
    assert plan.data_sources[0].table_index == 1
    plan.joined_row = JoinedRow(keys=[None, ("ops",)], records=[None, DEPT_ROW])
    assert tree.evaluate() == Value(SqlDtype.INT, DEPT_ROW["floor"])


def test_resolve_against_table_missing_column_is_dropped():
    plan = _plan()
    tree = ExprTree(Variable("emp.salary"))
    resolve_tree_against_table(plan, tree, plan.tables[0].table, 0)
    assert tree.root is None
    assert plan.data_sources == []


def test_operand_names_to_fqcn():
    plan = _plan(alias="e")
    tree = ExprTree(
        Operator(
            "+",
            Variable("age"),
            Operator("+", Variable("e.age"), Variable("zzz.q")),
        )
    )
    operand_names_to_fqcn(plan, tree)
    assert [node.name for node in tree.operands()] == ["emp.age", "emp.age", "."]


def test_expand_all_aliases_replaces_alias():
    plan = _plan()
    select_tree = ExprTree(
        Operator("*", Variable("age"), Constant(Value(SqlDtype.INT, 2)))
    )
    plan.select_cols.append(
        QpCol(select_tree, alias_name="double_age", alias_provided_by_user=True)
    )
    where = ExprTree(
        Operator(">", Variable("double_age"), Constant(Value(SqlDtype.INT, 10)))
    )
    assert expand_all_aliases(plan, where) == 1
    assert [node.name for node in where.operands()] == ["age"]
    where_var = next(where.operands())
    select_var = next(select_tree.operands())
    assert where_var is not select_var
    assert select_var.name == "age"


def test_expand_all_aliases_skips_unresolvable_and_plain_names():
    plan = _plan()
    plan.select_cols.append(
        QpCol(ExprTree(Variable("age")), alias_name="a", alias_provided_by_user=True)
    )
    node = Variable("a")
    node.mark_unresolvable()
    assert expand_all_aliases(plan, ExprTree(node)) == 0
    plain = ExprTree(Variable("name"))
    assert expand_all_aliases(plan, plain) == 0
    assert plain.root.name == "name"


def test_expand_self_alias_terminates():
    plan = _plan()
    plan.select_cols.append(
        QpCol(
            ExprTree(Variable("age")),
            agg_fn=AggFn.NONE,
            alias_name="age",
            alias_provided_by_user=True,
        )
    )
    tree = ExprTree(Variable("age"))
    assert expand_all_aliases(plan, tree) == 0
    assert tree.root.name == "age"