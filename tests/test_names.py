import pytest

from minirdbms.catalog import Catalog, ColumnDef, CreateTableData
from minirdbms.dtypes import SqlDtype
from minirdbms.names import (
    ColNameType,
    column_name_type,
    split_column_name,
    to_fqcn,
)
from minirdbms.plan import QueryPlan, TableRef


def _plan(alias=""):
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
    ref = TableRef("emp", alias_name=alias, table=catalog.lookup("emp"))
    return QueryPlan(catalog=catalog, tables=[ref])


def test_lone_column_name():
    plan = _plan()
    assert column_name_type(plan, "age") is ColNameType.LCN
    assert split_column_name(plan, "age") == ("emp", "age")


def test_fully_qualified_name():
    plan = _plan()
    assert column_name_type(plan, "emp.age") is ColNameType.FQCN
    assert split_column_name(plan, "emp.age") == ("emp", "age")


def test_alias_qualified_name():
    plan = _plan(alias="e")
    assert column_name_type(plan, "e.age") is ColNameType.ACN
    assert split_column_name(plan, "e.age") == ("emp", "age")


@pytest.mark.parametrize("name", ["zzz.age", "", "..."])
def test_unknown_names(name):
    plan = _plan()
    assert column_name_type(plan, name) is ColNameType.NOT_KNOWN
    assert split_column_name(plan, name) == ("", "")


def test_empty_parts_are_skipped():
    plan = _plan()
    assert column_name_type(plan, ".age") is ColNameType.LCN
    assert split_column_name(plan, ".age") == ("emp", "age")


def test_to_fqcn():
    plan = _plan(alias="e")
    assert to_fqcn(plan, "age") == "emp.age"
    assert to_fqcn(plan, "emp.age") == "emp.age"
    assert to_fqcn(plan, "e.age") == "emp.age"


def test_to_fqcn_is_idempotent():
    plan = _plan(alias="e")
    for name in ("age", "e.name", "emp.name"):
        once = to_fqcn(plan, name)
        assert to_fqcn(plan, once) == once
        assert column_name_type(plan, once) is ColNameType.FQCN