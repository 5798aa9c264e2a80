"""Binding expression tree operands to table columns of a query plan."""

from __future__ import annotations

from .catalog import Table
from .dtypes import FQCN_SIZE, TABLE_NAME_MAX_SIZE, SqlError
from .expr import ColumnSource, ExprTree, column_value
from .names import split_column_name
from .plan import QueryPlan


def resolve_tree(plan: QueryPlan, tree: ExprTree) -> None:
    """Resolve every pending operand of the tree against the join tables.

    Raises SqlError when an operand names an unknown table or column.
    """
    for node in tree.operands():
        if node.is_resolved or node.unresolvable:
            continue
        table_name, column = split_column_name(plan, node.name)
        if not table_name:
            raise SqlError(f"Operand {node.name} does not name a known table")
        index = plan.table_index(table_name)
        if index is None:
            raise SqlError(f"Table {table_name} does not exist")
        table = plan.tables[index].table
        assert table is not None
        schema_rec = table.schema_record(column)
        if schema_rec is None:
            raise SqlError(
                f"Column {node.name} could not be found in table {table.name}"
            )
        source = ColumnSource(index, schema_rec, plan)
        plan.data_sources.append(source)
        node.resolve(schema_rec.dtype, source, column_value)

    if not tree.validate():
        raise SqlError("Expression Tree doesnt pass Validation test")
    tree.optimize()


def resolve_tree_against_table(
    plan: QueryPlan, tree: ExprTree, table: Table, table_index: int
) -> None:
    """Resolve only the operands belonging to ``table`` and drop the rest."""
    for node in tree.operands():
        if node.is_resolved or node.unresolvable:
            continue
        table_name, column = split_column_name(plan, node.name)
        if table_name != table.name[:TABLE_NAME_MAX_SIZE]:
            continue
        schema_rec = table.schema_record(column)
        if schema_rec is None:
            continue
        source = ColumnSource(table_index, schema_rec, plan)
        plan.data_sources.append(source)
        node.resolve(schema_rec.dtype, source, column_value)

    tree.remove_unresolved_operands()
    if not tree.validate():
        raise SqlError("Expression Tree doesnt pass Validation test")
    tree.optimize()


def operand_names_to_fqcn(plan: QueryPlan, tree: ExprTree) -> None:
    """Rename every operand to its ``table.column`` form."""
    for node in tree.operands():
        table_name, column = split_column_name(plan, node.name)
        node.name = f"{table_name}.{column}"[: FQCN_SIZE - 1]


def expand_all_aliases(plan: QueryPlan, tree: ExprTree) -> int:
    """Replace operands naming select-list aliases by those columns' trees.

    Returns how many replacements were made.
    """
    count = 0
    expanded = True
    while expanded:
        expanded = False
        for node in tree.operands():
            if node.unresolvable:
                continue
            col = plan.find_column(node.name, True)
            if col is None:
                continue
            if col.tree.is_single_operand() and col.tree.root.name == node.name:
                # An alias naming itself expands to the same operand.
                continue
            tree.concatenate(node, col.tree.clone())
            count += 1
            expanded = True
            break
    return count