"""Expression trees over table columns, and value aggregation."""

from __future__ import annotations

import abc
import enum
import ipaddress
import math
import operator
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

from .catalog import SchemaRecord
from .dtypes import SqlDtype, SqlError, parse_interval


class AggFn(enum.Enum):
    """Aggregate functions that can be applied to a select column."""

    NONE = "none"
    SUM = "sum"
    MIN = "min"
    MAX = "max"
    COUNT = "count"
    AVG = "avg"


_NUMERIC = frozenset({SqlDtype.INT, SqlDtype.DOUBLE})
_ARITH = frozenset({"+", "-", "*", "/", "%"})
_COMPARE = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "=": operator.eq,
    "!=": operator.ne,
}
_LOGICAL = frozenset({"and", "or", "not"})
_BINARY = _ARITH | frozenset(_COMPARE) | frozenset({"and", "or", "in"})
_UNARY = frozenset({"not", "neg"})


def _normalize(dtype: SqlDtype, data: Any) -> Any:
    try:
        if dtype is SqlDtype.STRING:
            return str(data)
        if dtype is SqlDtype.INT:
            return int(data)
        if dtype is SqlDtype.DOUBLE:
            return float(data)
        if dtype is SqlDtype.BOOL:
            return bool(data)
        if dtype is SqlDtype.IPV4_ADDR:
            return int(ipaddress.IPv4Address(data))
        if dtype is SqlDtype.INTERVAL:
            if isinstance(data, str):
                return parse_interval(data)
            lb, ub = data
            return int(lb), int(ub)
    except (TypeError, ValueError) as exc:
        raise SqlError(f"invalid {dtype} value: {data!r}") from exc
    raise SqlError(f"no value can have type {dtype}")


@dataclass(frozen=True)
class Value:
    """A typed value produced by evaluating an expression."""

    dtype: SqlDtype
    data: Any

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", _normalize(self.dtype, self.data))

    @property
    def text(self) -> str:
        """The value written out as text."""
        if self.dtype is SqlDtype.BOOL:
            return "True" if self.data else "False"
        if self.dtype is SqlDtype.IPV4_ADDR:
            return str(ipaddress.IPv4Address(self.data))
        if self.dtype is SqlDtype.INTERVAL:
            lb, ub = self.data
            return f"[{lb}, {ub}]"
        return str(self.data)

    def __str__(self) -> str:
        return self.text

    def _comparable(self, other: Value) -> None:
        if self.dtype in _NUMERIC and other.dtype in _NUMERIC:
            return
        if self.dtype is not other.dtype:
            raise SqlError(f"cannot compare {self.dtype} with {other.dtype}")

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        self._comparable(other)
        return self.data < other.data

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        self._comparable(other)
        return self.data > other.data


@dataclass
class JoinedRow:
    """Current key and record of every table taking part in a join."""

    keys: list = field(default_factory=list)
    records: list = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)


@dataclass
class ColumnSource:
    """Where a resolved column operand takes its value from.

    ``owner`` is any object whose ``joined_row`` attribute holds the row
    being processed; it is read at evaluation time.
    """

    table_index: int
    schema_rec: SchemaRecord
    owner: Any


def column_value(source: ColumnSource) -> Optional[Value]:
    """Value of the column in the owner's current joined row, or None."""
    row = source.owner.joined_row
    if row is None:
        return None
    record = row.records[source.table_index]
    if record is None:
        return None
    return Value(source.schema_rec.dtype, record[source.schema_rec.column_name])


def _result_type(op: str, types: list[Optional[SqlDtype]]) -> Optional[SqlDtype]:
    """Type of ``op`` over operands of these types; None where unknown."""
    known = [t for t in types if t is not None]
    if op in _LOGICAL:
        if any(t is not SqlDtype.BOOL for t in known):
            raise SqlError(f"operator {op} needs boolean operands")
        return SqlDtype.BOOL
    if op == "neg":
        if known and known[0] not in _NUMERIC:
            raise SqlError("unary minus needs a numeric operand")
        return known[0] if known else None
    if op in _ARITH:
        for t in known:
            if t not in _NUMERIC and not (op == "+" and t is SqlDtype.STRING):
                raise SqlError(f"operator {op} cannot take {t}")
        if len(known) < 2:
            return None
        a, b = known
        if op == "+" and (a is SqlDtype.STRING or b is SqlDtype.STRING):
            if a is not b:
                raise SqlError("cannot add a string and a number")
            return SqlDtype.STRING
        if op == "%":
            if a is not SqlDtype.INT or b is not SqlDtype.INT:
                raise SqlError("operator % needs integer operands")
            return SqlDtype.INT
        if op == "/":
            return SqlDtype.DOUBLE
        return SqlDtype.DOUBLE if SqlDtype.DOUBLE in (a, b) else SqlDtype.INT
    if op == "in":
        a, b = types
        if a is not None and a not in _NUMERIC:
            raise SqlError("left side of IN must be numeric")
        if b is not None and b is not SqlDtype.INTERVAL:
            raise SqlError("right side of IN must be an interval")
        return SqlDtype.BOOL
    if op in _COMPARE:
        if len(known) == 2:
            a, b = known
            if not ((a in _NUMERIC and b in _NUMERIC) or a is b):
                raise SqlError(f"cannot compare {a} with {b}")
            if a is SqlDtype.INTERVAL and op not in ("=", "!="):
                raise SqlError("intervals can only be tested for equality")
        return SqlDtype.BOOL
    raise SqlError(f"unknown operator {op!r}")


def _apply(op: str, args: list[Value]) -> Value:
    result = _result_type(op, [a.dtype for a in args])
    if op == "neg":
        (a,) = args
        return Value(a.dtype, -a.data)
    if op == "not":
        return Value(SqlDtype.BOOL, not args[0].data)
    a, b = args
    if op == "and":
        return Value(SqlDtype.BOOL, a.data and b.data)
    if op == "or":
        return Value(SqlDtype.BOOL, a.data or b.data)
    if op in _ARITH:
        if result is SqlDtype.STRING:
            return Value(SqlDtype.STRING, a.data + b.data)
        if op in ("/", "%") and b.data == 0:
            raise SqlError("division by zero")
        if op == "/":
            return Value(SqlDtype.DOUBLE, a.data / b.data)
        if op == "%":
            return Value(SqlDtype.INT, int(math.fmod(a.data, b.data)))
        fn = {"+": operator.add, "-": operator.sub, "*": operator.mul}[op]
        assert result is not None
        return Value(result, fn(a.data, b.data))
    if op == "in":
        lb, ub = b.data
        return Value(SqlDtype.BOOL, lb <= a.data <= ub)
    return Value(SqlDtype.BOOL, _COMPARE[op](a.data, b.data))


class Node(abc.ABC):
    """A node of an expression tree."""

    @abc.abstractmethod
    def evaluate(self) -> Value:
        """Compute the value of the subtree rooted here."""

    @abc.abstractmethod
    def clone(self) -> Node:
        """A deep copy of the subtree rooted here."""

    @abc.abstractmethod
    def infer(self) -> Optional[SqlDtype]:
        """Type of the subtree's value, None where not yet known."""


class Variable(Node):
    """An operand naming a column, resolved later to a value source."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.is_resolved = False
        self.unresolvable = False
        self.dtype: Optional[SqlDtype] = None
        self.source: Any = None
        self.compute_fn: Optional[Callable[[Any], Optional[Value]]] = None

    def resolve(
        self,
        dtype: SqlDtype,
        source: Any,
        compute_fn: Callable[[Any], Optional[Value]],
    ) -> None:
        """Bind the operand to a source and the function reading it."""
        self.dtype = dtype
        self.source = source
        self.compute_fn = compute_fn
        self.is_resolved = True

    def mark_unresolvable(self) -> None:
        """Flag the operand as one that must never be resolved."""
        self.unresolvable = True

    def evaluate(self) -> Value:
        if not self.is_resolved or self.compute_fn is None:
            raise SqlError(f"Operand {self.name} is not resolved")
        value = self.compute_fn(self.source)
        if value is None:
            raise SqlError(f"Operand {self.name} has no value")
        return value

    def clone(self) -> Variable:
        copy = Variable(self.name)
        copy.is_resolved = self.is_resolved
        copy.unresolvable = self.unresolvable
        copy.dtype = self.dtype
        copy.source = self.source
        copy.compute_fn = self.compute_fn
        return copy

    def infer(self) -> Optional[SqlDtype]:
        return self.dtype if self.is_resolved else None

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"Variable({self.name!r})"


class Constant(Node):
    """A literal value."""

    def __init__(self, value: Value) -> None:
        self.value = value

    def evaluate(self) -> Value:
        return self.value

    def clone(self) -> Constant:
        return Constant(self.value)

    def infer(self) -> Optional[SqlDtype]:
        return self.value.dtype

    def __str__(self) -> str:
        if self.value.dtype is SqlDtype.STRING:
            return repr(self.value.data)
        return self.value.text

    def __repr__(self) -> str:
        return f"Constant({self.value!r})"


class Operator(Node):
    """An operator applied to one or two operand subtrees."""

    def __init__(self, op: str, *operands: Node) -> None:
        if op in _UNARY:
            arity = 1
        elif op in _BINARY:
            arity = 2
        else:
            raise SqlError(f"unknown operator {op!r}")
        if len(operands) != arity:
            raise SqlError(f"operator {op} takes {arity} operand(s)")
        self.op = op
        self.operands: list[Node] = list(operands)

    def evaluate(self) -> Value:
        if self.op in ("and", "or"):
            left = self.operands[0].evaluate()
            _result_type(self.op, [left.dtype, None])
            if self.op == "and" and not left.data:
                return Value(SqlDtype.BOOL, False)
            if self.op == "or" and left.data:
                return Value(SqlDtype.BOOL, True)
            return _apply(self.op, [left, self.operands[1].evaluate()])
        return _apply(self.op, [child.evaluate() for child in self.operands])

    def clone(self) -> Operator:
        return Operator(self.op, *(child.clone() for child in self.operands))

    def infer(self) -> Optional[SqlDtype]:
        return _result_type(self.op, [child.infer() for child in self.operands])

    def __str__(self) -> str:
        if self.op == "neg":
            return f"-{self.operands[0]}"
        if self.op == "not":
            return f"not {self.operands[0]}"
        left, right = self.operands
        return f"({left} {self.op} {right})"

    def __repr__(self) -> str:
        return f"Operator({self.op!r}, {', '.join(map(repr, self.operands))})"


def _leaves(node: Optional[Node]) -> Iterator[Node]:
    if node is None:
        return
    if isinstance(node, Operator):
        for child in node.operands:
            yield from _leaves(child)
    else:
        yield node


def _prune(node: Node) -> tuple[Optional[Node], int]:
    if isinstance(node, Variable):
        return (node, 0) if node.is_resolved else (None, 1)
    if not isinstance(node, Operator):
        return node, 0
    results = [_prune(child) for child in node.operands]
    removed = sum(count for _, count in results)
    kept = [child for child, _ in results]
    if node.op in ("and", "or"):
        survivors = [child for child in kept if child is not None]
        if not survivors:
            return None, removed
        if len(survivors) == 1:
            return survivors[0], removed
    elif any(child is None for child in kept):
        return None, removed
    node.operands = [child for child in kept if child is not None]
    return node, removed


def _fold(node: Node) -> Node:
    if isinstance(node, Operator):
        node.operands = [_fold(child) for child in node.operands]
        if all(isinstance(child, Constant) for child in node.operands):
            try:
                return Constant(node.evaluate())
            except SqlError:
                return node
    return node


class ExprTree:
    """An expression tree with a possibly empty root."""

    def __init__(self, root: Optional[Node] = None) -> None:
        self.root = root

    def __str__(self) -> str:
        return "" if self.root is None else str(self.root)

    def __repr__(self) -> str:
        return f"ExprTree({self.root!r})"

    def operands(self) -> Iterator[Variable]:
        """Yield the variable operands from left to right."""
        yield from [n for n in _leaves(self.root) if isinstance(n, Variable)]

    def clone(self) -> ExprTree:
        """A deep copy of the tree."""
        return ExprTree(None if self.root is None else self.root.clone())

    def _parent_of(self, target: Node) -> Optional[tuple[Operator, int]]:
        stack = [self.root]
        while stack:
            node = stack.pop()
            if isinstance(node, Operator):
                for idx, child in enumerate(node.operands):
                    if child is target:
                        return node, idx
                    stack.append(child)
        return None

    def concatenate(self, node: Node, child: ExprTree) -> bool:
        """Replace ``node`` with the root of ``child``, which is consumed."""
        if child.root is None:
            return False
        if self.root is node:
            self.root = child.root
        else:
            found = self._parent_of(node)
            if found is None:
                return False
            parent, idx = found
            parent.operands[idx] = child.root
        child.root = None
        return True

    def evaluate(self) -> Value:
        """Compute the value of the whole tree."""
        if self.root is None:
            raise SqlError("cannot evaluate an empty expression")
        return self.root.evaluate()

    def remove_unresolved_operands(self) -> int:
        """Drop unresolved operands and what depends on them; return their count."""
        if self.root is None:
            return 0
        self.root, removed = _prune(self.root)
        return removed

    def is_single_operand(self) -> bool:
        """Tell whether the tree is just one variable operand."""
        return isinstance(self.root, Variable)

    def validate(self) -> bool:
        """Tell whether the operand types fit the operators."""
        if self.root is None:
            return True
        try:
            self.root.infer()
        except SqlError:
            return False
        return True

    def optimize(self) -> bool:
        """Fold subtrees made only of constants into constants."""
        if self.root is not None:
            self.root = _fold(self.root)
        return True


def single_operand_tree(name: str) -> ExprTree:
    """A tree holding one unresolved variable operand."""
    return ExprTree(Variable(name))


def evaluate_condition(tree: Optional[ExprTree]) -> bool:
    """Evaluate a condition; a missing or empty condition holds."""
    if tree is None or tree.root is None:
        return True
    value = tree.evaluate()
    if value.dtype is not SqlDtype.BOOL:
        raise SqlError(f"condition yields {value.dtype}, not a boolean")
    return bool(value.data)


class Aggregator:
    """Running aggregate of the values of one column."""

    def __init__(self, agg_fn: AggFn, dtype: SqlDtype) -> None:
        self.agg_fn = agg_fn
        self.dtype = dtype
        self.value: Optional[Value] = None
        self.count = 0
        self._total: Optional[Value] = None

    def aggregate(self, value: Value) -> None:
        """Take one more value into the aggregate."""
        self.count += 1
        if self.agg_fn is AggFn.COUNT:
            self.value = Value(SqlDtype.INT, self.count)
        elif self.agg_fn is AggFn.SUM:
            self.value = value if self.value is None else _apply("+", [self.value, value])
        elif self.agg_fn is AggFn.MIN:
            if self.value is None or value < self.value:
                self.value = value
        elif self.agg_fn is AggFn.MAX:
            if self.value is None or value > self.value:
                self.value = value
        elif self.agg_fn is AggFn.AVG:
            self._total = (
                value if self._total is None else _apply("+", [self._total, value])
            )
            self.value = Value(SqlDtype.DOUBLE, self._total.data / self.count)
        else:
            raise SqlError(f"cannot aggregate with {self.agg_fn}")


def make_aggregator(agg_fn: AggFn, dtype: SqlDtype) -> Optional[Aggregator]:
    """An aggregator for ``agg_fn`` over values of ``dtype``; None for no function."""
    if agg_fn is AggFn.NONE:
        return None
    if dtype is not SqlDtype.MAX:
        if agg_fn in (AggFn.SUM, AggFn.AVG) and dtype not in _NUMERIC:
            raise SqlError(f"{agg_fn.value} cannot be applied to {dtype}")
        if agg_fn in (AggFn.MIN, AggFn.MAX) and dtype in (
            SqlDtype.BOOL,
            SqlDtype.INTERVAL,
        ):
            raise SqlError(f"{agg_fn.value} cannot be applied to {dtype}")
    return Aggregator(agg_fn, dtype)