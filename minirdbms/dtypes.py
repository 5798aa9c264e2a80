"""Column data types, key comparison and small value helpers."""

from __future__ import annotations

import enum
import math
import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence

TABLE_NAME_MAX_SIZE = 32
COLUMN_NAME_MAX_SIZE = 32
MAX_COLUMNS_SUPPORTED_PER_TABLE = 16
MAX_PRIMARY_KEYS_SUPPORTED = MAX_COLUMNS_SUPPORTED_PER_TABLE
MAX_GROUP_BY_N_SUPPORTED = 3
STRING_MAX_VALUE_LEN = 256
MAX_JOIN_TABLES_SUPPORTED = 3
MAX_AGG_FN_NAME_LEN = 8
MAX_DELETE_ACCUMULATE_COUNT = 5
MAX_COLS_IN_SELECT_LIST = 128
MAX_COLS_IN_GROUPBY_LIST = 16
MAX_COLS_IN_UPDATE_LIST = 16
MAX_TABLES_IN_JOIN_LIST = 8
MAX_ENTITY_NAME_LEN = 64
MAX_HT_KEY_SIZE = 1024
FQCN_SIZE = TABLE_NAME_MAX_SIZE + COLUMN_NAME_MAX_SIZE + MAX_AGG_FN_NAME_LEN + 2
ALIAS_NAME_LEN = FQCN_SIZE

_HASH_SEED = 5381
_INTERVAL_TEXT_MAX = 64
_INTERVAL_RE = re.compile(r"\[([+-]?\d+),([+-]?\d+)\]")


class SqlError(Exception):
    """Raised when a statement cannot be carried out."""


class SqlDtype(enum.Enum):
    """Data types a column or a computed value can have."""

    STRING = "STRING"
    INT = "INT"
    DOUBLE = "DOUBLE"
    IPV4_ADDR = "IPV4_ADDR"
    INTERVAL = "INTERVAL"
    BOOL = "BOOL"
    MAX = "MAX"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class KeyField:
    """Type and storage size of one component of a composite key."""

    dtype: SqlDtype
    size: int


def _is_empty(key: Optional[Sequence[Any]]) -> bool:
    return key is None or len(key) == 0


def compare_keys(
    key1: Optional[Sequence[Any]],
    key2: Optional[Sequence[Any]],
    key_fields: Optional[Sequence[KeyField]],
) -> int:
    """Compare two keys: 1 if key1 sorts first, -1 if key2 does, 0 if equal.

    A missing key sorts after any present one.  Without field descriptions
    the keys are compared as a whole and must have the same length.
    """
    if _is_empty(key1):
        return 1
    if _is_empty(key2):
        return -1
    assert key1 is not None and key2 is not None

    if not key_fields:
        if len(key1) != len(key2):
            raise SqlError("keys of different sizes cannot be compared")
        t1, t2 = tuple(key1), tuple(key2)
        if t1 > t2:
            return -1
        if t1 < t2:
            return 1
        return 0

    for field, v1, v2 in zip(key_fields, key1, key2):
        if field.dtype is SqlDtype.STRING:
            s1, s2 = str(v1)[: field.size], str(v2)[: field.size]
            if s1 < s2:
                return 1
            if s1 > s2:
                return -1
        elif field.dtype in (SqlDtype.INT, SqlDtype.IPV4_ADDR, SqlDtype.DOUBLE):
            if v1 < v2:
                return 1
            if v1 > v2:
                return -1
        elif field.dtype is SqlDtype.INTERVAL:
            if tuple(v1) != tuple(v2):
                return -1
    return 0


def is_dtype_compatible(expected: SqlDtype, computed: SqlDtype) -> bool:
    """Tell whether a value of type ``computed`` may be stored as ``expected``."""
    if expected is computed:
        return True
    numeric = {SqlDtype.INT, SqlDtype.DOUBLE}
    return expected in numeric and computed in numeric


def parse_interval(text: str) -> tuple[int, int]:
    """Read an interval written as ``[a, b]``; blanks are ignored."""
    if len(text) > _INTERVAL_TEXT_MAX:
        raise SqlError(f"interval text too long: {text!r}")
    compact = text.replace(" ", "")
    match = _INTERVAL_RE.match(compact)
    if not match:
        raise SqlError(f"malformed interval: {text!r}")
    return int(match.group(1)), int(match.group(2))


def string_hash(text: str) -> int:
    """32-bit djb2 hash of the text, stopping at the first NUL."""
    value = _HASH_SEED
    for byte in text.encode("utf-8"):
        if byte == 0:
            break
        value = (value * 33 + byte) & 0xFFFFFFFF
    return value


def double_is_integer(value: float) -> bool:
    """Tell whether a floating-point value has no fractional part."""
    if math.isnan(value):
        return False
    if math.isinf(value):
        return True
    return math.floor(value) == value