"""DELETE: removing the records of the first join table that qualify."""

from __future__ import annotations

import sys
from contextlib import closing
from itertools import islice

from .dtypes import MAX_DELETE_ACCUMULATE_COUNT, SqlError
from .join import iterate_join
from .plan import QueryPlan


def process_delete_query(plan: QueryPlan) -> int:
    """Delete every qualifying record of the first table; return the count.

    Keys are gathered in small batches, the join being restarted after
    each batch is deleted, until no qualifying record is left.
    """
    if not plan.tables or plan.tables[0].table is None:
        raise SqlError("No table to delete from")
    table = plan.tables[0].table
    deleted = 0

    while True:
        with closing(iterate_join(plan)) as rows:
            keys = [
                row.keys[0] for row in islice(rows, MAX_DELETE_ACCUMULATE_COUNT)
            ]
        if not keys:
            break
        deleted += sum(1 for key in keys if table.delete_record(key))

    out = plan.out if plan.out is not None else sys.stdout
    out.write(f"DELETE {deleted}\n")
    return deleted