from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import psycopg2
from psycopg2.extras import execute_values

"""Multi-row INSERT through psycopg2.extras.execute_values.

All rows of one call go out as a single INSERT statement (page_size is the
row count), so with an autocommit connection a call either commits every row
or none of them. Callers rely on this to make one call the unit of retry.
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "batch_insert",
]


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single batch insert call."""
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Insert ``rows`` into ``table`` in one statement.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table (trusted identifier)
    columns: column names, same order as each row
    rows: row value sequences
    metrics_callback: receives BatchMetrics after the statement ran; not
        called for an empty ``rows``
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0)

    cols_sql = ",".join(f'"{c}"' for c in columns)
    sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s"

    start_time = time.time()
    try:
        execute_values(cursor, sql, rows_list, page_size=len(rows_list))
    except psycopg2.Error as e:
        raise BatchInsertError(str(e).strip() or type(e).__name__) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    return InsertResult(inserted_rows=len(rows_list))
