from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, TypeVar

import psycopg2

from ..models.material import Material, MaterialType
from ..models.slab import Slab, SlabInsert, SlabStatus
from .batch_insert import BatchMetrics, batch_insert

"""Slab store: the persistence surface used by import, export and matching.

``SlabStore`` is the protocol the services depend on; ``PgSlabStore`` is the
PostgreSQL implementation over a psycopg2 cursor. Reads are paginated with
LIMIT/OFFSET ranges; ``read_all`` drains any of them.

Slab rows are scoped to the acting user. The material catalog is shared.
"""

__all__ = [
    "StoreError",
    "PurgeResult",
    "SlabStore",
    "PgSlabStore",
    "read_all",
    "slab_from_record",
    "material_from_record",
]

SLAB_COLUMNS = (
    "id", "user_id", "position", "material", "length", "width", "thickness",
    "status", "quantity", "entry_number", "debit_sheet_id", "price_estimate",
    "created_at", "updated_at",
)
SLAB_INSERT_COLUMNS = (
    "user_id", "position", "material", "length", "width", "thickness",
    "quantity", "status", "entry_number", "price_estimate",
)
MATERIAL_COLUMNS = ("id", "name", "ref", "type", "thickness", "cmup", "is_active")

E = TypeVar("E", bound=Enum)


class StoreError(Exception):
    """Raised when a read or a procedure call against the store fails."""


@dataclass(frozen=True)
class PurgeResult:
    success: bool
    deleted_count: int
    message: str


class SlabStore(Protocol):
    user_id: str

    def fetch_slabs(self, offset: int, limit: int) -> list[Slab]: ...

    def fetch_entry_numbers(self, offset: int, limit: int) -> list[str]: ...

    def fetch_materials(self, offset: int, limit: int) -> list[Material]: ...

    def find_material_by_ref(self, ref: str) -> Material | None: ...

    def insert_material(self, material: Material) -> Material: ...

    def insert_slabs(
        self,
        rows: Sequence[SlabInsert],
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> int: ...

    def find_compatible_slabs(
        self,
        user_id: str,
        length: float | None,
        width: float | None,
        thickness: float | None,
        material: str | None,
        tolerance: float,
    ) -> list[dict[str, Any]]: ...

    def delete_all_user_slabs(self, user_id: str) -> PurgeResult: ...


def read_all(fetch: Callable[[int, int], list[Any]], page_size: int = 1000) -> list[Any]:
    """Drain a paginated reader until a short page is returned."""
    return list(_iter_pages(fetch, page_size))


def _iter_pages(fetch: Callable[[int, int], list[Any]], page_size: int) -> Iterator[Any]:
    if page_size < 1:
        raise ValueError("page_size must be positive")
    offset = 0
    while True:
        page = fetch(offset, page_size)
        yield from page
        if len(page) < page_size:
            return
        offset += page_size


def _float_or_none(value: Any) -> float | None:
    return None if value is None else float(value)


def _enum_or_default(enum_cls: type[E], value: Any, default: E, column: str) -> E:
    if not value:
        return default
    try:
        return enum_cls(value)
    except ValueError as e:
        raise StoreError(f"unexpected {column} value: {value!r}") from e


def slab_from_record(rec: dict[str, Any]) -> Slab:
    return Slab(
        id=str(rec["id"]),
        user_id=str(rec["user_id"]),
        position=rec["position"],
        material=rec["material"],
        length=float(rec["length"]),
        width=float(rec["width"]),
        thickness=float(rec["thickness"]),
        status=_enum_or_default(SlabStatus, rec.get("status"), SlabStatus.AVAILABLE, "slabs.status"),
        quantity=int(rec.get("quantity") or 1),
        entry_number=rec.get("entry_number"),
        debit_sheet_id=(str(rec["debit_sheet_id"]) if rec.get("debit_sheet_id") else None),
        price_estimate=_float_or_none(rec.get("price_estimate")),
        created_at=rec.get("created_at"),
        updated_at=rec.get("updated_at"),
    )


def material_from_record(rec: dict[str, Any]) -> Material:
    return Material(
        id=str(rec["id"]) if rec.get("id") is not None else None,
        name=rec["name"],
        ref=rec.get("ref"),
        type=_enum_or_default(MaterialType, rec.get("type"), MaterialType.BLOCK, "materials.type"),
        thickness=_float_or_none(rec.get("thickness")),
        cmup=_float_or_none(rec.get("cmup")),
        is_active=bool(rec.get("is_active", True)),
    )


class PgSlabStore:
    """SlabStore over a psycopg2 cursor.

    The connection is expected in autocommit mode: every insert call is its
    own transaction, which makes a failed batch retryable without touching
    batches already written.
    """

    def __init__(self, cursor: Any, user_id: str) -> None:
        self.cursor = cursor
        self.user_id = user_id

    def _query(self, sql: str, params: Sequence[Any]) -> list[dict[str, Any]]:
        try:
            self.cursor.execute(sql, params)
            names = [d[0] for d in self.cursor.description]
            return [dict(zip(names, row, strict=True)) for row in self.cursor.fetchall()]
        except psycopg2.Error as e:
            raise StoreError(str(e).strip() or type(e).__name__) from e

    def fetch_slabs(self, offset: int, limit: int) -> list[Slab]:
        cols = ", ".join(SLAB_COLUMNS)
        recs = self._query(
            f"SELECT {cols} FROM slabs WHERE user_id = %s ORDER BY position, id LIMIT %s OFFSET %s",
            (self.user_id, limit, offset),
        )
        return [slab_from_record(r) for r in recs]

    def fetch_entry_numbers(self, offset: int, limit: int) -> list[str]:
        recs = self._query(
            "SELECT entry_number FROM slabs WHERE user_id = %s AND entry_number IS NOT NULL "
            "ORDER BY entry_number LIMIT %s OFFSET %s",
            (self.user_id, limit, offset),
        )
        return [r["entry_number"] for r in recs]

    def fetch_materials(self, offset: int, limit: int) -> list[Material]:
        cols = ", ".join(MATERIAL_COLUMNS)
        recs = self._query(
            f"SELECT {cols} FROM materials ORDER BY name, id LIMIT %s OFFSET %s",
            (limit, offset),
        )
        return [material_from_record(r) for r in recs]

    def find_material_by_ref(self, ref: str) -> Material | None:
        cols = ", ".join(MATERIAL_COLUMNS)
        recs = self._query(
            f"SELECT {cols} FROM materials WHERE lower(ref) = lower(%s) LIMIT 1",
            (ref,),
        )
        return material_from_record(recs[0]) if recs else None

    def insert_material(self, material: Material) -> Material:
        cols = ", ".join(MATERIAL_COLUMNS)
        recs = self._query(
            "INSERT INTO materials (name, ref, type, thickness, cmup, is_active) "
            f"VALUES (%s, %s, %s, %s, %s, %s) RETURNING {cols}",
            (
                material.name,
                material.ref,
                material.type.value,
                material.thickness,
                material.cmup,
                material.is_active,
            ),
        )
        return material_from_record(recs[0])

    def insert_slabs(
        self,
        rows: Sequence[SlabInsert],
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> int:
        values = []
        for row in rows:
            rec = row.to_record()
            values.append([rec[c] for c in SLAB_INSERT_COLUMNS])
        result = batch_insert(
            self.cursor,
            "slabs",
            SLAB_INSERT_COLUMNS,
            values,
            metrics_callback=metrics_callback,
        )
        return result.inserted_rows

    def find_compatible_slabs(
        self,
        user_id: str,
        length: float | None,
        width: float | None,
        thickness: float | None,
        material: str | None,
        tolerance: float,
    ) -> list[dict[str, Any]]:
        return self._query(
            "SELECT * FROM find_compatible_slabs("
            "p_user_id => %s, p_length => %s, p_width => %s, p_thickness => %s, "
            "p_material => %s, p_tolerance => %s)",
            (user_id, length, width, thickness, material, tolerance),
        )

    def delete_all_user_slabs(self, user_id: str) -> PurgeResult:
        recs = self._query("SELECT delete_all_user_slabs(p_user_id => %s) AS result", (user_id,))
        payload = recs[0]["result"] if recs else None
        if not isinstance(payload, dict):
            raise StoreError(f"unexpected delete_all_user_slabs result: {payload!r}")
        return PurgeResult(
            success=bool(payload.get("success")),
            deleted_count=int(payload.get("deleted_count") or 0),
            message=str(payload.get("message") or ""),
        )
