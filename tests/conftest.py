# Shared pytest fixtures
from __future__ import annotations

import io
import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path

import pandas as pd
import pytest

from slabstock.db.batch_insert import BatchInsertError, BatchMetrics
from slabstock.db.store import PurgeResult
from slabstock.logging.init import reset_logging
from slabstock.models.material import Material
from slabstock.models.slab import Slab, SlabInsert, SlabStatus

STOCK_HEADERS = ["n°saisie", "Ref", "Matière", "Allée", "Longueur", "Largeur", "Épaisseur", "NBRE", "Valeur", "CMUP"]


class FakeStore:
    """In-memory SlabStore.

    ``fail_when`` decides, per insert call, whether the batch is rejected
    (it is asked again on every retry).
    """

    def __init__(
        self,
        slabs: Sequence[Slab] = (),
        materials: Sequence[Material] = (),
        user_id: str = "user-1",
        fail_when: Callable[[Sequence[SlabInsert]], bool] | None = None,
    ) -> None:
        self.user_id = user_id
        self.slabs: list[Slab] = list(slabs)
        self.materials: list[Material] = list(materials)
        self.fail_when = fail_when
        self.insert_calls: list[list[SlabInsert]] = []
        self.material_lookups: list[str] = []
        self.compatible_calls: list[tuple] = []
        self.compatible_rows: list[dict] = []
        self._next_id = 1

    def _id(self) -> str:
        ident = str(self._next_id)
        self._next_id += 1
        return ident

    def _own_slabs(self) -> list[Slab]:
        return sorted((s for s in self.slabs if s.user_id == self.user_id), key=lambda s: (s.position, s.id))

    def fetch_slabs(self, offset: int, limit: int) -> list[Slab]:
        return self._own_slabs()[offset:offset + limit]

    def fetch_entry_numbers(self, offset: int, limit: int) -> list[str]:
        numbers = sorted(s.entry_number for s in self._own_slabs() if s.entry_number is not None)
        return numbers[offset:offset + limit]

    def fetch_materials(self, offset: int, limit: int) -> list[Material]:
        return self.materials[offset:offset + limit]

    def find_material_by_ref(self, ref: str) -> Material | None:
        self.material_lookups.append(ref)
        for m in self.materials:
            if m.ref is not None and m.ref.lower() == ref.lower():
                return m
        return None

    def insert_material(self, material: Material) -> Material:
        created = Material(
            id=f"m{self._id()}",
            name=material.name,
            ref=material.ref,
            type=material.type,
            thickness=material.thickness,
            cmup=material.cmup,
            is_active=material.is_active,
        )
        self.materials.append(created)
        return created

    def insert_slabs(
        self,
        rows: Sequence[SlabInsert],
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> int:
        batch = list(rows)
        self.insert_calls.append(batch)
        if metrics_callback is not None:
            metrics_callback(BatchMetrics(batch_size=len(batch), elapsed_seconds=0.01, start_time=0.0, end_time=0.01))
        if self.fail_when is not None and self.fail_when(batch):
            raise BatchInsertError("connection reset by peer")
        for r in batch:
            self.slabs.append(
                Slab(
                    id=self._id(),
                    user_id=r.user_id,
                    position=r.position,
                    material=r.material,
                    length=r.length,
                    width=r.width,
                    thickness=r.thickness,
                    status=r.status,
                    quantity=r.quantity,
                    entry_number=r.entry_number,
                    price_estimate=r.price_estimate,
                )
            )
        return len(batch)

    def find_compatible_slabs(self, user_id, length, width, thickness, material, tolerance):
        self.compatible_calls.append((user_id, length, width, thickness, material, tolerance))
        return list(self.compatible_rows)

    def delete_all_user_slabs(self, user_id: str) -> PurgeResult:
        before = len(self.slabs)
        self.slabs = [s for s in self.slabs if s.user_id != user_id]
        deleted = before - len(self.slabs)
        return PurgeResult(success=True, deleted_count=deleted, message=f"{deleted} slabs deleted")


class ScriptedCursor:
    """psycopg2-like cursor returning the queued (columns, rows) result sets in order."""

    def __init__(self, results=()) -> None:
        self.results = list(results)
        self.executed: list[tuple[str, tuple]] = []
        self.description = None
        self._rows: list[tuple] = []

    def execute(self, sql, params=None):
        self.executed.append((sql, params))
        columns, rows = self.results.pop(0)
        self.description = [(c,) for c in columns]
        self._rows = rows

    def fetchall(self):
        return self._rows


def make_slab(
    position: str = "A1",
    material: str = "Granit Blanc K2",
    length: float = 300,
    width: float = 150,
    thickness: float = 2,
    status: SlabStatus = SlabStatus.AVAILABLE,
    ident: str = "s1",
    **kwargs,
) -> Slab:
    return Slab(
        id=ident,
        user_id=kwargs.pop("user_id", "user-1"),
        position=position,
        material=material,
        length=length,
        width=width,
        thickness=thickness,
        status=status,
        **kwargs,
    )


def workbook_bytes(rows: Sequence[Sequence[object]], headers: Sequence[str] | None = STOCK_HEADERS) -> bytes:
    """First sheet = optional header row followed by ``rows`` (None = empty cell)."""
    grid = ([list(headers)] if headers is not None else []) + [list(r) for r in rows]
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        pd.DataFrame(grid).to_excel(writer, sheet_name="Stock", header=False, index=False)
    return buf.getvalue()


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("SLABSTOCK_USER_ID", raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """import:
  batch_size: 200
  max_attempts: 3
  retry_base_delay: 0
  page_size: 1000
  progress_clear_delay: 0
matching:
  default_tolerance: 5
  max_tolerance: 20
statistics:
  old_slab_days: 180
export:
  output_directory: ./exports
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: stock
user_id: user-1
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "slabstock.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def materials() -> list[Material]:
    from slabstock.models.material import MaterialType

    return [
        Material(id="m1", name="Granit Blanc K2", ref="BLC", type=MaterialType.SLAB, thickness=2, cmup=100.0),
        Material(id="m2", name="Noir Zimbabwe K3", ref="NRZ", type=MaterialType.SLAB, thickness=3, cmup=200.0),
    ]


@pytest.fixture()
def fake_store(materials) -> FakeStore:
    return FakeStore(materials=materials)
