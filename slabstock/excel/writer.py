from __future__ import annotations

import io
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from ..models.material import Material
from ..models.slab import Slab

"""Slab stock report writer.

Layout of the single "Stock Tranches" sheet:

    header row
    <material A> subtotal row   (area in TOTAL, value in Valeur)
    data rows of material A     (sorted by position)
    <material B> subtotal row
    ...

Sequence numbers (first column) are given to data rows only and run across
the whole report.
"""

__all__ = [
    "SHEET_TITLE",
    "REPORT_HEADERS",
    "EnrichedSlab",
    "MaterialGroup",
    "enrich_slabs",
    "group_by_material",
    "build_report_rows",
    "render_workbook",
    "generate_slab_report",
    "export_filename",
]

SHEET_TITLE = "Stock Tranches"
UNKNOWN_REF = "?"

REPORT_HEADERS = [
    "n°saisie",
    "Ref",
    "Matière",
    "Allée",
    "Longueur",
    "Largeur",
    "Épaisseur",
    "NBRE",
    "TOTAL",
    "Stock",
    "CMUP",
    "Valeur",
]
COLUMN_WIDTHS = [12, 10, 30, 10, 12, 12, 12, 8, 12, 10, 12, 15]

# 1-based column indexes
TWO_DECIMAL_COLUMNS = {9, 11, 12}
INTEGER_COLUMNS = {5, 6, 7, 8}

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="70AD47", end_color="70AD47", fill_type="solid")
HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center")
SUBTOTAL_FONT = Font(bold=True)
SUBTOTAL_FILL = PatternFill(start_color="D9D9D9", end_color="D9D9D9", fill_type="solid")
SUBTOTAL_ALIGNMENT = Alignment(horizontal="left", vertical="center")
_GRAY_SIDE = Side(style="thin", color="CCCCCC")
THIN_BORDER = Border(left=_GRAY_SIDE, right=_GRAY_SIDE, top=_GRAY_SIDE, bottom=_GRAY_SIDE)


@dataclass(frozen=True)
class EnrichedSlab:
    slab: Slab
    ref: str
    cmup: float

    @property
    def area_m2(self) -> float:
        return self.slab.area_m2

    @property
    def value(self) -> float:
        return self.area_m2 * self.cmup


@dataclass
class MaterialGroup:
    material: str
    slabs: list[EnrichedSlab] = field(default_factory=list)

    @property
    def total_m2(self) -> float:
        return sum(s.area_m2 for s in self.slabs)

    @property
    def total_value(self) -> float:
        return sum(s.value for s in self.slabs)


def enrich_slabs(slabs: Iterable[Slab], materials: Iterable[Material]) -> list[EnrichedSlab]:
    """Attach ref and cmup by case-insensitive material name ("?" / 0 when unknown)."""
    by_name: dict[str, Material] = {}
    for m in materials:
        by_name.setdefault(m.name.lower(), m)

    enriched = []
    for slab in slabs:
        material = by_name.get(slab.material.lower())
        enriched.append(
            EnrichedSlab(
                slab=slab,
                ref=(material.ref if material and material.ref else UNKNOWN_REF),
                cmup=(material.cmup or 0.0) if material else 0.0,
            )
        )
    return enriched


def group_by_material(slabs: Iterable[EnrichedSlab]) -> list[MaterialGroup]:
    groups: dict[str, MaterialGroup] = {}
    for s in slabs:
        groups.setdefault(s.slab.material, MaterialGroup(material=s.slab.material)).slabs.append(s)

    ordered = []
    for name in sorted(groups):
        group = groups[name]
        group.slabs.sort(key=lambda s: s.slab.position)
        ordered.append(group)
    return ordered


def build_report_rows(groups: Sequence[MaterialGroup]) -> list[list[Any]]:
    """Header, then per group one subtotal row followed by its data rows."""
    rows: list[list[Any]] = [list(REPORT_HEADERS)]
    seq = 1
    for group in groups:
        rows.append(["", "", group.material, "", "", "", "", "", group.total_m2, "", "", group.total_value])
        for s in group.slabs:
            rows.append([
                seq,
                s.ref,
                s.slab.material,
                s.slab.position,
                s.slab.length,
                s.slab.width,
                s.slab.thickness,
                s.slab.quantity,
                s.area_m2,
                "",
                s.cmup,
                s.value,
            ])
            seq += 1
    return rows


def _is_subtotal(row: Sequence[Any]) -> bool:
    return row[0] == ""


def render_workbook(rows: Sequence[Sequence[Any]]) -> bytes:
    """Write rows to a styled single-sheet workbook and return the xlsx bytes."""
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    for values in rows:
        ws.append([None if v == "" else v for v in values])

    for idx, width in enumerate(COLUMN_WIDTHS, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = width

    ncols = len(REPORT_HEADERS)
    for col in range(1, ncols + 1):
        cell = ws.cell(row=1, column=col)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT

    for r, values in enumerate(rows[1:], start=2):
        subtotal = _is_subtotal(values)
        for col in range(1, ncols + 1):
            cell = ws.cell(row=r, column=col)
            if subtotal:
                cell.font = SUBTOTAL_FONT
                cell.fill = SUBTOTAL_FILL
                cell.alignment = SUBTOTAL_ALIGNMENT
            else:
                cell.border = THIN_BORDER
            if col in TWO_DECIMAL_COLUMNS:
                cell.number_format = "0.00"
            elif col in INTEGER_COLUMNS and not subtotal:
                cell.number_format = "0"

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def generate_slab_report(slabs: Iterable[Slab], materials: Iterable[Material]) -> bytes:
    groups = group_by_material(enrich_slabs(slabs, materials))
    return render_workbook(build_report_rows(groups))


def export_filename(today: date | None = None) -> str:
    today = today or date.today()
    return f"Stock_Tranches_{today.isoformat()}.xlsx"
