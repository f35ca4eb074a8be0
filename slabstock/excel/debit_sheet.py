from __future__ import annotations

import io
import re
import zipfile
from typing import Any

import pandas as pd
from openpyxl.utils.cell import column_index_from_string, coordinate_from_string

from ..models.debit_sheet import DebitItem, DebitSheet
from .reader import SpreadsheetReadError, WorkbookSource, _is_blank

"""Production debit sheet decoder ("FICHE DEBIT DBPM").

Unlike the stock workbook, a debit sheet has a fixed layout:

- header cells: commercial C2, client C3, order number G2, site G3
- items from line 10 down to the first fully blank line (line 100 at most):
  A appliance no, B quantity, C material, D finish, E length, F width,
  G thickness, M m2, N m3

Surfaces are recomputed from thickness: below 8 cm an item counts in m2
only, from 8 cm up in m3 only.
"""

__all__ = [
    "DEBIT_SHEET_NAME",
    "parse_debit_workbook",
    "parse_debit_grid",
    "item_metrics",
]

DEBIT_SHEET_NAME = "FICHE DEBIT DBPM"
FIRST_ITEM_LINE = 10
LAST_ITEM_LINE = 100
VOLUME_THICKNESS_CM = 8
NOT_SPECIFIED = "Non spécifié"
VARIOUS = "Divers"

_TOTAL_KEYWORDS = ("total", "somme")
_NON_NUMERIC = re.compile(r"[^\d.\-]")


class _Grid:
    """A1-style cell access over a raw DataFrame."""

    def __init__(self, df: pd.DataFrame) -> None:
        self._df = df

    def text(self, ref: str) -> str:
        col_letter, row = coordinate_from_string(ref)
        r, c = row - 1, column_index_from_string(col_letter) - 1
        if r >= self._df.shape[0] or c >= self._df.shape[1]:
            return ""
        value = self._df.iat[r, c]
        if _is_blank(value):
            return ""
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value).strip()


def _parse_number(text: str) -> float:
    if not text:
        return 0.0
    cleaned = _NON_NUMERIC.sub("", re.sub(r"\s+", "", text).replace(",", "."))
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def item_metrics(length: float, width: float, thickness: float, quantity: float) -> tuple[float, float]:
    """(m2, m3) of an item following the thickness rule."""
    if thickness < VOLUME_THICKNESS_CM:
        return (length * width * quantity / 10000, 0.0)
    return (0.0, length * width * thickness * quantity / 1000000)


def _format_cm(value: float) -> str:
    return f"{int(value) if float(value).is_integer() else value}cm"


def _deduce_supply(items: list[DebitItem]) -> str:
    materials = {i.material.strip() for i in items if i.material and i.material.strip()}
    if not materials:
        return ""
    if len(materials) == 1:
        return next(iter(materials))
    return VARIOUS


def _deduce_thickness(items: list[DebitItem]) -> str:
    thicknesses = sorted({i.thickness for i in items if i.thickness > 0})
    if not thicknesses:
        return ""
    if len(thicknesses) <= 3:
        return ", ".join(_format_cm(t) for t in thicknesses)
    return VARIOUS


def parse_debit_grid(df: pd.DataFrame) -> DebitSheet:
    grid = _Grid(df)
    items: list[DebitItem] = []

    for line in range(FIRST_ITEM_LINE, LAST_ITEM_LINE + 1):
        appliance = grid.text(f"A{line}")
        quantity_text = grid.text(f"B{line}")
        material = grid.text(f"C{line}")
        finish = grid.text(f"D{line}")
        length_text = grid.text(f"E{line}")
        width_text = grid.text(f"F{line}")
        thickness_text = grid.text(f"G{line}")
        m2_text = grid.text(f"M{line}")
        m3_text = grid.text(f"N{line}")

        if not any((appliance, quantity_text, material, finish, length_text,
                    width_text, thickness_text, m2_text, m3_text)):
            break

        quantity = _parse_number(quantity_text)
        length = _parse_number(length_text)
        width = _parse_number(width_text)
        thickness = _parse_number(thickness_text)

        has_description = bool(appliance or material or finish)
        has_dimensions = quantity > 0 or length > 0 or width > 0 or thickness > 0
        is_total = any(
            kw in field.lower() for field in (appliance, material, finish) for kw in _TOTAL_KEYWORDS
        )
        if not has_description or not has_dimensions or is_total:
            continue

        description = material
        if finish:
            description = f"{description} - {finish}" if description else finish
        if not description and appliance:
            description = f"Appareil {appliance}"

        units = int(quantity) or 1
        m2, m3 = item_metrics(length, width, thickness, units)
        items.append(
            DebitItem(
                row_number=line,
                description=description,
                quantity=units,
                length=length,
                width=width,
                thickness=thickness,
                m2=m2,
                m3=m3,
                appliance_number=appliance or None,
                material=material or None,
                finish=finish or None,
            )
        )

    return DebitSheet(
        commercial=grid.text("C2") or NOT_SPECIFIED,
        client=grid.text("C3") or NOT_SPECIFIED,
        order_number=grid.text("G2"),
        site=grid.text("G3") or None,
        supply=_deduce_supply(items),
        thickness=_deduce_thickness(items),
        m2=sum(i.m2 for i in items),
        m3=sum(i.m3 for i in items),
        items=items,
    )


def parse_debit_workbook(source: WorkbookSource) -> DebitSheet:
    """Decode the debit sheet of a workbook.

    Raises:
        SpreadsheetReadError: unreadable workbook or no "FICHE DEBIT DBPM" sheet
    """
    if isinstance(source, bytes):
        source = io.BytesIO(source)
    try:
        with pd.ExcelFile(source) as xls:
            names = [str(n) for n in xls.sheet_names]
            if DEBIT_SHEET_NAME not in names:
                raise SpreadsheetReadError(
                    f'sheet "{DEBIT_SHEET_NAME}" not found, available: {", ".join(names)}'
                )
            df: Any = xls.parse(DEBIT_SHEET_NAME, header=None, keep_default_na=False, na_values=[""])
    except (ValueError, KeyError, OSError, zipfile.BadZipFile) as e:
        raise SpreadsheetReadError(f"unable to read workbook: {e}") from e
    return parse_debit_grid(df)
