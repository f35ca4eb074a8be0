from __future__ import annotations

import io
import logging
import math
import zipfile
from collections.abc import Sequence
from pathlib import Path
from typing import IO, Any

import pandas as pd

from ..models.parsed_row import ParsedSlabRow, ParseResult, ParseStats, RowError
from ..models.slab import is_valid_position

"""Slab stock workbook decoder.

Row 1 of the first sheet is the header, rows 2+ are data. Header cells are
matched case-insensitively against synonym lists; the six required columns
must all be present before any data row is looked at.

Per-row validation problems never abort the decode: the row is left out of
the valid set and a (line, message) error is recorded. Positions outside the A1..L8
park grid are kept and logged as a warning. The decoder touches no
shared state and may be called concurrently.
"""

__all__ = [
    "COLUMN_SYNONYMS",
    "REQUIRED_COLUMNS",
    "SpreadsheetReadError",
    "MissingColumnsError",
    "WorkbookSource",
    "read_first_sheet",
    "find_column_index",
    "parse_slab_workbook",
    "parse_slab_grid",
]

logger = logging.getLogger(__name__)

WorkbookSource = bytes | str | Path | IO[bytes]

COLUMN_SYNONYMS: dict[str, tuple[str, ...]] = {
    "entry_number": ("n°saisie", "nsaisie", "numero saisie", "entry number"),
    "ref": ("ref", "référence"),
    "material": ("matière", "matiere"),
    "position": ("allée", "allee"),
    "length": ("longueur",),
    "width": ("largeur",),
    "thickness": ("épaisseur", "epaisseur"),
    "quantity": ("nbre", "nombre", "qté", "quantité"),
    "value": ("valeur", "value"),
    "cmup": ("cmup", "prix", "price"),
}

# checked in this order, the first missing one is reported
REQUIRED_COLUMNS = ("ref", "material", "position", "length", "width", "thickness")

_COLUMN_LABELS = {
    "ref": "Ref",
    "material": "Matière",
    "position": "Allée",
    "length": "Longueur",
    "width": "Largeur",
    "thickness": "Épaisseur",
}


class SpreadsheetReadError(Exception):
    """Raised when the workbook cannot be read or holds no data rows."""


class MissingColumnsError(Exception):
    """Raised when a required column is absent from the header row."""

    def __init__(self, column: str) -> None:
        self.column = column
        super().__init__(f'missing column "{_COLUMN_LABELS.get(column, column)}"')


def read_first_sheet(source: WorkbookSource) -> pd.DataFrame:
    """Read the first worksheet as a raw grid (no header inference).

    Cell strings such as "NA" are kept verbatim: material refs may look like
    pandas NA markers.
    """
    if isinstance(source, bytes):
        source = io.BytesIO(source)
    try:
        return pd.read_excel(source, sheet_name=0, header=None, keep_default_na=False, na_values=[""])
    except (ValueError, KeyError, OSError, zipfile.BadZipFile) as e:
        raise SpreadsheetReadError(f"unable to read workbook: {e}") from e


def _is_blank(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _cell_text(value: Any) -> str | None:
    """Trimmed text of a cell; integral floats lose their ``.0``."""
    if _is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _parse_number(value: Any) -> float | None:
    """Finite float from a cell, accepting comma decimals; None if unparsable."""
    if _is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(" ", "").replace(",", ".")
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def find_column_index(headers: Sequence[str], possible_names: Sequence[str]) -> int:
    """Index of the first header equal to one of ``possible_names``, else -1.

    Synonyms are tried in order, so an earlier synonym wins over a later one
    even if the later one appears further left in the header row.
    """
    for name in possible_names:
        for idx, header in enumerate(headers):
            if header == name:
                return idx
    return -1


def _cell(row: Sequence[Any], index: int) -> Any:
    if index < 0 or index >= len(row):
        return None
    return row[index]


def parse_slab_grid(grid: Sequence[Sequence[Any]]) -> ParseResult:
    """Decode an already materialized row-major grid.

    Raises:
        SpreadsheetReadError: fewer than two rows (header + one data row)
        MissingColumnsError: a required header is absent
    """
    if len(grid) < 2:
        raise SpreadsheetReadError("workbook does not contain enough data")

    headers = ["" if _is_blank(h) else str(h).lower().strip() for h in grid[0]]
    cols = {key: find_column_index(headers, names) for key, names in COLUMN_SYNONYMS.items()}
    for key in REQUIRED_COLUMNS:
        if cols[key] == -1:
            raise MissingColumnsError(key)

    rows: list[ParsedSlabRow] = []
    errors: list[RowError] = []
    skipped = 0

    for i in range(1, len(grid)):
        raw = grid[i]
        line = i + 1

        position = _cell(raw, cols["position"])
        length = _cell(raw, cols["length"])
        width = _cell(raw, cols["width"])
        thickness = _cell(raw, cols["thickness"])

        if all(_is_blank(v) for v in (position, length, width, thickness)):
            skipped += 1
            continue

        material = _cell_text(_cell(raw, cols["material"]))
        ref = _cell_text(_cell(raw, cols["ref"]))
        if material is None:
            errors.append(RowError(line, "material missing"))
            continue
        if ref is None:
            errors.append(RowError(line, "reference missing"))
            continue
        position_text = _cell_text(position)
        if position_text is None:
            errors.append(RowError(line, "position missing"))
            continue

        length_num = _parse_number(length)
        if length_num is None or length_num <= 0:
            errors.append(RowError(line, f"invalid length: {_echo(length)}"))
            continue
        width_num = _parse_number(width)
        if width_num is None or width_num <= 0:
            errors.append(RowError(line, f"invalid width: {_echo(width)}"))
            continue
        thickness_num = _parse_number(thickness)
        if thickness_num is None or thickness_num <= 0:
            errors.append(RowError(line, f"invalid thickness: {_echo(thickness)}"))
            continue

        raw_quantity = _cell(raw, cols["quantity"])
        quantity_num = 1.0 if _is_blank(raw_quantity) else _parse_number(raw_quantity)
        if quantity_num is None or quantity_num < 1:
            errors.append(RowError(line, f"invalid quantity: {_echo(raw_quantity)}"))
            continue
        if not is_valid_position(position_text):
            logger.warning("line %d: position %s is outside the park grid", line, position_text)

        rows.append(
            ParsedSlabRow(
                row_number=line,
                entry_number=_cell_text(_cell(raw, cols["entry_number"])),
                material=material,
                position=position_text,
                length=length_num,
                width=width_num,
                thickness=thickness_num,
                quantity=math.floor(quantity_num),
                ref=ref,
                value=_parse_number(_cell(raw, cols["value"])),
                cmup=_parse_number(_cell(raw, cols["cmup"])),
            )
        )

    return ParseResult(
        rows=rows,
        errors=errors,
        stats=ParseStats(
            total=len(grid) - 1,
            valid=len(rows),
            skipped=skipped,
            errors_count=len(errors),
        ),
    )


def _echo(value: Any) -> str:
    return "" if _is_blank(value) else str(value)


def parse_slab_workbook(source: WorkbookSource) -> ParseResult:
    """Decode the first sheet of a slab stock workbook."""
    df = read_first_sheet(source)
    grid = [list(r) for r in df.itertuples(index=False, name=None)]
    return parse_slab_grid(grid)
