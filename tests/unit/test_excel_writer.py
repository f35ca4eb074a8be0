from __future__ import annotations

import io
from datetime import date

import pytest
from openpyxl import load_workbook

from conftest import make_slab
from slabstock.excel.writer import (
    REPORT_HEADERS,
    SHEET_TITLE,
    build_report_rows,
    enrich_slabs,
    export_filename,
    generate_slab_report,
    group_by_material,
)
from slabstock.models.material import Material


@pytest.fixture()
def stock():
    return [
        make_slab(ident="1", material="Marbre", position="B2", length=200, width=100, quantity=1),
        make_slab(ident="2", material="Granit", position="C1", length=300, width=150),
        make_slab(ident="3", material="Granit", position="A4", length=100, width=100),
    ]


@pytest.fixture()
def catalog():
    return [
        Material(id="m1", name="GRANIT", ref="GRA", cmup=50.0),
        Material(id="m2", name="Ardoise", ref="ARD", cmup=10.0),
    ]


def test_groups_sorted_by_material_then_position(stock, catalog):
    groups = group_by_material(enrich_slabs(stock, catalog))
    assert [g.material for g in groups] == ["Granit", "Marbre"]
    assert [s.slab.position for s in groups[0].slabs] == ["A4", "C1"]


def test_report_rows_layout_and_sequence_numbers(stock, catalog):
    rows = build_report_rows(group_by_material(enrich_slabs(stock, catalog)))
    assert rows[0] == REPORT_HEADERS
    granit_total, a4, c1, marbre_total, b2 = rows[1:]

    assert granit_total[:3] == ["", "", "Granit"]
    assert granit_total[8] == pytest.approx(1.0 + 4.5)
    assert granit_total[11] == pytest.approx(5.5 * 50)

    assert [a4[0], c1[0], b2[0]] == [1, 2, 3]
    assert a4[1:4] == ["GRA", "Granit", "A4"]
    assert a4[8] == pytest.approx(1.0)
    assert a4[9] == ""
    assert a4[10] == 50.0
    assert a4[11] == pytest.approx(50.0)

    # unknown material: "?" ref and zero cmup
    assert b2[1] == "?"
    assert b2[10] == 0.0
    assert marbre_total[11] == 0


def test_rendered_workbook_styles(stock, catalog):
    wb = load_workbook(io.BytesIO(generate_slab_report(stock, catalog)))
    ws = wb.active
    assert ws.title == SHEET_TITLE
    assert [c.value for c in ws[1]] == REPORT_HEADERS
    assert ws["A1"].font.bold
    assert ws["A1"].fill.start_color.rgb.endswith("70AD47")
    assert ws.column_dimensions["C"].width == 30

    # row 2 is the first subtotal row
    assert ws["A2"].value is None
    assert ws["C2"].value == "Granit"
    assert ws["C2"].font.bold
    assert ws["C2"].fill.start_color.rgb.endswith("D9D9D9")
    assert ws["I2"].number_format == "0.00"

    assert ws["A3"].value == 1
    assert ws["E3"].number_format == "0"
    assert ws["L3"].number_format == "0.00"
    assert ws["E3"].border.left.style == "thin"


def test_empty_stock_renders_header_only():
    wb = load_workbook(io.BytesIO(generate_slab_report([], [])))
    assert wb.active.max_row == 1


def test_export_filename_uses_iso_date():
    assert export_filename(date(2024, 3, 7)) == "Stock_Tranches_2024-03-07.xlsx"
