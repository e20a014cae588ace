from __future__ import annotations

from datetime import date
from types import SimpleNamespace

import pytest
from openpyxl import Workbook, load_workbook

from app import excel_export


def _export(**overrides):
    params = dict(
        employee_name="Mustermann, Max",
        year=2024,
        day_data={1: {2: SimpleNamespace(hours=3, absence=None), 3: SimpleNamespace(hours=0, absence="U")}},
        weekly_hours=40,
        annual_leave_days=30,
        holiday_dates={date(2024, 1, 1)},
    )
    params.update(overrides)
    return load_workbook(excel_export.export_fzul_workbook(**params)).worksheets[0]


def test_generated_workbook_uses_the_form_cell_map():
    sheet = _export()

    assert sheet["B6"].value == "Mustermann"
    assert sheet["M6"].value == "Max"
    assert sheet["AD3"].value == 2024
    assert sheet["C38"].value == 40
    assert sheet["F39"].value == 30
    assert sheet["J39"].value == 240

    january = excel_export.data_row_for_month(1)
    assert january == 11
    assert sheet.cell(row=january, column=2).value is None  # holiday
    assert sheet.cell(row=january, column=3).value == 5
    assert sheet.cell(row=january, column=4).value is None  # vacation
    assert sheet.cell(row=january, column=5).value == 8
    assert sheet.cell(row=january, column=7).value is None  # Saturday
    assert sheet.cell(row=excel_export.data_row_for_month(12), column=32).value == 8
    assert sheet.cell(row=january, column=33).value == "=SUM(B11:AF11)"


def test_template_is_filled_when_present(tmp_path):
    template = Workbook()
    template.active["A1"] = "Offizielle Vorlage"
    template.active["B11"] = 99
    path = tmp_path / "FZul_Vorlage.xlsx"
    template.save(path)

    sheet = _export(template_path=path)

    assert sheet["A1"].value == "Offizielle Vorlage"
    assert sheet["B11"].value is None
    assert sheet["C11"].value == 5
    assert sheet["B6"].value == "Mustermann"


def test_missing_template_falls_back_unless_required(tmp_path):
    missing = tmp_path / "fehlt.xlsx"
    sheet = _export(template_path=missing)
    assert sheet.title == "FZul"

    with pytest.raises(excel_export.TemplateNotFoundError):
        _export(template_path=missing, require_template=True)
