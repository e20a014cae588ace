from __future__ import annotations

import logging
from calendar import monthrange
from datetime import date
from io import BytesIO
from pathlib import Path
from typing import Dict, Iterable, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from . import services

logger = logging.getLogger(__name__)

FIRST_DATA_ROW = 11
FIRST_DAY_COLUMN = 2

_WEEKEND_FILL = PatternFill("solid", start_color="D9D9D9", end_color="D9D9D9")
_HOLIDAY_FILL = PatternFill("solid", start_color="BFBFBF", end_color="BFBFBF")
_THIN = Side(style="thin", color="999999")
_BORDER = Border(left=_THIN, right=_THIN, top=_THIN, bottom=_THIN)


class TemplateNotFoundError(Exception):
    pass


def data_row_for_month(month: int) -> int:
    return FIRST_DATA_ROW + (month - 1) * 2


def _build_blank_sheet(ws, year: int, holiday_dates: Iterable[date]) -> None:
    """Lay out the FZul grid with the same cell map as the official template."""
    holidays = set(holiday_dates)
    header_font = Font(bold=True)

    ws["A1"] = "Stundenaufzeichnung für FuE-Tätigkeiten in einem FuE-Vorhaben"
    ws["A1"].font = Font(bold=True, size=12)
    ws["AA3"] = "Wirtschaftsjahr:"
    ws["AA3"].alignment = Alignment(horizontal="right")
    ws["A6"] = "Name:"
    ws["K6"] = "Vorname:"
    ws["A9"] = "Monat"
    ws["A9"].font = header_font
    for day in range(1, 32):
        cell = ws.cell(row=9, column=day + FIRST_DAY_COLUMN - 1, value=day)
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center")
    sum_column = 31 + FIRST_DAY_COLUMN
    ws.cell(row=9, column=sum_column, value="insg.").font = header_font

    for month in range(1, 13):
        row = data_row_for_month(month)
        ws.cell(row=row, column=1, value=services.MONTH_NAMES[month - 1]).font = header_font
        days_in_month = monthrange(year, month)[1]
        for day in range(1, 32):
            cell = ws.cell(row=row, column=day + FIRST_DAY_COLUMN - 1)
            cell.border = _BORDER
            cell.alignment = Alignment(horizontal="center")
            if day > days_in_month:
                continue
            current = date(year, month, day)
            if current in holidays:
                cell.fill = _HOLIDAY_FILL
            elif current.weekday() >= 5:
                cell.fill = _WEEKEND_FILL
        first = ws.cell(row=row, column=FIRST_DAY_COLUMN).coordinate
        last = ws.cell(row=row, column=31 + FIRST_DAY_COLUMN - 1).coordinate
        total = ws.cell(row=row, column=sum_column, value=f"=SUM({first}:{last})")
        total.font = header_font
        total.border = _BORDER

    ws["A38"] = "Wochenarbeitszeit:"
    ws["A39"] = "Urlaubstage:"
    ws["H39"] = "Urlaubsstunden:"

    ws.column_dimensions["A"].width = 12
    for day in range(1, 32):
        column_letter = ws.cell(row=9, column=day + FIRST_DAY_COLUMN - 1).column_letter
        ws.column_dimensions[column_letter].width = 5


def export_fzul_workbook(
    *,
    employee_name: str,
    year: int,
    day_data: Dict[int, Dict[int, object]],
    weekly_hours: float,
    annual_leave_days: float,
    holiday_dates: Iterable[date],
    template_path: Optional[Path] = None,
    require_template: bool = False,
) -> BytesIO:
    """Fill the FZul hour sheet with the free FuE hours of every workday.

    ``day_data`` maps month -> day -> object with ``hours`` and ``absence``.
    Sums are left to the workbook formulas.
    """
    holidays = set(holiday_dates)
    last_name, first_name = services.split_employee_name(employee_name)

    if template_path is not None and template_path.exists():
        wb = load_workbook(template_path)
        ws = wb.worksheets[0]
        logger.info("FZul-Vorlage geladen: %s", template_path)
    elif require_template:
        raise TemplateNotFoundError(str(template_path))
    else:
        wb = Workbook()
        ws = wb.active
        ws.title = "FZul"
        _build_blank_sheet(ws, year, holidays)

    ws["B6"] = last_name
    ws["M6"] = first_name
    ws["AD3"] = year

    for month in range(1, 13):
        row = data_row_for_month(month)
        for day in range(1, 32):
            ws.cell(row=row, column=day + FIRST_DAY_COLUMN - 1).value = None

    free_hours = services.fzul_free_hours(year, day_data, weekly_hours, holidays)
    for current, hours in free_hours.items():
        ws.cell(row=data_row_for_month(current.month), column=current.day + FIRST_DAY_COLUMN - 1).value = hours

    max_daily = weekly_hours / 5
    ws["C38"] = weekly_hours
    ws["F39"] = annual_leave_days
    ws["J39"] = annual_leave_days * max_daily

    buffer = BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer
