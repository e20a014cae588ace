"""PDF documents for ZIM projects: monthly timesheet and payment request annexes."""

from __future__ import annotations

from datetime import date
from io import BytesIO
from typing import Dict, List, Optional

from reportlab.lib.colors import Color
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from . import models, services
from .payment_requests import Calculation
from .pdf_drawing import FONT, FONT_BOLD, draw_line, draw_rect, draw_text, draw_text_centered, draw_text_right

HEADER_BLUE = Color(0.85, 0.92, 0.97)
ACCENT_BLUE = Color(0.75, 0.88, 0.95)
TABLE_HEADER = Color(0.78, 0.85, 0.92)
SUM_BLUE = Color(0.7, 0.82, 0.9)
DARK_GRAY = Color(0.3, 0.3, 0.3)
LIGHT_GRAY = Color(0.92, 0.92, 0.92)
WEEKEND_GRAY = Color(0.9, 0.9, 0.9)
HOLIDAY_GRAY = Color(0.85, 0.85, 0.85)
STRIPE_GRAY = Color(0.7, 0.7, 0.7)
ROW_ALTERNATE = Color(0.97, 0.97, 0.97)

MAX_WORK_PACKAGE_ROWS = 6


def _hatch(pdf, x, y, width, height, spacing=4):
    """Grey cell with diagonal stripes, used for public holidays."""
    draw_rect(pdf, x, y, width, height, fill=HOLIDAY_GRAY, stroke=None)
    pdf.saveState()
    path = pdf.beginPath()
    path.rect(x, y, width, height)
    pdf.clipPath(path, stroke=0, fill=0)
    pdf.setStrokeColor(STRIPE_GRAY)
    pdf.setLineWidth(0.5)
    offset = -height
    while offset < width + height:
        pdf.line(x + offset, y, x + offset + height, y + height)
        offset += spacing
    pdf.restoreState()


def _wrap(text: str, size: float, max_width: float, max_lines: int) -> List[str]:
    lines: List[str] = []
    current = ""
    for word in text.split(" "):
        candidate = f"{current} {word}" if current else word
        if current and stringWidth(candidate, FONT, size) > max_width:
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines[:max_lines]


def _format_date(value: date) -> str:
    return value.strftime("%d.%m.%Y")


# Monthly timesheet (Stundennachweis)

_MARGIN = 15
_COL_WP = 40
_COL_NAME = 165
_COL_DAY = 19
_COL_SUM = 42
_ROW = 14
_WP_ROW = 28
_FONT_SIZE = 6
_FONT_SMALL = 5.5


class _DayGrid:
    """Draws one table row of day cells with weekend and holiday shading."""

    def __init__(self, pdf, sheet: services.MonthlyTimesheet, x0: float):
        self.pdf = pdf
        self.sheet = sheet
        self.x0 = x0

    def row(
        self,
        y: float,
        height: float,
        values: Optional[Dict[int, float]] = None,
        *,
        fill: Optional[Color] = None,
        header_fill: Optional[Color] = None,
        show_zero: bool = False,
        font: str = FONT,
    ) -> float:
        total = 0.0
        x = self.x0
        for day in range(1, self.sheet.days + 1):
            weekend = self.sheet.is_weekend(day)
            if self.sheet.is_holiday(day) and not weekend:
                _hatch(self.pdf, x, y - height, _COL_DAY, height)
                draw_rect(self.pdf, x, y - height, _COL_DAY, height)
            else:
                cell_fill = WEEKEND_GRAY if weekend else (header_fill or fill)
                draw_rect(self.pdf, x, y - height, _COL_DAY, height, fill=cell_fill)
            if values is not None:
                hours = float(values.get(day, 0) or 0)
                total += hours
                text = services.format_hours_or_zero(hours) if show_zero else services.format_hours_blank(hours)
                if text:
                    text_y = y - height + 5 if height == _ROW else y - height / 2 - 2
                    draw_text_centered(self.pdf, x, text_y, _COL_DAY, text, _FONT_SMALL, font=font)
            x += _COL_DAY
        return total


def _timesheet_header(pdf, *, company_name, funding_reference, project_name, employee_label, year, month, width, y):
    header_height = 60
    total_width = width - 2 * _MARGIN
    left_width = total_width * 0.42
    right_width = total_width * 0.58
    right_x = _MARGIN + left_width

    draw_rect(pdf, _MARGIN, y - header_height, left_width, header_height)
    draw_text(pdf, _MARGIN + 5, y - 15, "Zuwendungsempfänger (Firmenstempel)", 7, color=DARK_GRAY)
    draw_text(pdf, _MARGIN + 10, y - 35, company_name, 11, font=FONT_BOLD)

    draw_rect(pdf, right_x, y - 20, right_width, 20, fill=HEADER_BLUE)
    draw_text(pdf, right_x + 5, y - 14, "Förderkennzeichen:", 8)
    draw_text(pdf, right_x + 90, y - 14, funding_reference, 10, font=FONT_BOLD)
    draw_rect(pdf, right_x, y - header_height, right_width, header_height - 20)
    draw_text(pdf, right_x + right_width / 2 - 40, y - 38, "Stundennachweis", 14, font=FONT_BOLD)
    draw_text(
        pdf,
        right_x + 5,
        y - 54,
        "Der Stundennachweis verbleibt beim Zuwendungsempfänger und ist nur nach Aufforderung vorzulegen.",
        5,
        color=DARK_GRAY,
    )
    y -= header_height + 5

    draw_rect(pdf, _MARGIN, y - 25, width - 2 * _MARGIN, 25)
    draw_text(pdf, _MARGIN + 5, y - 10, "Vorhabenthema", 7, color=DARK_GRAY)
    draw_text(pdf, _MARGIN + 5, y - 21, project_name, 10, font=FONT_BOLD)
    y -= 30

    month_width = 120
    draw_rect(pdf, _MARGIN, y - 25, month_width, 25)
    draw_text(pdf, _MARGIN + 5, y - 10, "Monat", 7, color=DARK_GRAY)
    draw_text(pdf, _MARGIN + 5, y - 21, f"{month:02d} / {year}", 10, font=FONT_BOLD)
    draw_rect(pdf, _MARGIN + month_width, y - 25, width - 2 * _MARGIN - month_width, 25)
    draw_text(pdf, _MARGIN + month_width + 5, y - 10, "Mitarbeiter(in): [Name, Vorname]", 7, color=DARK_GRAY)
    draw_text(pdf, _MARGIN + month_width + 5, y - 21, employee_label, 10, font=FONT_BOLD)
    y -= 30

    draw_text(
        pdf,
        _MARGIN,
        y - 8,
        "Die zu Lasten des Vorhabens abzurechnenden Personalstunden sind täglich eigenhändig von der "
        "betreffenden Person zu erfassen.",
        6,
        color=DARK_GRAY,
    )
    draw_text(
        pdf,
        _MARGIN,
        y - 16,
        "Nur die produktiven, für das Vorhaben geleisteten Stunden sind zuwendungsfähig.",
        6,
        color=DARK_GRAY,
    )
    return y - 25


def _absence_row(pdf, grid: _DayGrid, x0, y, label, values: Dict[int, float]) -> float:
    draw_rect(pdf, x0, y - _ROW, _COL_WP + _COL_NAME, _ROW)
    draw_text(pdf, x0 + _COL_WP + 5, y - _ROW + 5, label, _FONT_SIZE)
    total = grid.row(y, _ROW, values)
    sum_x = x0 + _COL_WP + _COL_NAME + grid.sheet.days * _COL_DAY
    draw_rect(pdf, sum_x, y - _ROW, _COL_SUM, _ROW)
    draw_text_centered(pdf, sum_x, y - _ROW + 5, _COL_SUM, services.format_hours_or_zero(total), _FONT_SIZE)
    return y - _ROW


_FOOTNOTES = (
    (
        "(1) Die geleisteten Projektbearbeitungsstunden sind für den gesamten Bewilligungszeitraum eigenhändig "
        "und zeitnah, d.h. mindestens",
        "     innerhalb einer Woche zu erfassen. Die Angaben sind subventionserheblich im Sinne des § 264 "
        "Strafgesetzbuch.",
    ),
    (
        "(2) Förderbar pro Monat sind die tatsächlich für das Projekt geleisteten Stunden, jedoch nicht mehr "
        "als arbeitsvertraglich, betrieblich",
        "     oder tariflich vereinbart, maximal in Höhe von 52 (Wochen) / 12 (Monate) x Wochenarbeitszeit. "
        "Überstunden sind nicht förderbar.",
    ),
)


def export_monthly_timesheet_pdf(
    *,
    company_name: str,
    project: models.Project,
    employee: models.UserProfile,
    sheet: services.MonthlyTimesheet,
    work_package_names: Dict[str, str],
) -> BytesIO:
    """ZIM monthly timesheet of one employee and project on a landscape page."""
    buffer = BytesIO()
    page_size = landscape(A4)
    width, height = page_size
    pdf = canvas.Canvas(buffer, pagesize=page_size)
    pdf.setTitle(f"Stundennachweis {employee.last_name or employee.name} {sheet.year}-{sheet.month:02d}")

    employee_label = f"{employee.last_name or ''} {employee.first_name or ''}".strip() or (employee.name or "")
    y = _timesheet_header(
        pdf,
        company_name=company_name,
        funding_reference=project.funding_reference or "",
        project_name=project.name or "",
        employee_label=employee_label,
        year=sheet.year,
        month=sheet.month,
        width=width,
        y=height - _MARGIN,
    )

    days = sheet.days
    table_width = _COL_WP + _COL_NAME + days * _COL_DAY + _COL_SUM
    x0 = (width - table_width) / 2
    days_x = x0 + _COL_WP + _COL_NAME
    sum_x = days_x + days * _COL_DAY
    grid = _DayGrid(pdf, sheet, days_x)

    draw_rect(pdf, x0, y - _ROW, _COL_WP + _COL_NAME, _ROW, fill=HEADER_BLUE)
    draw_text(pdf, x0 + 5, y - _ROW + 5, "Arbeitszeiten in Stunden je Kalendertag:", 7, font=FONT_BOLD)
    grid.row(y, _ROW, header_fill=HEADER_BLUE)
    for day in range(1, days + 1):
        draw_text_centered(pdf, days_x + (day - 1) * _COL_DAY, y - _ROW + 5, _COL_DAY, f"{day:02d}", _FONT_SIZE, font=FONT_BOLD)
    draw_rect(pdf, sum_x, y - _ROW, _COL_SUM, _ROW, fill=HEADER_BLUE)
    draw_text_centered(pdf, sum_x, y - _ROW + 5, _COL_SUM, "Summe", _FONT_SMALL, font=FONT_BOLD)
    y -= _ROW

    draw_rect(pdf, x0, y - _ROW, _COL_WP, _ROW, fill=HEADER_BLUE)
    draw_text(pdf, x0 + 5, y - _ROW + 5, "AP", _FONT_SIZE, font=FONT_BOLD)
    draw_rect(pdf, x0 + _COL_WP, y - _ROW, _COL_NAME, _ROW, fill=HEADER_BLUE)
    draw_text(pdf, x0 + _COL_WP + 5, y - _ROW + 5, "förderbare Projektarbeiten (1)", _FONT_SIZE, font=FONT_BOLD)
    grid.row(y, _ROW, header_fill=HEADER_BLUE)
    draw_rect(pdf, sum_x, y - _ROW, _COL_SUM, _ROW, fill=HEADER_BLUE)
    draw_text_centered(pdf, sum_x, y - _ROW + 5, _COL_SUM, "Monat", _FONT_SMALL, font=FONT_BOLD)
    y -= _ROW

    draw_rect(pdf, x0, y - _ROW, _COL_WP, _ROW)
    draw_text(pdf, x0 + 5, y - _ROW + 5, "Nr.", _FONT_SIZE)
    draw_rect(pdf, x0 + _COL_WP, y - _ROW, _COL_NAME, _ROW)
    draw_text(pdf, x0 + _COL_WP + 5, y - _ROW + 5, "Kurzbezeichnung des Arbeitspakets", _FONT_SIZE)
    grid.row(y, _ROW)
    draw_rect(pdf, sum_x, y - _ROW, _COL_SUM, _ROW)
    y -= _ROW

    codes = list(sheet.project_hours.keys())
    billable_by_day: Dict[int, float] = {}
    for index in range(MAX_WORK_PACKAGE_ROWS):
        code = codes[index] if index < len(codes) else ""
        values = sheet.project_hours.get(code, {}) if code else {}
        for day, hours in values.items():
            billable_by_day[day] = billable_by_day.get(day, 0.0) + hours

        draw_rect(pdf, x0, y - _WP_ROW, _COL_WP, _WP_ROW)
        if code and code != services.NO_WORK_PACKAGE:
            draw_text_centered(pdf, x0, y - _WP_ROW / 2 - 2, _COL_WP, code[:8], _FONT_SIZE)
        draw_rect(pdf, x0 + _COL_WP, y - _WP_ROW, _COL_NAME, _WP_ROW)
        name = work_package_names.get(code, "") if code and code != services.NO_WORK_PACKAGE else ""
        if name:
            lines = _wrap(name, _FONT_SIZE, _COL_NAME - 6, 3)
            line_height = 7
            start_y = y - _WP_ROW / 2 + (len(lines) - 1) * line_height / 2
            for line_index, line in enumerate(lines):
                draw_text(pdf, x0 + _COL_WP + 3, start_y - line_index * line_height, line, _FONT_SIZE)
        row_total = grid.row(y, _WP_ROW, values)
        draw_rect(pdf, sum_x, y - _WP_ROW, _COL_SUM, _WP_ROW)
        draw_text_centered(pdf, sum_x, y - _WP_ROW / 2 - 2, _COL_SUM, services.format_hours_or_zero(row_total), _FONT_SIZE)
        y -= _WP_ROW

    if len(codes) > MAX_WORK_PACKAGE_ROWS:
        # hours of further work packages still count towards the daily sums
        for code in codes[MAX_WORK_PACKAGE_ROWS:]:
            for day, hours in sheet.project_hours[code].items():
                billable_by_day[day] = billable_by_day.get(day, 0.0) + hours

    draw_rect(pdf, x0, y - _ROW, _COL_WP + _COL_NAME, _ROW, fill=ACCENT_BLUE)
    draw_text(pdf, x0 + 5, y - _ROW + 5, "Summe der förderbaren Stunden (2)", _FONT_SIZE, font=FONT_BOLD)
    billable_total = grid.row(y, _ROW, billable_by_day, fill=ACCENT_BLUE, show_zero=True, font=FONT_BOLD)
    draw_rect(pdf, sum_x, y - _ROW, _COL_SUM, _ROW, fill=ACCENT_BLUE)
    draw_text_centered(
        pdf, sum_x, y - _ROW + 5, _COL_SUM, services.format_hours_or_zero(billable_total), _FONT_SIZE, font=FONT_BOLD
    )
    y -= _ROW

    y = _absence_row(pdf, grid, x0, y, "Nicht zuschussfähige Arbeiten", {})
    y = _absence_row(pdf, grid, x0, y, "Urlaub (nur bezahlten Urlaub aufführen)", sheet.vacation_hours)
    y = _absence_row(pdf, grid, x0, y, "Krankheit (nur bei Lohn- und Gehaltsfortzahlung)", sheet.sick_hours)
    y = _absence_row(pdf, grid, x0, y, "Sonstige bezahlte Ausfallzeiten (z.B. Feiertage)", sheet.holiday_hours)
    y -= 10

    for first, second in _FOOTNOTES:
        draw_text(pdf, _MARGIN, y - 8, first, 5, color=DARK_GRAY)
        draw_text(pdf, _MARGIN, y - 15, second, 5, color=DARK_GRAY)
        y -= 22
    y -= 8

    signature_width = (width - 2 * _MARGIN - 40) / 2
    signed_on = services.last_workday_of_month(sheet.year, sheet.month).strftime("%d.%m.%y")
    right_x = width - _MARGIN - signature_width
    draw_text(pdf, _MARGIN, y - 8, signed_on, 8)
    draw_line(pdf, _MARGIN, y - 20, _MARGIN + signature_width, y - 20)
    draw_text(pdf, _MARGIN, y - 30, "Datum / Unterschrift des Mitarbeiters", 6)
    draw_text(pdf, right_x, y - 8, signed_on, 8)
    draw_line(pdf, right_x, y - 20, width - _MARGIN, y - 20)
    draw_text(pdf, right_x, y - 30, "Datum / Unterschrift Geschäftsführer bzw. FuE-Verantwortlicher", 6)
    draw_text(pdf, right_x, y - 38, "(in öffentlichen Forschungseinrichtungen)", 5, color=DARK_GRAY)

    pdf.showPage()
    pdf.save()
    buffer.seek(0)
    return buffer


def monthly_timesheet_filename(employee: models.UserProfile, year: int, month: int) -> str:
    return f"Stundennachweis_{employee.last_name or employee.name}_{year}-{month:02d}.pdf"


# Payment request annexes (Anlage 1a and 1b)


def _annex_title(pdf, x, y, box_width, annex, title_lines, title_size, title_x):
    draw_rect(pdf, x, y - 35, box_width, 35, fill=HEADER_BLUE, line_width=1)
    draw_text(pdf, x + 8, y - 15, annex, 14 if box_width > 180 else 13, font=FONT_BOLD)
    draw_text(pdf, x + 8, y - 29, "zur Zahlungsanforderung", 9 if box_width > 180 else 8)
    if len(title_lines) == 1:
        draw_text(pdf, title_x, y - 22, title_lines[0], title_size, font=FONT_BOLD)
    else:
        for index, line in enumerate(title_lines):
            draw_text(pdf, title_x, y - 10 - index * 14, line, title_size, font=FONT_BOLD)


def _info_box(pdf, x, y, width, rows, columns):
    draw_rect(pdf, x, y - 55, width, 55)
    for index, ((label_a, value_a), (label_b, value_b)) in enumerate(rows):
        row_y = y - 15 - index * 17
        draw_text(pdf, columns[0], row_y, label_a, 8, color=DARK_GRAY)
        draw_text(pdf, columns[1], row_y, value_a, 10 if index < 2 else 9, font=FONT_BOLD if index < 2 else FONT)
        if label_b:
            draw_text(pdf, columns[2], row_y, label_b, 8, color=DARK_GRAY)
            draw_text(pdf, columns[3], row_y, value_b, 10, font=FONT_BOLD)


def _signatures(pdf, width, margin, y, sign_width):
    draw_line(pdf, margin, y, margin + sign_width, y)
    draw_text(pdf, margin, y - 12, "Ort, Datum", 7, color=DARK_GRAY)
    draw_line(pdf, width - margin - sign_width, y, width - margin, y)
    draw_text(pdf, width - margin - sign_width, y - 12, "Unterschrift (Geschäftsführer/Projektleiter)", 7, color=DARK_GRAY)


def _draw_annex_1a(pdf, company_name: str, project: models.Project, calculation: Calculation) -> None:
    page_size = landscape(A4)
    pdf.setPageSize(page_size)
    width, height = page_size
    margin = 35
    y = height - margin

    _annex_title(pdf, margin, y, 200, "Anlage 1a", ["Abrechnung der förderbaren Personenstunden"], 14, margin + 220)
    y -= 50
    period = f"{_format_date(calculation.period_start)} - {_format_date(calculation.period_end)}"
    _info_box(
        pdf,
        margin,
        y,
        width - 2 * margin,
        [
            (("Förderkennzeichen:", project.funding_reference or "-"), ("Nr. der Zahlungsanforderung:", calculation.request_number)),
            (("Abrechnungszeitraum:", period), ("Zuwendungsempfänger:", company_name or "-")),
            (("Vorhabenthema:", project.name or "-"), ("", "")),
        ],
        (margin + 10, margin + 200, width / 2 + 30, width / 2 + 200),
    )
    y -= 70

    months = services.months_in_range(calculation.period_start, calculation.period_end)
    col_nr, col_name, col_sum = 28, 140, 55
    available = width - 2 * margin - col_nr - col_name - col_sum
    col_month = min(55, available / max(len(months), 1))
    row_height, header_height = 18, 32

    x = margin
    draw_rect(pdf, x, y - header_height, col_nr, header_height, fill=TABLE_HEADER)
    draw_text_centered(pdf, x, y - 12, col_nr, "lfd.", 7, font=FONT_BOLD)
    draw_text_centered(pdf, x, y - 22, col_nr, "Nr.", 7, font=FONT_BOLD)
    x += col_nr
    draw_rect(pdf, x, y - header_height, col_name, header_height, fill=TABLE_HEADER)
    draw_text_centered(pdf, x, y - 18, col_name, "Mitarbeiter(in)", 9, font=FONT_BOLD)
    x += col_name
    for key in months:
        draw_rect(pdf, x, y - header_height, col_month, header_height, fill=TABLE_HEADER)
        draw_text_centered(pdf, x, y - 18, col_month, services.month_label(key), 7, font=FONT_BOLD)
        x += col_month
    draw_rect(pdf, x, y - header_height, col_sum, header_height, fill=TABLE_HEADER)
    draw_text_centered(pdf, x, y - 12, col_sum, "Summe", 8, font=FONT_BOLD)
    draw_text_centered(pdf, x, y - 22, col_sum, "Stunden", 8, font=FONT_BOLD)
    y -= header_height

    totals_by_month: Dict[str, float] = {}
    grand_total = 0.0
    row_count = max(len(calculation.items), 8)
    for index in range(row_count):
        item = calculation.items[index] if index < len(calculation.items) else None
        fill = ROW_ALTERNATE if index % 2 else None
        x = margin
        draw_rect(pdf, x, y - row_height, col_nr, row_height, fill=fill)
        draw_text_centered(pdf, x, y - row_height + 5, col_nr, str(index + 1), 8)
        x += col_nr
        draw_rect(pdf, x, y - row_height, col_name, row_height, fill=fill)
        if item is not None:
            draw_text(pdf, x + 4, y - row_height + 5, item.employee_name or "-", 8)
        x += col_name
        row_total = 0.0
        for key in months:
            draw_rect(pdf, x, y - row_height, col_month, row_height, fill=fill)
            if item is not None:
                hours = float(item.hours_by_month.get(key, 0) or 0)
                row_total += hours
                totals_by_month[key] = totals_by_month.get(key, 0.0) + hours
                if hours > 0:
                    draw_text_right(pdf, x, y - row_height + 5, col_month, services.format_de_number(hours), 8)
            x += col_month
        draw_rect(pdf, x, y - row_height, col_sum, row_height, fill=fill)
        if item is not None:
            grand_total += row_total
            draw_text_right(pdf, x, y - row_height + 5, col_sum, services.format_de_number(row_total), 8, font=FONT_BOLD)
        y -= row_height

    x = margin
    draw_rect(pdf, x, y - row_height, col_nr + col_name, row_height, fill=SUM_BLUE)
    draw_text(pdf, x + col_nr + 4, y - row_height + 5, "Summe Personenstunden", 9, font=FONT_BOLD)
    x += col_nr + col_name
    for key in months:
        draw_rect(pdf, x, y - row_height, col_month, row_height, fill=SUM_BLUE)
        draw_text_right(pdf, x, y - row_height + 5, col_month, services.format_de_number(totals_by_month.get(key, 0)), 8, font=FONT_BOLD)
        x += col_month
    draw_rect(pdf, x, y - row_height, col_sum, row_height, fill=SUM_BLUE)
    draw_text_right(pdf, x, y - row_height + 5, col_sum, services.format_de_number(grand_total), 9, font=FONT_BOLD)
    y -= row_height + 25

    draw_text(
        pdf,
        margin,
        y,
        "Die Stunden sind aus den monatlichen Stundennachweisen (Einzelstundennachweis gemäß Anlage 6.2 zum "
        "Zuwendungsbescheid) zu übernehmen.",
        7,
        color=DARK_GRAY,
    )
    _signatures(pdf, width, margin, y - 35, 200)


def _draw_annex_1b(pdf, company_name: str, project: models.Project, calculation: Calculation) -> None:
    pdf.setPageSize(A4)
    width, height = A4
    margin = 40
    y = height - margin

    _annex_title(
        pdf,
        margin,
        y,
        160,
        "Anlage 1b",
        ["Abrechnung der", "zuwendungsfähigen Personalkosten"],
        11,
        margin + 175,
    )
    y -= 50
    project_name = project.name or "-"
    if len(project_name) > 60:
        project_name = project_name[:57] + "..."
    period = f"{_format_date(calculation.period_start)} - {_format_date(calculation.period_end)}"
    _info_box(
        pdf,
        margin,
        y,
        width - 2 * margin,
        [
            (("Förderkennzeichen:", project.funding_reference or "-"), ("ZA-Nr.:", calculation.request_number)),
            (("Zeitraum:", period), ("Firma:", company_name or "-")),
            (("Vorhaben:", project_name), ("", "")),
        ],
        (margin + 10, margin + 120, width / 2 + 10, width / 2 + 140),
    )
    y -= 70

    columns = [
        (30, ["lfd.", "Nr."]),
        (150, ["Mitarbeiter(in)"]),
        (50, ["Quali-", "gruppe"]),
        (70, ["Summe", "förderbare", "Stunden"]),
        (65, ["Stunden-", "satz (€)"]),
        (85, ["Personal-", "kosten (€)"]),
    ]
    table_width = sum(column[0] for column in columns)
    table_x = (width - table_width) / 2
    row_height, header_height = 20, 38

    x = table_x
    for column_width, lines in columns:
        draw_rect(pdf, x, y - header_height, column_width, header_height, fill=TABLE_HEADER)
        size = 9 if len(lines) == 1 else 7
        start = y - 20 if len(lines) == 1 else (y - 14 if len(lines) == 2 else y - 10)
        for index, line in enumerate(lines):
            draw_text_centered(pdf, x, start - index * (11 if len(lines) == 2 else 10), column_width, line, size, font=FONT_BOLD)
        x += column_width
    y -= header_height

    widths = [column[0] for column in columns]
    total_hours = 0.0
    total_costs = 0.0
    for index in range(max(len(calculation.items), 12)):
        item = calculation.items[index] if index < len(calculation.items) else None
        fill = ROW_ALTERNATE if index % 2 else None
        x = table_x
        for column_width in widths:
            draw_rect(pdf, x, y - row_height, column_width, row_height, fill=fill)
            x += column_width
        text_y = y - row_height + 6
        draw_text_centered(pdf, table_x, text_y, widths[0], str(index + 1), 8)
        if item is not None:
            hours = float(item.total_hours or 0)
            rate = float(item.hourly_rate or 0)
            costs = float(item.total_costs or hours * rate)
            total_hours += hours
            total_costs += costs
            x = table_x + widths[0]
            draw_text(pdf, x + 4, text_y, item.employee_name or "-", 8)
            x += widths[1]
            draw_text_centered(pdf, x, text_y, widths[2], item.qualification_group or "-", 8)
            x += widths[2]
            draw_text_right(pdf, x, text_y, widths[3], services.format_de_number(hours), 8)
            x += widths[3]
            draw_text_right(pdf, x, text_y, widths[4], services.format_de_number(rate), 8)
            x += widths[4]
            draw_text_right(pdf, x, text_y, widths[5], services.format_de_number(costs), 8)
        y -= row_height

    x = table_x
    label_width = sum(widths[:3])
    draw_rect(pdf, x, y - row_height, label_width, row_height, fill=SUM_BLUE)
    draw_text(pdf, x + widths[0] + 4, y - row_height + 6, "Summe Personalkosten", 9, font=FONT_BOLD)
    x += label_width
    for column_index in (3, 4, 5):
        draw_rect(pdf, x, y - row_height, widths[column_index], row_height, fill=SUM_BLUE)
        if column_index == 3:
            draw_text_right(pdf, x, y - row_height + 6, widths[3], services.format_de_number(total_hours), 8, font=FONT_BOLD)
        elif column_index == 5:
            draw_text_right(pdf, x, y - row_height + 6, widths[5], services.format_de_number(total_costs), 9, font=FONT_BOLD)
        x += widths[column_index]
    y -= row_height + 15

    totals = calculation.totals
    summary_x = table_x + label_width
    summary_width = sum(widths[3:])
    summary_height = 22
    overhead_rate = float(totals.get("overhead_rate", 0) or 0)
    overhead_costs = float(totals.get("overhead_costs") or total_costs * overhead_rate / 100)

    draw_rect(pdf, summary_x, y - summary_height, summary_width, summary_height)
    draw_text(
        pdf,
        summary_x + 5,
        y - summary_height + 7,
        f"+ Zuschlag übrige Kosten ({services.format_de_number(overhead_rate)} %)",
        8,
    )
    draw_text_right(pdf, summary_x, y - summary_height + 7, summary_width, services.format_de_number(overhead_costs), 9)
    y -= summary_height

    total_eligible = float(totals.get("total_eligible_costs") or total_costs + overhead_costs)
    draw_rect(pdf, summary_x, y - summary_height, summary_width, summary_height, fill=LIGHT_GRAY)
    draw_text(pdf, summary_x + 5, y - summary_height + 7, "= Zuwendungsfähige Gesamtkosten", 8, font=FONT_BOLD)
    draw_text_right(
        pdf, summary_x, y - summary_height + 7, summary_width, services.format_de_number(total_eligible), 9, font=FONT_BOLD
    )
    y -= summary_height + 8

    funding_rate = float(totals.get("funding_rate") or 50)
    draw_text(pdf, summary_x + 5, y - 5, f"Fördersatz:  {services.format_de_number(funding_rate)} %", 9)
    y -= 18

    requested = float(totals.get("requested_amount") or total_eligible * funding_rate / 100)
    draw_rect(pdf, summary_x, y - summary_height - 3, summary_width, summary_height + 3, fill=HEADER_BLUE, line_width=1.5)
    draw_text(pdf, summary_x + 5, y - summary_height + 4, "Angeforderte Zuwendung", 10, font=FONT_BOLD)
    draw_text_right(
        pdf, summary_x, y - summary_height + 4, summary_width, services.format_currency(requested), 11, font=FONT_BOLD
    )
    y -= summary_height + 35
    _signatures(pdf, width, margin, y, 180)


def export_payment_request_pdf(company_name: str, project: models.Project, calculation: Calculation) -> BytesIO:
    """Anlage 1a (hours per month, landscape) followed by Anlage 1b (costs, portrait)."""
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=landscape(A4))
    pdf.setTitle(f"Zahlungsanforderung {project.funding_reference or project.name}")
    _draw_annex_1a(pdf, company_name, project, calculation)
    pdf.showPage()
    _draw_annex_1b(pdf, company_name, project, calculation)
    pdf.showPage()
    pdf.save()
    buffer.seek(0)
    return buffer


def payment_request_filename(project: models.Project, request_number: str) -> str:
    reference = (project.funding_reference or "Entwurf").replace("/", "-").replace(" ", "_")
    return f"ZA_{reference}_{request_number}.pdf"
