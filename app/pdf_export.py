"""PDF forms for the FZul research allowance.

Both documents are drawn on a fixed grid with the reportlab canvas so the
layout matches the official forms; coordinates are PDF points with the
origin in the lower left corner.
"""

from __future__ import annotations

from calendar import monthrange
from datetime import date
from io import BytesIO
from typing import Dict, Optional

from reportlab.lib.colors import Color
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfgen import canvas

from . import schemas, services
from .holiday_calculator import GERMAN_STATES, normalize_state
from .pdf_drawing import BLACK, FONT, FONT_BOLD, FONT_OBLIQUE, draw_line, draw_rect, draw_text, draw_text_centered, fit_text

DARK_GRAY = Color(0.4, 0.4, 0.4)
HEADER_GRAY = Color(0.85, 0.85, 0.85)
LIGHT_GRAY = Color(0.92, 0.92, 0.92)
RED = Color(0.75, 0.1, 0.1)
LIGHT_GREEN = Color(0.78, 0.94, 0.81)
FORM_YELLOW = Color(1, 0.92, 0.7)
FORM_BORDER = Color(0.6, 0.6, 0.6)
DARK_GREEN = Color(0, 0.4, 0)

PAGE_SIZE = landscape(A4)


def _new_canvas(buffer: BytesIO, title: str):
    pdf = canvas.Canvas(buffer, pagesize=PAGE_SIZE)
    pdf.setTitle(title)
    return pdf


def _finish(pdf, buffer: BytesIO) -> BytesIO:
    pdf.save()
    buffer.seek(0)
    return buffer


def state_name(code: str | None) -> str:
    return GERMAN_STATES[normalize_state(code)]


# FZul hour sheet (yearly calendar and share calculation)

_SHEET_MARGIN = 20
_COL_MONTH = 32
_COL_DAY = 21
_COL_SUM = 30
_COL_SIGN = 83
_ROW_HEIGHT = 15


def _labelled_box(pdf, label_x, box_x, box_width, y, label, value, *, value_size=9, value_font=FONT):
    draw_text(pdf, label_x, y, label, 9)
    draw_rect(pdf, box_x, y - 4, box_width, 16)
    if value:
        draw_text(pdf, box_x + 5, y, fit_text(str(value), value_size, box_width - 10, value_font), value_size, font=value_font)


def _draw_hour_sheet_calendar(
    pdf,
    *,
    last_name: str,
    first_name: str,
    year: int,
    state: str,
    project_title: str,
    project_id_label: str,
    activity: str,
    hours_by_day: Dict[date, float],
    holiday_labels: Dict[date, str],
) -> float:
    width, height = PAGE_SIZE
    margin = _SHEET_MARGIN
    y = height - margin

    draw_rect(pdf, margin, y - 22, width - 2 * margin, 22, fill=HEADER_GRAY)
    draw_text(
        pdf,
        margin + 5,
        y - 16,
        "Stundenaufzeichnung für FuE-Tätigkeiten in einem begünstigten FuE-Vorhaben",
        12,
        font=FONT_BOLD,
    )
    y -= 38

    _labelled_box(pdf, margin, 210, 220, y, "Kurzbezeichnung des FuE-Vorhabens:", project_title)
    draw_text(pdf, 480, y, "Wirtschaftsjahr:", 9)
    draw_rect(pdf, 560, y - 4, 70, 16)
    draw_text(pdf, 575, y, str(year), 12, font=FONT_BOLD)
    y -= 24

    _labelled_box(pdf, margin, 210, 220, y, "Vorhaben-ID des FuE-Vorhabens:", project_id_label)
    _labelled_box(pdf, 480, 560, 180, y, "Bundesland:", state_name(state))
    y -= 28

    draw_text(pdf, margin, y, "Angaben zum Arbeitnehmer, der FuE-Tätigkeiten im FuE-Vorhaben ausübt:", 8, font=FONT_BOLD)
    y -= 20

    _labelled_box(pdf, margin, 55, 100, y, "Name:", last_name)
    _labelled_box(pdf, 170, 220, 100, y, "Vorname:", first_name)
    _labelled_box(pdf, 340, 500, 240, y, "Kurzbezeichnung der FuE-Tätigkeit:", activity)
    y -= 28

    days_width = 31 * _COL_DAY
    table_width = _COL_MONTH + days_width + _COL_SUM + _COL_SIGN
    x0 = (width - table_width) / 2
    days_x = x0 + _COL_MONTH
    sum_x = days_x + days_width
    sign_x = sum_x + _COL_SUM
    header_height = 3 * _ROW_HEIGHT

    draw_rect(pdf, x0, y - header_height, _COL_MONTH, header_height, fill=HEADER_GRAY)
    draw_text_centered(pdf, x0, y - 26, _COL_MONTH, "Monat", 6, font=FONT_BOLD)
    draw_rect(pdf, days_x, y - 2 * _ROW_HEIGHT, days_width, 2 * _ROW_HEIGHT, fill=HEADER_GRAY)
    draw_text_centered(
        pdf,
        days_x,
        y - 11,
        days_width,
        "Dokumentation der Arbeitsstunden für FuE-Tätigkeiten im FuE-Vorhaben",
        6,
        font=FONT_BOLD,
    )
    draw_text_centered(pdf, days_x, y - 26, days_width, "je Arbeitstag", 6)
    for day in range(1, 32):
        cell_x = days_x + (day - 1) * _COL_DAY
        draw_rect(pdf, cell_x, y - header_height, _COL_DAY, _ROW_HEIGHT, fill=HEADER_GRAY)
        draw_text(pdf, cell_x + _COL_DAY / 2 - 3, y - header_height + 4, str(day), 5, font=FONT_BOLD)
    draw_rect(pdf, sum_x, y - header_height, _COL_SUM, header_height, fill=HEADER_GRAY)
    draw_text_centered(pdf, sum_x, y - 26, _COL_SUM, "insg.", 6, font=FONT_BOLD)
    draw_rect(pdf, sign_x, y - header_height, _COL_SIGN, header_height, fill=HEADER_GRAY)
    draw_text_centered(pdf, sign_x, y - 15, _COL_SIGN, "Bestätigung", 5, font=FONT_BOLD)
    draw_text_centered(pdf, sign_x, y - 27, _COL_SIGN, "MA = Mitarbeiter", 4, color=DARK_GRAY)
    draw_text_centered(pdf, sign_x, y - 35, _COL_SIGN, "PM = Projektmgr.", 4, color=DARK_GRAY)
    y -= header_height

    row_height = 2 * _ROW_HEIGHT
    total = 0.0
    for month in range(1, 13):
        draw_rect(pdf, x0, y - row_height, _COL_MONTH, row_height, fill=HEADER_GRAY)
        draw_text_centered(pdf, x0, y - 18, _COL_MONTH, services.MONTH_ABBREVIATIONS[month - 1], 6, font=FONT_BOLD)
        days_in_month = monthrange(year, month)[1]
        month_total = 0.0
        for day in range(1, 32):
            cell_x = days_x + (day - 1) * _COL_DAY
            if day > days_in_month:
                draw_rect(pdf, cell_x, y - row_height, _COL_DAY, row_height, fill=HEADER_GRAY, line_width=0.3)
                continue
            current = date(year, month, day)
            holiday = holiday_labels.get(current)
            weekday = current.weekday()
            marked = holiday is not None or weekday >= 5
            draw_rect(
                pdf,
                cell_x,
                y - row_height,
                _COL_DAY,
                row_height,
                fill=LIGHT_GRAY if marked else None,
                line_width=0.3,
            )
            if holiday is not None or weekday == 6:
                color = RED
            elif weekday == 5:
                color = DARK_GRAY
            else:
                color = BLACK
            label = (holiday or services.WEEKDAY_SHORT[weekday])[:5]
            draw_text_centered(
                pdf,
                cell_x,
                y - 10,
                _COL_DAY,
                label,
                5,
                font=FONT_OBLIQUE if marked else FONT,
                color=color,
            )
            hours = float(hours_by_day.get(current, 0) or 0)
            if hours > 0:
                month_total += hours
                draw_text_centered(pdf, cell_x, y - 25, _COL_DAY, services.format_hour_cell(hours), 6)
        total += month_total
        draw_rect(pdf, sum_x, y - row_height, _COL_SUM, row_height)
        draw_text_centered(pdf, sum_x, y - 18, _COL_SUM, str(services.round_half_up(month_total)), 6, font=FONT_BOLD)
        draw_rect(pdf, sign_x, y - row_height, _COL_SIGN, row_height)
        draw_line(pdf, sign_x, y - _ROW_HEIGHT, sign_x + _COL_SIGN, y - _ROW_HEIGHT, line_width=0.3)
        draw_text(pdf, sign_x + 2, y - 10, "MA:", 5)
        draw_text(pdf, sign_x + 2, y - 25, "PM:", 5)
        y -= row_height

    draw_rect(pdf, x0, y - _ROW_HEIGHT, table_width, _ROW_HEIGHT, fill=HEADER_GRAY)
    draw_text(
        pdf,
        x0 + _COL_MONTH + days_width - 220,
        y - 11,
        "Summe der Arbeitsstunden für FuE-Tätigkeiten im FuE-Vorhaben:",
        6,
        font=FONT_BOLD,
    )
    draw_rect(pdf, sum_x, y - _ROW_HEIGHT, _COL_SUM, _ROW_HEIGHT, fill=LIGHT_GREEN)
    draw_text_centered(pdf, sum_x, y - 11, _COL_SUM, str(services.round_half_up(total)), 6, font=FONT_BOLD)
    return total


def _value_box(pdf, x, y, width, value, *, size=8, font=FONT, fill: Optional[Color] = None, line_width=0.5):
    draw_rect(pdf, x, y - 4, width, 14, fill=fill, line_width=line_width)
    draw_text_centered(pdf, x, y, width, value, size, font=font)


def _section(pdf, y, title, underline_to):
    draw_text(pdf, 30, y, title, 8, font=FONT_BOLD)
    draw_line(pdf, 30, y - 2, underline_to, y - 2)


def _draw_hour_sheet_share(
    pdf,
    *,
    last_name: str,
    first_name: str,
    year: int,
    project_title: str,
    share: services.FzulShare,
) -> None:
    width, height = PAGE_SIZE
    y = height - 40
    draw_text(
        pdf,
        30,
        y,
        f"FuE-Stundennachweis {first_name} {last_name} - {project_title or 'FuE-Vorhaben'} - {year}",
        9,
        font=FONT_BOLD,
    )
    y -= 30
    _section(pdf, y, "1. Ermittlung der maßgeblichen vereinbarten Jahresarbeitszeit", 320)
    y -= 20

    draw_text(pdf, 30, y, "wöchentliche Arbeitszeit:", 8)
    _value_box(pdf, 130, y, 40, services.format_hour_cell(share.weekly_hours))
    draw_text(pdf, 175, y, "Stunden", 8)
    draw_text(pdf, 280, y, "Jahresarbeitsstunden (wöchentliche Arbeitszeit x 52 Wochen)", 8)
    _value_box(pdf, 530, y, 50, services.format_hour_cell(share.yearly_hours))
    draw_text(pdf, 585, y, "Stunden", 8)
    y -= 18

    draw_text(pdf, 50, y, "Abzgl.", 8)
    for label, days in share.deduction_days:
        draw_text(pdf, 90, y, label, 8)
        _value_box(pdf, 280, y, 30, str(days))
        draw_text(pdf, 315, y, "Tage x", 8)
        draw_text(pdf, 350, y, str(services.HOURS_PER_DAY), 8)
        draw_text(pdf, 365, y, "Stunden =", 8)
        _value_box(pdf, 415, y, 40, str(days * services.HOURS_PER_DAY))
        draw_text(pdf, 460, y, "Stunden", 8)
        y -= 14
    y -= 5

    draw_text(pdf, 50, y, "Maßgebliche vereinbarte Jahresarbeitszeit", 8, font=FONT_BOLD)
    _value_box(pdf, 280, y, 50, services.format_hour_cell(share.relevant_hours), font=FONT_BOLD)
    y -= 16
    draw_text(pdf, 50, y, "Ggf. Kürzung auf Grund unterjährigem Beginn/Ende der FuE-Tätigkeit", 8, font=FONT_OBLIQUE)
    _value_box(pdf, 350, y, 50, services.format_hour_cell(share.reduction))
    y -= 30

    _section(pdf, y, "2. Ermittlung des Anteils der Arbeitszeit für FuE-Tätigkeiten im FuE-Vorhaben", 400)
    y -= 20
    draw_text(pdf, 50, y, "Summe der Arbeitsstunden für FuE-Tätigkeiten", 8)
    _value_box(pdf, 250, y, 50, services.format_hour_cell(services.round_half_up(share.total_hours)))
    y -= 16
    draw_text(pdf, 50, y, "/ Maßgebliche vereinbarte Jahresarbeitszeit (ggf. gekürzt)", 8)
    _value_box(pdf, 250, y, 50, services.format_hour_cell(share.basis_hours))
    y -= 16
    draw_text(pdf, 50, y, "= Anteil der Arbeitszeit für FuE-Tätigkeiten im FuE-Vorhaben", 8, font=FONT_BOLD)
    _value_box(pdf, 250, y, 50, share.share_percent, font=FONT_BOLD, fill=LIGHT_GREEN, line_width=1)
    y -= 30

    _section(pdf, y, "Zusätzlich bei Eigenforschung", 180)
    y -= 20
    draw_text(pdf, 50, y, "förderfähige Arbeitsstunden im begünstigten FuE-Vorhaben insgesamt", 8)
    _value_box(pdf, 300, y, 50, services.format_hour_cell(services.round_half_up(share.total_hours)))
    y -= 16
    draw_text(pdf, 50, y, f"Höchstgrenze: {share.months}/12 x 2.080 Stunden", 8)
    _value_box(pdf, 300, y, 50, f"{share.max_own_research_hours:.2f}")
    y -= 50

    draw_text(pdf, width / 2 - 60, y, "Gesehen und bestätigt:", 8, font=FONT_BOLD)
    y -= 40
    draw_line(pdf, 100, y, 300, y)
    draw_line(pdf, 500, y, 700, y)
    y -= 12
    draw_text(pdf, 130, y, "Datum, Unterschrift (Arbeitnehmer)", 6)
    draw_text(pdf, 520, y, "Datum, Unterschrift (Projektverantwortlicher)", 6)


def export_fzul_hour_sheet_pdf(
    *,
    last_name: str,
    first_name: str,
    year: int,
    state: str,
    project_title: str,
    project_id_label: str,
    activity: str,
    hours_by_day: Dict[date, float],
    holiday_labels: Dict[date, str],
    share: services.FzulShare,
) -> BytesIO:
    """Two page FZul hour sheet: the calendar and the share calculation."""
    buffer = BytesIO()
    pdf = _new_canvas(buffer, f"FZul Stundennachweis {last_name} {year}")
    _draw_hour_sheet_calendar(
        pdf,
        last_name=last_name,
        first_name=first_name,
        year=year,
        state=state,
        project_title=project_title,
        project_id_label=project_id_label,
        activity=activity,
        hours_by_day=hours_by_day,
        holiday_labels=holiday_labels,
    )
    pdf.showPage()
    _draw_hour_sheet_share(
        pdf,
        last_name=last_name,
        first_name=first_name,
        year=year,
        project_title=project_title,
        share=share,
    )
    pdf.showPage()
    return _finish(pdf, buffer)


# FZul form (free hours per workday as prepared in the timesheet editor)

_FORM_COL_MONTH = 45
_FORM_COL_DAY = 18.5
_FORM_COL_SUM = 28
_FORM_COL_CONFIRM = 55
_FORM_ROW_HEIGHT = 14

# day type -> (cell text, text color, background)
_FORM_DAY_STYLES = {
    "leave": ("U", Color(0.1, 0.4, 0.7), Color(0.9, 0.95, 1)),
    "vacation": ("U", Color(0.1, 0.4, 0.7), Color(0.9, 0.95, 1)),
    "sick": ("K", Color(0.6, 0.4, 0), Color(1, 0.95, 0.85)),
    "other": ("S", Color(0.4, 0.4, 0.4), Color(0.92, 0.92, 0.92)),
    "special_leave": ("S", Color(0.4, 0.4, 0.4), Color(0.92, 0.92, 0.92)),
}
_WORKDAY_TYPES = {"work", "workday"}
_FORM_WEEKDAYS = ["Mo", "Di", "Mi", "Do", "Fr", "Sa", "So"]


def _form_header(pdf, subtitle: str) -> None:
    width, height = PAGE_SIZE
    draw_rect(pdf, 20, height - 55, width - 40, 35, fill=FORM_YELLOW, stroke=Color(0.8, 0.7, 0.4), line_width=1)
    draw_text(pdf, 25, height - 35, "Steuerliche Förderung von Forschung und Entwicklung (FuE) -", 10, font=FONT_BOLD)
    draw_text(pdf, 25, height - 48, subtitle, 10, font=FONT_BOLD)


def _draw_form_calendar(pdf, timesheet: schemas.FzulTimesheet, state: str, holiday_labels: Dict[date, str]) -> float:
    width, height = PAGE_SIZE
    year = timesheet.year
    _form_header(pdf, "Stundenaufzeichnung für FuE-Tätigkeiten in einem begünstigten FuE-Vorhaben")

    box_y = height - 100
    draw_rect(pdf, 20, box_y, width - 40, 40, stroke=FORM_BORDER)
    draw_text(pdf, 25, box_y + 25, "Kurzbezeichnung des FuE-Vorhabens:", 7)
    draw_text(pdf, 150, box_y + 25, fit_text(timesheet.project_title or "-", 8, 450), 8, font=FONT_BOLD)
    draw_text(pdf, width - 120, box_y + 25, "Wirtschaftsjahr:", 7)
    draw_text(pdf, width - 50, box_y + 25, str(year), 10, font=FONT_BOLD)
    draw_text(pdf, 25, box_y + 8, "Vorhaben-ID des FuE-Vorhabens:", 7)
    draw_text(pdf, 150, box_y + 8, timesheet.project_fkz or "-", 8, font=FONT_BOLD)
    draw_text(pdf, width - 120, box_y + 8, "Bundesland:", 7)
    draw_text(pdf, width - 50, box_y + 8, state_name(state), 6)

    employee_y = box_y - 25
    last_name, first_name = services.split_employee_name(timesheet.employee_name or "")
    draw_rect(pdf, 20, employee_y, width - 40, 20, fill=Color(0.97, 0.97, 0.97), stroke=FORM_BORDER)
    draw_text(pdf, 25, employee_y + 6, "Name:", 7)
    draw_text(pdf, 55, employee_y + 6, last_name, 9, font=FONT_BOLD)
    draw_text(pdf, 180, employee_y + 6, "Vorname:", 7)
    draw_text(pdf, 220, employee_y + 6, first_name, 9, font=FONT_BOLD)
    draw_text(pdf, 400, employee_y + 6, "Kurzbezeichnung der FuE-Tätigkeit:", 7)
    draw_text(pdf, 550, employee_y + 6, timesheet.position_title or "Entwickler", 8)

    calendar_y = employee_y - 18
    draw_rect(pdf, 20, calendar_y, width - 40, 14, fill=FORM_YELLOW, stroke=None)
    draw_text(
        pdf,
        25,
        calendar_y + 3,
        "Dokumentation der Arbeitsstunden für FuE-Tätigkeiten im FuE-Vorhaben je Arbeitstag",
        8,
        font=FONT_BOLD,
    )

    row_height = _FORM_ROW_HEIGHT
    header_y = calendar_y - 2 - row_height
    draw_rect(pdf, 20, header_y, width - 40, row_height, fill=Color(0.95, 0.93, 0.85), stroke=None)
    draw_text(pdf, 23, header_y + 4, "Monat", 6, font=FONT_BOLD)
    for day in range(1, 32):
        x = 20 + _FORM_COL_MONTH + (day - 1) * _FORM_COL_DAY
        draw_text(pdf, x + (7 if day < 10 else 4), header_y + 4, str(day), 6, font=FONT_BOLD)
        draw_line(pdf, x, header_y, x, header_y + row_height, color=Color(0.7, 0.7, 0.7), line_width=0.3)
    sum_x = 20 + _FORM_COL_MONTH + 31 * _FORM_COL_DAY
    draw_text(pdf, sum_x + 3, header_y + 4, "insg.", 6, font=FONT_BOLD)
    draw_text(pdf, sum_x + _FORM_COL_SUM + 3, header_y + 4, "Bestätigung", 5, font=FONT_BOLD)
    draw_line(pdf, 20, header_y, width - 20, header_y, color=Color(0.5, 0.5, 0.5))

    total = 0.0
    for month in range(1, 13):
        y = header_y - month * row_height
        days_in_month = monthrange(year, month)[1]
        if month % 2 == 0:
            draw_rect(pdf, 20, y, width - 40, row_height, fill=Color(0.98, 0.98, 0.98), stroke=None)
        draw_text(pdf, 23, y + 4, services.MONTH_NAMES[month - 1][:3], 7)

        month_free = 0.0
        for day in range(1, 32):
            x = 20 + _FORM_COL_MONTH + (day - 1) * _FORM_COL_DAY
            draw_line(pdf, x, y, x, y + row_height, color=Color(0.8, 0.8, 0.8), line_width=0.2)
            if day > days_in_month:
                draw_rect(pdf, x, y, _FORM_COL_DAY, row_height, fill=Color(0.9, 0.9, 0.9), stroke=None)
                continue
            current = date(year, month, day)
            info = timesheet.daily_data.get(current.isoformat())
            if info is None:
                continue
            text = ""
            color = BLACK
            background: Optional[Color] = None
            size = 6
            if info.type == "weekend":
                weekday = current.weekday()
                text = _FORM_WEEKDAYS[weekday]
                color = Color(0.7, 0.2, 0.2) if weekday == 6 else Color(0.5, 0.5, 0.5)
                background = Color(0.85, 0.85, 0.85)
            elif info.type == "holiday":
                text = holiday_labels.get(current) or info.holiday_name or "Fei"
                color = Color(0.1, 0.3, 0.7)
                background = Color(0.85, 0.9, 1)
                size = 4 if len(text) > 4 else (5 if len(text) > 2 else 6)
            elif info.type in _FORM_DAY_STYLES:
                text, color, background = _FORM_DAY_STYLES[info.type]
            elif info.type in _WORKDAY_TYPES and info.free > 0:
                text = services.format_hour_cell(round(info.free, 2))
                month_free += info.free
            if background is not None:
                draw_rect(pdf, x, y, _FORM_COL_DAY, row_height, fill=background, stroke=None)
            if text:
                draw_text(pdf, x + 2, y + 4, text, size, color=color)

        total += month_free
        draw_rect(pdf, sum_x, y, _FORM_COL_SUM, row_height, fill=Color(0.92, 0.97, 0.92), stroke=None)
        if month_free > 0:
            draw_text(pdf, sum_x + 2, y + 4, services.format_hour_cell(month_free), 6, font=FONT_BOLD)
        draw_rect(pdf, sum_x + _FORM_COL_SUM, y, _FORM_COL_CONFIRM, row_height, stroke=Color(0.8, 0.8, 0.8), line_width=0.3)
        draw_text(pdf, sum_x + _FORM_COL_SUM + 2, y + 4, "Unterschrift", 5, color=Color(0.6, 0.6, 0.6))
        draw_line(pdf, 20, y, width - 20, y, color=Color(0.7, 0.7, 0.7), line_width=0.3)

    sum_row_y = header_y - 13 * row_height
    draw_rect(pdf, 20, sum_row_y, width - 40, row_height + 2, fill=FORM_YELLOW, stroke=Color(0.7, 0.6, 0.3), line_width=1)
    draw_text(pdf, 25, sum_row_y + 5, "Summe der Arbeitsstunden für FuE-Tätigkeiten im FuE-Vorhaben:", 8, font=FONT_BOLD)
    draw_rect(
        pdf,
        sum_x,
        sum_row_y,
        _FORM_COL_SUM,
        row_height + 2,
        fill=Color(0.85, 0.95, 0.85),
        stroke=Color(0, 0.5, 0),
        line_width=1,
    )
    draw_text(pdf, sum_x + 2, sum_row_y + 5, services.format_de_number(total), 8, font=FONT_BOLD, color=DARK_GREEN)
    return total


def _draw_form_share(pdf, timesheet: schemas.FzulTimesheet, total_free: float) -> None:
    width, height = PAGE_SIZE
    year = timesheet.year
    calc = timesheet.yearly_calculation
    _form_header(pdf, "Ermittlung der Jahresarbeitszeit und des FuE-Anteils")
    draw_text(pdf, 25, height - 75, f"Mitarbeiter: {timesheet.employee_name}", 10, font=FONT_BOLD)
    draw_text(pdf, 400, height - 75, f"Wirtschaftsjahr: {year}", 10, font=FONT_BOLD)

    yearly = services.calculate_fzul_yearly(
        weekly_hours=calc.weekly_hours,
        vacation_days=calc.vacation_days_contract,
        sick_days=calc.sick_days,
        special_leave_days=calc.special_leave_days,
        holiday_count=calc.holiday_count,
        short_time_days=calc.short_time_days,
        yearly_factor=calc.yearly_factor,
        free_hours=total_free,
    )

    block1_y = height - 120
    draw_rect(pdf, 20, block1_y - 240, 500, 255, stroke=FORM_BORDER, line_width=1)
    draw_rect(pdf, 20, block1_y, 500, 18, fill=FORM_YELLOW, stroke=None)
    draw_text(pdf, 25, block1_y + 4, "1. Ermittlung der maßgeblichen vereinbarten Jahresarbeitszeit", 9, font=FONT_BOLD)

    line_y = block1_y - 25
    step = 22
    draw_text(pdf, 30, line_y, "wöchentliche Arbeitszeit:", 9)
    draw_text(pdf, 350, line_y, services.format_hour_cell(yearly.weekly_hours), 9, font=FONT_BOLD)
    draw_text(pdf, 400, line_y, "Stunden", 9)
    line_y -= step
    draw_text(pdf, 30, line_y, "Jahresarbeitsstunden (wöchentl. × 52):", 9)
    draw_text(pdf, 350, line_y, services.format_hour_cell(yearly.yearly_hours), 9, font=FONT_BOLD)
    draw_text(pdf, 400, line_y, "Stunden", 9)
    line_y -= 15
    draw_text(pdf, 30, line_y, "Abzüglich:", 8, color=DARK_GRAY)
    for label, days, hours in yearly.deduction_rows:
        line_y -= step
        draw_text(pdf, 40, line_y, f"-  {label}", 9)
        draw_text(pdf, 280, line_y, f"{services.format_hour_cell(days)} Tage × {yearly.daily_hours:.1f}h =", 8)
        draw_text(pdf, 370, line_y, f"-{services.round_half_up(hours)}", 9, color=Color(0.6, 0, 0))
        draw_text(pdf, 400, line_y, "Stunden", 9)
    line_y -= 10
    draw_line(pdf, 30, line_y, 480, line_y, line_width=1)

    line_y -= 18
    draw_rect(pdf, 25, line_y - 5, 480, 22, fill=Color(0.95, 0.98, 0.95), stroke=None)
    draw_text(pdf, 30, line_y, "= Maßgebliche vereinbarte Jahresarbeitszeit:", 9, font=FONT_BOLD)
    draw_text(pdf, 350, line_y, str(services.round_half_up(yearly.available_hours)), 10, font=FONT_BOLD, color=DARK_GREEN)
    draw_text(pdf, 400, line_y, "Stunden", 9, font=FONT_BOLD)

    line_y -= step
    if yearly.factor < 1:
        factor_text = f"Ggf. Kürzung bei unterjährigem Beginn/Ende (Faktor {yearly.factor:.3f}):"
        factor_color = BLACK
    else:
        factor_text = "Ggf. Kürzung bei unterjährigem Beginn/Ende (×/12):"
        factor_color = Color(0.5, 0.5, 0.5)
    draw_text(pdf, 40, line_y, factor_text, 8, color=factor_color)
    draw_text(pdf, 350, line_y, f"{yearly.factor:.3f}", 9)
    draw_text(pdf, 400, line_y, f"= {services.round_half_up(yearly.adjusted_hours)} Stunden", 8, color=factor_color)

    block2_y = block1_y - 280
    draw_rect(pdf, 20, block2_y - 80, 500, 95, stroke=FORM_BORDER, line_width=1)
    draw_rect(pdf, 20, block2_y, 500, 18, fill=FORM_YELLOW, stroke=None)
    draw_text(
        pdf,
        25,
        block2_y + 4,
        "2. Ermittlung des Anteils der Arbeitszeit für FuE-Tätigkeiten im FuE-Vorhaben",
        9,
        font=FONT_BOLD,
    )
    line_y = block2_y - 25
    draw_text(pdf, 30, line_y, "Summe der Arbeitsstunden für FuE-Tätigkeiten (aus Kalender):", 9)
    draw_text(pdf, 350, line_y, services.format_de_number(total_free), 10, font=FONT_BOLD, color=DARK_GREEN)
    draw_text(pdf, 400, line_y, "Stunden", 9)
    line_y -= step
    draw_text(pdf, 30, line_y, "÷ Maßgebliche vereinbarte Jahresarbeitszeit:", 9)
    draw_text(pdf, 350, line_y, str(services.round_half_up(yearly.effective_hours)), 9)
    draw_text(pdf, 400, line_y, "Stunden", 9)
    line_y -= 10
    draw_line(pdf, 30, line_y, 480, line_y, line_width=1)
    line_y -= 20
    draw_rect(pdf, 25, line_y - 5, 480, 22, fill=Color(0.9, 1, 0.9), stroke=Color(0, 0.5, 0), line_width=1)
    draw_text(pdf, 30, line_y, "= Anteil der Arbeitszeit für FuE-Tätigkeiten im FuE-Vorhaben:", 9, font=FONT_BOLD)
    draw_text(pdf, 350, line_y, f"{yearly.share:.2f}", 12, font=FONT_BOLD, color=DARK_GREEN)
    draw_text(pdf, 400, line_y, f"({yearly.share * 100:.1f}%)", 9, color=DARK_GRAY)

    signature_y = block2_y - 150
    for offset, label in ((0, "Unterschrift Mitarbeiter:"), (35, "Unterschrift Projektleiter:")):
        row_y = signature_y - offset
        draw_text(pdf, 30, row_y, label, 9)
        draw_line(pdf, 150, row_y - 2, 320, row_y - 2)
        draw_text(pdf, 340, row_y, "Datum:", 9)
        draw_line(pdf, 380, row_y - 2, 480, row_y - 2)

    footer = (
        f"Erstellt am: {date.today().strftime('%d.%m.%Y')} | {timesheet.employee_name} | "
        f"{timesheet.project_title or '-'}"
    )
    draw_text(pdf, 25, 25, footer, 7, color=Color(0.5, 0.5, 0.5))


def export_fzul_form_pdf(
    timesheet: schemas.FzulTimesheet,
    state: str,
    holiday_labels: Dict[date, str],
) -> BytesIO:
    """FZul form from a prepared timesheet: free hours calendar and share page."""
    buffer = BytesIO()
    pdf = _new_canvas(buffer, f"FZul {timesheet.employee_name} {timesheet.year}")
    total_free = _draw_form_calendar(pdf, timesheet, state, holiday_labels)
    pdf.showPage()
    _draw_form_share(pdf, timesheet, total_free)
    pdf.showPage()
    return _finish(pdf, buffer)


def fzul_form_filename(employee_name: str, year: int) -> str:
    cleaned = "_".join(part for part in employee_name.replace(",", " ").split() if part)
    return f"FZul_{cleaned}_{year}.pdf"
