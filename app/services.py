from __future__ import annotations

import math
from calendar import monthrange
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Tuple

from . import models

MONTH_ABBREVIATIONS = ["Jan", "Feb", "Mär", "Apr", "Mai", "Jun", "Jul", "Aug", "Sep", "Okt", "Nov", "Dez"]
MONTH_NAMES = [
    "Januar",
    "Februar",
    "März",
    "April",
    "Mai",
    "Juni",
    "Juli",
    "August",
    "September",
    "Oktober",
    "November",
    "Dezember",
]
WEEKDAY_SHORT = ["Mo", "Di", "Mi", "Do", "Fr", "Sa", "So"]

HOURS_PER_DAY = 8
STATUTORY_HOLIDAY_DAYS = 8
DEFAULT_VACATION_DAYS = 30
MAX_YEARLY_HOURS_OWN_RESEARCH = 2080

DEDUCTION_LABELS = (
    "Arbeitsvertraglich vereinbarter Urlaubsanspruch",
    "Krankheitstage",
    "Sonderurlaub",
    "Gesetzliche Feiertage",
    "Kurzarbeit, Erziehungsurlaub u. ä.",
)

def round_half_up(value: float | int | None) -> int:
    """Round to the nearest integer with .5 going up, as the authority forms do."""
    return int(math.floor(float(value or 0) + 0.5))

def format_de_number(value: float | int | None, decimals: int = 2) -> str:
    number = float(value or 0)
    formatted = f"{number:,.{decimals}f}"
    return formatted.replace(",", "_").replace(".", ",").replace("_", ".")

def format_currency(value: float | int | None) -> str:
    return f"{format_de_number(value, 2)} €"

def format_hours_blank(value: float | int | None) -> str:
    """Empty for zero, integers unchanged, otherwise two decimals."""
    number = float(value or 0)
    if number == 0:
        return ""
    if number.is_integer():
        return str(int(number))
    return f"{number:.2f}".replace(".", ",")

def format_hours_or_zero(value: float | int | None) -> str:
    number = float(value or 0)
    if number == 0:
        return "0,00"
    if number.is_integer():
        return f"{int(number)},00"
    return f"{number:.2f}".replace(".", ",")

def format_hour_cell(value: float | int | None) -> str:
    number = float(value or 0)
    if number.is_integer():
        return str(int(number))
    return f"{number:.1f}".replace(".", ",")

def month_key(value: date) -> str:
    return value.strftime("%Y-%m")

def month_label(key: str) -> str:
    """``2024-03`` -> ``Mär 24``."""
    year_part, month_part = key.split("-")[:2]
    return f"{MONTH_ABBREVIATIONS[int(month_part) - 1]} {year_part[-2:]}"

def months_in_range(start: date, end: date) -> List[str]:
    keys: List[str] = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        keys.append(f"{year:04d}-{month:02d}")
        month += 1
        if month > 12:
            year += 1
            month = 1
    return keys

def split_employee_name(value: str) -> Tuple[str, str]:
    parts = [part.strip() for part in (value or "").split(",")]
    last_name = parts[0] if parts and parts[0] else (value or "")
    first_name = parts[1] if len(parts) > 1 else ""
    return last_name, first_name

def last_workday_of_month(year: int, month: int) -> date:
    current = date(year, month, monthrange(year, month)[1])
    while current.weekday() >= 5:
        current -= timedelta(days=1)
    return current

def max_hours_per_month(weekly_hours: float) -> float:
    return weekly_hours * 52 / 12

def summarize_time_entries(entries: Iterable[models.TimeEntry]) -> Dict[str, float]:
    summary = {
        "total_hours": 0.0,
        "project_hours": 0.0,
        "non_billable_hours": 0.0,
        "vacation_hours": 0.0,
        "sick_hours": 0.0,
        "other_hours": 0.0,
        "count": 0,
    }
    buckets = {
        models.TimeEntryCategory.PROJECT_WORK: "project_hours",
        models.TimeEntryCategory.NON_BILLABLE: "non_billable_hours",
        models.TimeEntryCategory.VACATION: "vacation_hours",
        models.TimeEntryCategory.SICK_LEAVE: "sick_hours",
        models.TimeEntryCategory.OTHER_ABSENCE: "other_hours",
    }
    for entry in entries:
        hours = float(entry.hours or 0)
        summary["total_hours"] += hours
        summary["count"] += 1
        bucket = buckets.get(entry.category)
        if bucket:
            summary[bucket] += hours
    return summary

@dataclass
class FzulShare:
    weekly_hours: float
    yearly_hours: float
    vacation_days: int
    sick_days: int
    special_leave_days: int
    holiday_days: int
    short_time_days: int
    relevant_hours: float
    months: int
    reduction: float
    total_hours: float
    share: float
    max_own_research_hours: float

    @property
    def deduction_hours(self) -> float:
        return (
            self.vacation_days + self.sick_days + self.special_leave_days + self.holiday_days + self.short_time_days
        ) * HOURS_PER_DAY

    @property
    def share_percent(self) -> str:
        return f"{self.share * 100:.2f}%"

    @property
    def basis_hours(self) -> float:
        return self.relevant_hours - self.reduction

    @property
    def deduction_days(self) -> List[Tuple[str, int]]:
        days = (
            self.vacation_days,
            self.sick_days,
            self.special_leave_days,
            self.holiday_days,
            self.short_time_days,
        )
        return list(zip(DEDUCTION_LABELS, days))

def calculate_fzul_share(
    *,
    weekly_hours: float,
    vacation_days: float,
    sick_days: float,
    total_hours: float,
    months: int = 12,
) -> FzulShare:
    """Yearly working time and FuE share of the FZul hour sheet.

    Vacation falls back to the statutory default when nothing was booked;
    every deduction day counts as eight hours.
    """
    yearly_hours = weekly_hours * 52
    vacation = round_half_up(vacation_days) or DEFAULT_VACATION_DAYS
    sick = round_half_up(sick_days)
    relevant = yearly_hours - (vacation + sick + STATUTORY_HOLIDAY_DAYS) * HOURS_PER_DAY
    reduction = round_half_up((12 - months) / 12 * relevant) if months < 12 else 0
    basis = relevant - reduction
    share = total_hours / basis if basis > 0 else 0.0
    return FzulShare(
        weekly_hours=weekly_hours,
        yearly_hours=yearly_hours,
        vacation_days=vacation,
        sick_days=sick,
        special_leave_days=0,
        holiday_days=STATUTORY_HOLIDAY_DAYS,
        short_time_days=0,
        relevant_hours=relevant,
        months=months,
        reduction=reduction,
        total_hours=total_hours,
        share=share,
        max_own_research_hours=round(months / 12 * MAX_YEARLY_HOURS_OWN_RESEARCH, 2),
    )

@dataclass
class FzulYearly:
    weekly_hours: float
    daily_hours: float
    yearly_hours: float
    deduction_rows: List[Tuple[str, float, float]]
    total_deductions: float
    available_hours: float
    factor: float
    adjusted_hours: float
    effective_hours: float
    free_hours: float
    share: float

def calculate_fzul_yearly(
    *,
    weekly_hours: float,
    vacation_days: float,
    sick_days: float,
    special_leave_days: float,
    holiday_count: float,
    short_time_days: float,
    yearly_factor: float,
    free_hours: float,
) -> FzulYearly:
    daily = weekly_hours / 5
    yearly = weekly_hours * 52
    rows = [
        (DEDUCTION_LABELS[0], vacation_days, vacation_days * daily),
        (DEDUCTION_LABELS[1], sick_days, sick_days * daily),
        (DEDUCTION_LABELS[2], special_leave_days, special_leave_days * daily),
        (DEDUCTION_LABELS[3], holiday_count, holiday_count * daily),
        (DEDUCTION_LABELS[4], short_time_days, short_time_days * daily),
    ]
    total_deductions = sum(row[2] for row in rows)
    available = yearly - total_deductions
    factor = yearly_factor if yearly_factor else 1.0
    adjusted = available * factor
    effective = adjusted if factor < 1 else available
    share = free_hours / effective if effective > 0 else 0.0
    return FzulYearly(
        weekly_hours=weekly_hours,
        daily_hours=daily,
        yearly_hours=yearly,
        deduction_rows=rows,
        total_deductions=total_deductions,
        available_hours=available,
        factor=factor,
        adjusted_hours=adjusted,
        effective_hours=effective,
        free_hours=free_hours,
        share=share,
    )

def fzul_free_hours(
    year: int,
    day_data: Dict[int, Dict[int, object]],
    weekly_hours: float,
    holiday_dates: Iterable[date],
) -> Dict[date, float]:
    """Free FuE hours per workday: daily target minus hours already booked.

    ``day_data`` maps month -> day -> object with ``hours`` and ``absence``.
    Weekends, holidays and absence days never get free hours.
    """
    max_daily = weekly_hours / 5
    holidays = set(holiday_dates)
    free: Dict[date, float] = {}
    for month in range(1, 13):
        for day in range(1, monthrange(year, month)[1] + 1):
            current = date(year, month, day)
            if current.weekday() >= 5 or current in holidays:
                continue
            info = (day_data.get(month) or {}).get(day)
            if info is not None and getattr(info, "absence", None):
                continue
            booked = float(getattr(info, "hours", 0) or 0) if info is not None else 0.0
            remaining = max_daily - booked
            if remaining > 0:
                free[current] = remaining
    return free

def build_fzul_timesheet_days(
    year: int,
    entries: Iterable[models.TimeEntry],
    weekly_hours: float,
    holiday_labels: Dict[date, str],
) -> Dict[str, Dict[str, object]]:
    """Daily data of the FZul form derived from booked time entries.

    Absence categories mark the day; other bookings reduce the free hours.
    """
    absence_types = {
        models.TimeEntryCategory.VACATION: "vacation",
        models.TimeEntryCategory.SICK_LEAVE: "sick",
        models.TimeEntryCategory.OTHER_ABSENCE: "special_leave",
        models.TimeEntryCategory.UNPAID_ABSENCE: "special_leave",
    }
    booked: Dict[date, float] = {}
    absences: Dict[date, str] = {}
    for entry in entries:
        kind = absence_types.get(entry.category)
        if kind:
            if absences.get(entry.entry_date) != "sick":
                absences[entry.entry_date] = kind
        elif entry.category != models.TimeEntryCategory.PROJECT_WORK:
            booked[entry.entry_date] = booked.get(entry.entry_date, 0.0) + float(entry.hours or 0)

    daily = weekly_hours / 5
    days: Dict[str, Dict[str, object]] = {}
    current = date(year, 1, 1)
    while current.year == year:
        key = current.isoformat()
        if current.weekday() >= 5:
            days[key] = {"type": "weekend", "free": 0}
        elif current in holiday_labels:
            days[key] = {"type": "holiday", "free": 0, "holiday_name": holiday_labels[current]}
        elif current in absences:
            days[key] = {"type": absences[current], "free": 0}
        else:
            days[key] = {"type": "work", "free": max(daily - booked.get(current, 0.0), 0.0)}
        current += timedelta(days=1)
    return days


NO_WORK_PACKAGE = "OHNE_AP"
HOLIDAY_HOURS = 8

@dataclass
class MonthlyTimesheet:
    year: int
    month: int
    project_hours: Dict[str, Dict[int, float]]
    vacation_hours: Dict[int, float]
    sick_hours: Dict[int, float]
    holiday_hours: Dict[int, float]

    @property
    def days(self) -> int:
        return monthrange(self.year, self.month)[1]

    def is_weekend(self, day: int) -> bool:
        return date(self.year, self.month, day).weekday() >= 5

    def is_holiday(self, day: int) -> bool:
        return day in self.holiday_hours

def build_monthly_timesheet(
    year: int,
    month: int,
    project_id: int,
    entries: Iterable[models.TimeEntry],
    holiday_dates: Iterable[date],
) -> MonthlyTimesheet:
    """Hours of one employee and month grouped for the ZIM timesheet.

    Holidays on workdays count eight hours and block every other booking of
    that day.
    """
    holiday_hours: Dict[int, float] = {}
    for holiday in holiday_dates:
        if holiday.year == year and holiday.month == month and holiday.weekday() < 5:
            holiday_hours[holiday.day] = HOLIDAY_HOURS

    project_hours: Dict[str, Dict[int, float]] = {}
    vacation: Dict[int, float] = {}
    sick: Dict[int, float] = {}
    for entry in entries:
        day = entry.entry_date.day
        if day in holiday_hours:
            continue
        hours = float(entry.hours or 0)
        if entry.category == models.TimeEntryCategory.PROJECT_WORK and entry.project_id == project_id:
            code = entry.work_package_code or NO_WORK_PACKAGE
            by_day = project_hours.setdefault(code, {})
            by_day[day] = by_day.get(day, 0.0) + hours
        elif entry.category == models.TimeEntryCategory.VACATION:
            vacation[day] = vacation.get(day, 0.0) + hours
        elif entry.category == models.TimeEntryCategory.SICK_LEAVE:
            sick[day] = sick.get(day, 0.0) + hours
    return MonthlyTimesheet(
        year=year,
        month=month,
        project_hours=project_hours,
        vacation_hours=vacation,
        sick_hours=sick,
        holiday_hours=holiday_hours,
    )
