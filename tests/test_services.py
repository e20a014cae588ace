from __future__ import annotations

from datetime import date
from types import SimpleNamespace

import pytest

from app import models, services


def _entry(day: date, hours: float, category: str, project_id=None, work_package_code=None):
    return SimpleNamespace(
        entry_date=day,
        hours=hours,
        category=category,
        project_id=project_id,
        work_package_code=work_package_code,
    )


def test_german_number_formats():
    assert services.format_de_number(1234567.891) == "1.234.567,89"
    assert services.format_de_number(12.5, 1) == "12,5"
    assert services.format_currency(1500) == "1.500,00 €"
    assert services.format_hours_blank(0) == ""
    assert services.format_hours_blank(8) == "8"
    assert services.format_hours_blank(7.5) == "7,50"
    assert services.format_hours_or_zero(0) == "0,00"
    assert services.format_hours_or_zero(6) == "6,00"
    assert services.format_hour_cell(3.25) == "3,2"
    assert services.format_hour_cell(4.0) == "4"


def test_month_helpers():
    assert services.month_label("2024-03") == "Mär 24"
    assert services.months_in_range(date(2024, 11, 15), date(2025, 2, 1)) == [
        "2024-11",
        "2024-12",
        "2025-01",
        "2025-02",
    ]
    assert services.last_workday_of_month(2024, 8) == date(2024, 8, 30)


def test_split_employee_name():
    assert services.split_employee_name("Mustermann, Max") == ("Mustermann", "Max")
    assert services.split_employee_name("Mustermann") == ("Mustermann", "")


def test_max_hours_per_month():
    assert services.max_hours_per_month(40) == pytest.approx(173.333, rel=1e-3)


def test_fzul_share_full_year():
    share = services.calculate_fzul_share(weekly_hours=40, vacation_days=30, sick_days=5, total_hours=500)
    assert share.yearly_hours == 2080
    assert share.relevant_hours == 2080 - (30 + 5 + 8) * 8
    assert share.reduction == 0
    assert share.share == pytest.approx(500 / 1736)
    assert share.max_own_research_hours == 2080
    assert share.deduction_days[1] == ("Krankheitstage", 5)


def test_fzul_share_partial_year_and_vacation_default():
    share = services.calculate_fzul_share(weekly_hours=40, vacation_days=0, sick_days=0, total_hours=400, months=6)
    assert share.vacation_days == services.DEFAULT_VACATION_DAYS
    relevant = 2080 - (30 + 8) * 8
    assert share.reduction == round(relevant / 2)
    assert share.basis_hours == relevant - share.reduction
    assert share.max_own_research_hours == 1040


def test_round_half_up():
    assert services.round_half_up(424.5) == 425
    assert services.round_half_up(0.5) == 1
    assert services.round_half_up(2.5) == 3
    assert services.round_half_up(1.49) == 1
    assert services.round_half_up(None) == 0


def test_fzul_share_rounds_halves_up():
    share = services.calculate_fzul_share(weekly_hours=38.5, vacation_days=30, sick_days=0, total_hours=100, months=9)
    assert share.relevant_hours == 1698
    assert share.reduction == 425

    half_days = services.calculate_fzul_share(weekly_hours=40, vacation_days=0.5, sick_days=2.5, total_hours=100)
    assert half_days.vacation_days == 1
    assert half_days.sick_days == 3


def test_fzul_yearly_calculation():
    yearly = services.calculate_fzul_yearly(
        weekly_hours=40,
        vacation_days=30,
        sick_days=0,
        special_leave_days=0,
        holiday_count=10,
        short_time_days=0,
        yearly_factor=1.0,
        free_hours=1000,
    )
    assert yearly.daily_hours == 8
    assert yearly.total_deductions == 320
    assert yearly.available_hours == 1760
    assert yearly.effective_hours == 1760
    assert yearly.share == pytest.approx(1000 / 1760)

    reduced = services.calculate_fzul_yearly(
        weekly_hours=40,
        vacation_days=30,
        sick_days=0,
        special_leave_days=0,
        holiday_count=10,
        short_time_days=0,
        yearly_factor=0.5,
        free_hours=440,
    )
    assert reduced.effective_hours == 880
    assert reduced.share == pytest.approx(0.5)


def test_fzul_free_hours_skips_weekends_holidays_and_absences():
    day_data = {
        1: {
            2: SimpleNamespace(hours=3, absence=None),
            3: SimpleNamespace(hours=0, absence="U"),
            5: SimpleNamespace(hours=9, absence=None),
        }
    }
    free = services.fzul_free_hours(2024, day_data, 40, {date(2024, 1, 1)})
    assert date(2024, 1, 1) not in free
    assert free[date(2024, 1, 2)] == 5
    assert date(2024, 1, 3) not in free
    assert free[date(2024, 1, 4)] == 8
    assert date(2024, 1, 5) not in free
    assert date(2024, 1, 6) not in free


def test_build_fzul_timesheet_days():
    entries = [
        _entry(date(2024, 1, 2), 8, models.TimeEntryCategory.VACATION),
        _entry(date(2024, 1, 3), 2, models.TimeEntryCategory.NON_BILLABLE, project_id=1),
        _entry(date(2024, 1, 4), 8, models.TimeEntryCategory.PROJECT_WORK, project_id=1),
    ]
    days = services.build_fzul_timesheet_days(2024, entries, 40, {date(2024, 1, 1): "Neuj."})
    assert len(days) == 366
    assert days["2024-01-01"] == {"type": "holiday", "free": 0, "holiday_name": "Neuj."}
    assert days["2024-01-02"]["type"] == "vacation"
    assert days["2024-01-03"] == {"type": "work", "free": 6.0}
    assert days["2024-01-04"] == {"type": "work", "free": 8.0}
    assert days["2024-01-06"]["type"] == "weekend"


def test_build_monthly_timesheet_groups_by_work_package():
    holiday = date(2024, 10, 3)
    entries = [
        _entry(date(2024, 10, 1), 4, models.TimeEntryCategory.PROJECT_WORK, 7, "AP1"),
        _entry(date(2024, 10, 1), 2, models.TimeEntryCategory.PROJECT_WORK, 7, "AP1"),
        _entry(date(2024, 10, 2), 3, models.TimeEntryCategory.PROJECT_WORK, 7, None),
        _entry(date(2024, 10, 2), 5, models.TimeEntryCategory.PROJECT_WORK, 8, "AP9"),
        _entry(holiday, 6, models.TimeEntryCategory.PROJECT_WORK, 7, "AP1"),
        _entry(date(2024, 10, 7), 8, models.TimeEntryCategory.VACATION),
        _entry(date(2024, 10, 8), 8, models.TimeEntryCategory.SICK_LEAVE),
    ]
    sheet = services.build_monthly_timesheet(2024, 10, 7, entries, [holiday, date(2024, 12, 25)])
    assert sheet.days == 31
    assert sheet.project_hours == {"AP1": {1: 6.0}, services.NO_WORK_PACKAGE: {2: 3.0}}
    assert sheet.holiday_hours == {3: services.HOLIDAY_HOURS}
    assert sheet.vacation_hours == {7: 8.0}
    assert sheet.sick_hours == {8: 8.0}
    assert sheet.is_holiday(3)
    assert sheet.is_weekend(5)


def test_summarize_time_entries():
    entries = [
        _entry(date(2024, 1, 2), 6, models.TimeEntryCategory.PROJECT_WORK, 1),
        _entry(date(2024, 1, 2), 2, models.TimeEntryCategory.NON_BILLABLE, 1),
        _entry(date(2024, 1, 3), 8, models.TimeEntryCategory.SICK_LEAVE),
        _entry(date(2024, 1, 4), 8, models.TimeEntryCategory.TIME_COMPENSATION),
    ]
    summary = services.summarize_time_entries(entries)
    assert summary["total_hours"] == 24
    assert summary["project_hours"] == 6
    assert summary["non_billable_hours"] == 2
    assert summary["sick_hours"] == 8
    assert summary["count"] == 4
