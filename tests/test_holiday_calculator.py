from __future__ import annotations

from datetime import date

import pytest

from app import crud, holiday_calculator
from app.holiday_calculator import VARIANT_FORM, VARIANT_YEARLY


@pytest.mark.parametrize(
    "year, expected",
    [
        (2019, date(2019, 4, 21)),
        (2024, date(2024, 3, 31)),
        (2025, date(2025, 4, 20)),
        (2038, date(2038, 4, 25)),
    ],
)
def test_easter_sunday(year, expected):
    assert holiday_calculator.easter_sunday(year) == expected


def test_repentance_day_is_wednesday_before_23rd_november():
    assert holiday_calculator.repentance_day(2024) == date(2024, 11, 20)
    # 23 November 2022 is itself a Wednesday, so the holiday is one week earlier.
    assert holiday_calculator.repentance_day(2022) == date(2022, 11, 16)


@pytest.mark.parametrize(
    "code, expected",
    [("DE-BY", "BY"), ("by", "BY"), ("", "NW"), (None, "NW"), ("DE", "NW"), ("XX", "NW")],
)
def test_normalize_state(code, expected):
    assert holiday_calculator.normalize_state(code) == expected


def test_nationwide_labels_present_for_every_state():
    labels = holiday_calculator.holiday_labels(2024, "DE-HH")
    assert labels[date(2024, 1, 1)] == "Neuj."
    assert labels[date(2024, 3, 29)] == "Karfr."
    assert labels[date(2024, 4, 1)] == "OM"
    assert labels[date(2024, 5, 9)] == "Chr.Hi"
    assert labels[date(2024, 5, 20)] == "PfM"
    assert labels[date(2024, 10, 3)] == "TDE"
    assert labels[date(2024, 10, 31)] == "Ref."
    assert date(2024, 11, 1) not in labels


def test_bavaria_labels():
    labels = holiday_calculator.holiday_labels(2024, "BY")
    assert labels[date(2024, 1, 6)] == "Hl.3K."
    assert labels[date(2024, 5, 30)] == "Fronl."
    assert labels[date(2024, 8, 15)] == "Mar.Hi"
    assert labels[date(2024, 11, 1)] == "Allerh."


def test_whitsunday_label_depends_on_variant():
    yearly = holiday_calculator.holiday_labels(2024, "NW", variant=VARIANT_YEARLY)
    form = holiday_calculator.holiday_labels(2024, "NW", variant=VARIANT_FORM)
    assert yearly[date(2024, 5, 19)] == "PM"
    assert form[date(2024, 5, 19)] == "PS"


def test_saxony_variants():
    yearly = holiday_calculator.holiday_labels(2024, "SN", variant=VARIANT_YEARLY)
    form = holiday_calculator.holiday_labels(2024, "SN", variant=VARIANT_FORM)
    assert yearly[date(2024, 11, 20)] == "BuB"
    assert form[date(2024, 11, 20)] == "B&B"
    assert yearly[date(2024, 5, 30)] == "Fronl."
    assert date(2024, 5, 30) not in form


def test_fallback_dates_are_north_rhine_westphalia():
    dates = holiday_calculator.fallback_holiday_dates(2024)
    assert len(dates) == 11
    assert date(2024, 11, 1) in dates
    assert date(2024, 5, 30) in dates
    assert date(2024, 10, 31) not in dates


def test_calculate_german_holidays_tags_state_specific_days():
    holidays = {item.holiday_date: item for item in holiday_calculator.calculate_german_holidays(2024, "DE-BY")}
    assert holidays[date(2024, 1, 1)].state_code is None
    assert holidays[date(2024, 1, 1)].name == "Neujahr"
    assert holidays[date(2024, 1, 6)].state_code == "DE-BY"


def test_ensure_holidays_replaces_existing_rows(db):
    first = holiday_calculator.ensure_holidays(db, 2024, "DE-NW")
    second = holiday_calculator.ensure_holidays(db, 2024, "DE-NW")
    stored = crud.get_holidays_for_year(db, 2024, "DE-NW")
    assert len(first) == len(second) == len(stored)
    assert any(holiday.state_code == "DE-NW" for holiday in stored)


def test_holiday_map_seeds_missing_year(db):
    assert crud.get_holidays_for_year(db, 2025, "DE-NW") == []
    holiday_map = holiday_calculator.holiday_map_for(db, 2025, "DE-NW")
    assert date(2025, 12, 25) in holiday_map
    assert date(2025, 11, 1) in holiday_map


def test_holiday_map_seeds_a_state_once(db, monkeypatch):
    calls = []
    seed = holiday_calculator.ensure_holidays

    def counting_seed(session, year, state="DE"):
        calls.append((year, state))
        return seed(session, year, state)

    monkeypatch.setattr(holiday_calculator, "ensure_holidays", counting_seed)
    first = holiday_calculator.holiday_map_for(db, 2016, "DE-HB")
    second = holiday_calculator.holiday_map_for(db, 2016, "DE-HB")
    assert first == second
    assert date(2016, 10, 3) in second
    assert calls == [(2016, "DE-HB")]


def test_holiday_map_adds_state_days_after_another_state(db):
    holiday_calculator.holiday_map_for(db, 2024, "DE-NW")
    bavaria = holiday_calculator.holiday_map_for(db, 2024, "DE-BY")
    assert date(2024, 1, 6) in bavaria
    assert date(2024, 12, 25) in bavaria
