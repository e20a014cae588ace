"""German public holidays per federal state.

Two sources are used: the ``holidays`` package provides the full German
names that are stored in ``public_holidays``; the form exports need the
abbreviated labels printed in the calendar cells, which are derived here
from the Easter date.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Dict, Iterable, Set

import holidays
from sqlalchemy.orm import Session

from . import crud, schemas

logger = logging.getLogger(__name__)


GERMAN_STATES = {
    "DE": "Deutschland (gesamt)",
    "BW": "Baden-Württemberg",
    "BY": "Bayern",
    "BE": "Berlin",
    "BB": "Brandenburg",
    "HB": "Bremen",
    "HH": "Hamburg",
    "HE": "Hessen",
    "MV": "Mecklenburg-Vorpommern",
    "NI": "Niedersachsen",
    "NW": "Nordrhein-Westfalen",
    "RP": "Rheinland-Pfalz",
    "SL": "Saarland",
    "SN": "Sachsen",
    "ST": "Sachsen-Anhalt",
    "SH": "Schleswig-Holstein",
    "TH": "Thüringen",
}

DEFAULT_STATE = "NW"

# "yearly" is the FZul hour sheet, "form" the FZul v2.1 form layout.
VARIANT_YEARLY = "yearly"
VARIANT_FORM = "form"

_CORPUS_CHRISTI_STATES = {"BW", "BY", "HE", "NW", "RP", "SL"}
_REFORMATION_STATES = {"BB", "HB", "HH", "MV", "NI", "SN", "ST", "SH", "TH"}
_ALL_SAINTS_STATES = {"BW", "BY", "NW", "RP", "SL"}


def normalize_state(code: str | None) -> str:
    value = (code or "").strip().upper()
    if value.startswith("DE-"):
        value = value[3:]
    if value not in GERMAN_STATES or value == "DE":
        return DEFAULT_STATE
    return value


def easter_sunday(year: int) -> date:
    """Gregorian Easter Sunday (Gauss)."""
    a = year % 19
    b = year // 100
    c = year % 100
    d = b // 4
    e = b % 4
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i = c // 4
    k = c % 4
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month = (h + l - 7 * m + 114) // 31
    day = (h + l - 7 * m + 114) % 31 + 1
    return date(year, month, day)


def repentance_day(year: int) -> date:
    """Buß- und Bettag: the last Wednesday before 23 November."""
    anchor = date(year, 11, 23)
    diff = (anchor.weekday() - 2) % 7
    if diff == 0:
        diff = 7
    return anchor - timedelta(days=diff)


def holiday_labels(year: int, state: str | None, *, variant: str = VARIANT_YEARLY) -> Dict[date, str]:
    """Return the abbreviated holiday labels used in the calendar grids."""
    state_code = normalize_state(state)
    easter = easter_sunday(year)

    labels: Dict[date, str] = {
        date(year, 1, 1): "Neuj.",
        date(year, 5, 1): "TdA",
        date(year, 10, 3): "TDE",
        date(year, 12, 25): "1.WT",
        date(year, 12, 26): "2.WT",
        easter - timedelta(days=2): "Karfr.",
        easter: "OS",
        easter + timedelta(days=1): "OM",
        easter + timedelta(days=39): "Chr.Hi",
        easter + timedelta(days=49): "PM" if variant == VARIANT_YEARLY else "PS",
        easter + timedelta(days=50): "PfM",
    }

    if state_code in {"BW", "BY", "ST"}:
        labels[date(year, 1, 6)] = "Hl.3K."
    if state_code in {"BE", "MV"}:
        labels[date(year, 3, 8)] = "Frau."
    corpus_christi_states = set(_CORPUS_CHRISTI_STATES)
    if variant == VARIANT_YEARLY:
        corpus_christi_states |= {"SN", "TH"}
    if state_code in corpus_christi_states:
        labels[easter + timedelta(days=60)] = "Fronl."
    if state_code in {"SL", "BY"}:
        labels[date(year, 8, 15)] = "Mar.Hi"
    if state_code == "TH":
        labels[date(year, 9, 20)] = "WKT"
    if state_code in _REFORMATION_STATES:
        labels[date(year, 10, 31)] = "Ref."
    if state_code in _ALL_SAINTS_STATES:
        labels[date(year, 11, 1)] = "Allerh."
    if state_code == "SN":
        labels[repentance_day(year)] = "BuB" if variant == VARIANT_YEARLY else "B&B"

    return labels


def fallback_holiday_dates(year: int) -> Set[date]:
    """NRW holiday set, used when the caller supplies no holiday list."""
    easter = easter_sunday(year)
    return {
        date(year, 1, 1),
        date(year, 5, 1),
        date(year, 10, 3),
        date(year, 12, 25),
        date(year, 12, 26),
        date(year, 11, 1),
        easter - timedelta(days=2),
        easter + timedelta(days=1),
        easter + timedelta(days=39),
        easter + timedelta(days=50),
        easter + timedelta(days=60),
    }


def calculate_german_holidays(year: int, state: str = "DE") -> Iterable[schemas.HolidayCreate]:
    """Return German public holidays for a given year and federal state.

    Nationwide holidays carry ``state_code=None``; holidays that only apply
    to the requested state carry its ``DE-XX`` code.
    """
    raw_state = (state or "DE").strip().upper()
    subdiv = None if raw_state in ("", "DE") else normalize_state(raw_state)
    nationwide = holidays.Germany(years=year, language="de")
    if subdiv is None:
        holiday_set = nationwide
    else:
        holiday_set = holidays.Germany(years=year, subdiv=subdiv, language="de")
    for holiday_date, name in sorted(holiday_set.items()):
        state_code = None if holiday_date in nationwide else f"DE-{subdiv}"
        yield schemas.HolidayCreate(name=name, holiday_date=holiday_date, state_code=state_code)


def ensure_holidays(db: Session, year: int, state: str = "DE"):
    holiday_models = list(calculate_german_holidays(year, state))
    logger.info("Feiertage %s für %s synchronisiert (%d Einträge)", year, state, len(holiday_models))
    raw_state = (state or "DE").strip().upper()
    scope = None if raw_state in ("", "DE") else f"DE-{normalize_state(raw_state)}"
    return crud.replace_holidays(db, year, scope, holiday_models)


def holiday_map_for(db: Session, year: int, state: str | None) -> Dict[date, str]:
    """Stored holidays of ``year`` for the nationwide scope plus ``state``.

    The year is seeded from the ``holidays`` package when its nationwide rows
    are missing, or when the state has holidays of its own that are not stored.
    """
    state_code = f"DE-{normalize_state(state)}"
    stored = crud.get_holidays_for_year(db, year, state_code)
    try:
        if _needs_seeding(stored, year, state_code):
            ensure_holidays(db, year, state_code)
            stored = crud.get_holidays_for_year(db, year, state_code)
    except (KeyError, NotImplementedError) as exc:
        logger.warning("Feiertage für %s konnten nicht berechnet werden", state_code, exc_info=exc)
        return {}
    return {holiday.holiday_date: holiday.name for holiday in stored}


def _needs_seeding(stored, year: int, state_code: str) -> bool:
    scopes = {holiday.state_code for holiday in stored}
    if None not in scopes:
        return True
    if state_code in scopes:
        return False
    return any(holiday.state_code == state_code for holiday in calculate_german_holidays(year, state_code))
