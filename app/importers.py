"""Readers for uploaded Excel workbooks.

Two formats are supported: the ZIM project workbook (a ``Nav`` sheet with
the project data and one sheet per employee and project year, named
``"<Name> J<n>"``) and a plain work-package list.
"""

from __future__ import annotations

import logging
import re
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from io import BytesIO
from typing import Dict, List, Optional

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from . import schemas

logger = logging.getLogger(__name__)

EXCEL_EPOCH = date(1970, 1, 1)
EXCEL_UNIX_OFFSET = 25569

NAV_SHEET = "Nav"
EMPLOYEE_SHEET_PATTERN = re.compile(r"^(.+)\s+J([1-9])$")
EMPLOYEE_SHEET_BLACKLIST = ("Ermittl.-Stunden", "Auswertung", "MA1", "MA2", "MA3", "MA4", "MA5")
FUNDING_REFERENCE_PREFIXES = ("16KN", "KF")

FIRST_BLOCK_ROW = 11
BLOCK_SIZE = 43
SUM_ROW_OFFSET = 20
AP_FIRST_ROW_OFFSET = 9
AP_LAST_ROW_OFFSET = 19
VACATION_ROW_OFFSET = 23
SICK_ROW_OFFSET = 24
FIRST_DAY_COLUMN = 5

WORK_PACKAGE_FIRST_ROW = 4


class ImportFormatError(Exception):
    """Raised when an uploaded workbook cannot be read at all."""


@dataclass
class DailyEntry:
    day: int
    hours: float
    absence: Optional[str] = None

    def as_dict(self) -> Dict[str, object]:
        return {"day": self.day, "hours": self.hours, "absence": self.absence}


@dataclass
class MonthData:
    month: int
    calendar_year: int
    project_year: int
    daily_data: List[DailyEntry]
    total_hours: float

    @property
    def absence_days(self) -> int:
        return sum(1 for entry in self.daily_data if entry.absence)


@dataclass
class ZimEmployee:
    name: str
    months: List[MonthData] = field(default_factory=list)


@dataclass
class ZimProject:
    name: str
    fkz: str
    company: str
    start_date: date
    end_date: Optional[date]

    @property
    def start_year(self) -> int:
        return self.start_date.year


@dataclass
class ZimParseResult:
    success: bool
    project: Optional[ZimProject] = None
    employees: List[ZimEmployee] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, object]:
        project = None
        if self.project:
            project = {
                "name": self.project.name,
                "fkz": self.project.fkz,
                "company": self.project.company,
                "startDate": self.project.start_date.isoformat(),
                "endDate": self.project.end_date.isoformat() if self.project.end_date else None,
                "startYear": self.project.start_year,
                "fundingType": "ZIM",
            }
        return {
            "success": self.success,
            "project": project,
            "employees": [
                {
                    "name": employee.name,
                    "months": [
                        {
                            "month": month.month,
                            "calendarYear": month.calendar_year,
                            "projectYear": month.project_year,
                            "totalHours": month.total_hours,
                            "billableHours": month.total_hours,
                            "dailyData": [entry.as_dict() for entry in month.daily_data],
                        }
                        for month in employee.months
                    ],
                }
                for employee in self.employees
            ],
            "errors": self.errors,
            "warnings": self.warnings,
        }


def excel_value_to_date(value: object) -> Optional[date]:
    """Accept datetimes, Excel serial numbers and ISO or German date strings."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if value <= 0:
            return None
        return EXCEL_EPOCH + timedelta(days=int(value) - EXCEL_UNIX_OFFSET)
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
        match = re.search(r"(\d{1,2})\.(\d{1,2})\.(\d{2,4})", text)
        if match:
            year = int(match.group(3))
            if year < 100:
                year += 2000
            try:
                return date(year, int(match.group(2)), int(match.group(1)))
            except ValueError:
                return None
    return None


def _open_workbook(content: bytes):
    try:
        return load_workbook(BytesIO(content), data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        raise ImportFormatError("Excel konnte nicht gelesen werden") from exc


def _cell(sheet, reference: str):
    return sheet[reference].value


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def is_employee_sheet(sheet_name: str) -> bool:
    if sheet_name.startswith(EMPLOYEE_SHEET_BLACKLIST):
        return False
    return EMPLOYEE_SHEET_PATTERN.match(sheet_name) is not None


def detect_zim_format(workbook) -> bool:
    if NAV_SHEET not in workbook.sheetnames:
        return False
    fkz = _text(_cell(workbook[NAV_SHEET], "C6"))
    if fkz.startswith(FUNDING_REFERENCE_PREFIXES):
        return True
    return any(is_employee_sheet(name) for name in workbook.sheetnames)


def parse_nav_sheet(workbook) -> Optional[ZimProject]:
    if NAV_SHEET not in workbook.sheetnames:
        return None
    nav = workbook[NAV_SHEET]
    start = excel_value_to_date(_cell(nav, "I2"))
    end = excel_value_to_date(_cell(nav, "I3"))
    if start and end and start > end:
        start, end = end, start
    if not start and end:
        start = end
        end = excel_value_to_date(_cell(nav, "I4"))
    if not start:
        logger.warning("ZIM-Import: kein Laufzeitbeginn im Nav-Sheet")
        return None

    name = _text(_cell(nav, "C3")) or _text(_cell(nav, "B4")) or "Unbekanntes Projekt"
    fkz = _text(_cell(nav, "C6")) or _text(_cell(nav, "B6"))
    company = _text(_cell(nav, "C7")) or _text(_cell(nav, "B8"))
    return ZimProject(name=name[:100], fkz=fkz, company=company, start_date=start, end_date=end)


def _is_marked(value: object, marker: str) -> bool:
    if value is None or value == "":
        return False
    if isinstance(value, str):
        return value.strip().upper() == marker
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value > 0
    return False


def parse_employee_sheet(workbook, sheet_name: str, start_year: int) -> Optional[ZimEmployee]:
    match = EMPLOYEE_SHEET_PATTERN.match(sheet_name)
    if not match or sheet_name not in workbook.sheetnames:
        return None
    sheet = workbook[sheet_name]
    short_name = match.group(1).strip()
    project_year = int(match.group(2))
    calendar_year = start_year + project_year - 1
    full_name = _text(_cell(sheet, "M11")) or short_name

    months: List[MonthData] = []
    for index in range(12):
        block = FIRST_BLOCK_ROW + index * BLOCK_SIZE
        month_date = excel_value_to_date(_cell(sheet, f"A{block}"))
        if not month_date:
            continue

        day_hours: Dict[int, float] = {}
        for day in range(1, 32):
            value = sheet.cell(row=block + SUM_ROW_OFFSET, column=day + FIRST_DAY_COLUMN - 1).value
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
                day_hours[day] = float(value)
        if not day_hours:
            for day in range(1, 32):
                column = day + FIRST_DAY_COLUMN - 1
                total = 0.0
                for row in range(block + AP_FIRST_ROW_OFFSET, block + AP_LAST_ROW_OFFSET + 1):
                    value = sheet.cell(row=row, column=column).value
                    if isinstance(value, (int, float)) and not isinstance(value, bool):
                        total += float(value)
                if total > 0:
                    day_hours[day] = total

        daily: List[DailyEntry] = []
        for day in range(1, 32):
            column = day + FIRST_DAY_COLUMN - 1
            vacation = _is_marked(sheet.cell(row=block + VACATION_ROW_OFFSET, column=column).value, "U")
            sick = _is_marked(sheet.cell(row=block + SICK_ROW_OFFSET, column=column).value, "K")
            hours = day_hours.get(day, 0.0)
            if hours > 0 or vacation or sick:
                absence = "K" if sick else ("U" if vacation else None)
                daily.append(DailyEntry(day=day, hours=hours, absence=absence))

        total_hours = sum(entry.hours for entry in daily)
        if daily:
            months.append(
                MonthData(
                    month=month_date.month,
                    calendar_year=calendar_year,
                    project_year=project_year,
                    daily_data=daily,
                    total_hours=total_hours,
                )
            )
    return ZimEmployee(name=full_name, months=months)


def parse_zim_workbook(content: bytes, filename: str = "") -> ZimParseResult:
    workbook = _open_workbook(content)
    result = ZimParseResult(success=False)

    project = parse_nav_sheet(workbook)
    if project is None:
        result.errors.append("Nav-Sheet nicht gefunden oder Laufzeitbeginn fehlt")
        return result
    result.project = project
    if not detect_zim_format(workbook):
        result.warnings.append("Datei entspricht nicht dem erwarteten ZIM-Format")

    sheet_names = [name for name in workbook.sheetnames if is_employee_sheet(name)]
    if not sheet_names:
        result.errors.append('Keine Mitarbeiter-Sheets gefunden (erwartet: "[Name] J1", "[Name] J2", ...)')
        return result

    merged: Dict[str, ZimEmployee] = {}
    for sheet_name in sheet_names:
        parsed = parse_employee_sheet(workbook, sheet_name, project.start_year)
        if parsed is None:
            result.warnings.append(f'Sheet "{sheet_name}" konnte nicht geparst werden')
            continue
        existing = merged.get(parsed.name)
        if existing:
            existing.months.extend(parsed.months)
        else:
            merged[parsed.name] = parsed

    for employee in merged.values():
        employee.months.sort(key=lambda month: (month.calendar_year, month.month))
    result.employees = list(merged.values())
    result.success = True
    logger.info(
        "ZIM-Import %s: Projekt %s, %d Mitarbeiter",
        filename or "-",
        project.name,
        len(result.employees),
    )
    return result


def parse_work_packages(content: bytes) -> List[schemas.WorkPackageCreate]:
    """Work packages from the first sheet: code, description, start, end."""
    workbook = _open_workbook(content)
    sheet = workbook.worksheets[0]
    packages: List[schemas.WorkPackageCreate] = []
    for row in sheet.iter_rows(min_row=WORK_PACKAGE_FIRST_ROW, max_col=4, values_only=True):
        padded = list(row) + [None] * (4 - len(row))
        code, description, start, end = padded[:4]
        if code is None or _text(code) == "":
            continue
        if not _text(description):
            continue
        packages.append(
            schemas.WorkPackageCreate(
                code=_text(code),
                description=_text(description),
                start_date=excel_value_to_date(start),
                end_date=excel_value_to_date(end),
            )
        )
    return packages


def timesheet_daily_data(month: MonthData) -> Dict[str, Dict[str, object]]:
    return {str(entry.day): {"hours": entry.hours, "absence": entry.absence} for entry in month.daily_data}
