from __future__ import annotations

from datetime import date, datetime, time
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from . import models


class HolidayCreate(BaseModel):
    name: str
    holiday_date: date
    state_code: Optional[str] = None


class Holiday(HolidayCreate):
    id: int
    model_config = ConfigDict(from_attributes=True)


class HolidaySyncRequest(BaseModel):
    year: int
    state: Optional[str] = None

    @field_validator("year")
    @classmethod
    def validate_year(cls, value: int) -> int:
        if value < 1900 or value > 2200:
            raise ValueError("Jahr liegt außerhalb des unterstützten Bereichs")
        return value


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < 6:
            raise ValueError("Passwort muss mindestens 6 Zeichen lang sein")
        return value

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name darf nicht leer sein")
        return value


class CompanyCreate(BaseModel):
    name: str
    street: Optional[str] = None
    house_number: Optional[str] = None
    zip: Optional[str] = None
    city: Optional[str] = None
    state_code: str = "DE-NW"
    country: str = "DE"
    legal_form: Optional[str] = None
    trade_register_city: Optional[str] = None
    trade_register_number: Optional[str] = None
    vat_id: Optional[str] = None
    industry_wz_code: Optional[str] = None
    industry_description: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Firmenname darf nicht leer sein")
        return value

    @field_validator("vat_id")
    @classmethod
    def normalize_vat_id(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().upper().replace(" ", "")
        return value or None


class Company(CompanyCreate):
    id: int
    model_config = ConfigDict(from_attributes=True)


class EmployeeCreate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    personnel_number: Optional[str] = None
    weekly_hours: float = 40.0
    annual_leave_days: int = 30
    qualification: Optional[str] = None
    qualification_group: str = "C"
    position_title: Optional[str] = None
    department: Optional[str] = None

    @field_validator("weekly_hours")
    @classmethod
    def validate_weekly_hours(cls, value: float) -> float:
        if value < 0 or value > 80:
            raise ValueError("Wochenarbeitszeit muss zwischen 0 und 80 Stunden liegen")
        return value

    @field_validator("annual_leave_days")
    @classmethod
    def validate_leave_days(cls, value: int) -> int:
        if value < 0:
            raise ValueError("Urlaubstage dürfen nicht negativ sein")
        return value


class EmployeeAction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    employee_id: Optional[int] = Field(default=None, alias="employeeId")


class EmployeeDelete(EmployeeAction):
    check_only: bool = Field(default=False, alias="checkOnly")


class Employee(BaseModel):
    id: int
    company_id: Optional[int]
    email: str
    name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str
    personnel_number: Optional[str] = None
    qualification_group: Optional[str] = None
    position_title: Optional[str] = None
    weekly_hours: Optional[float] = None
    annual_leave_days: Optional[int] = None
    is_active: bool
    is_anonymized: bool = False
    deactivated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class ProjectCreate(BaseModel):
    name: str
    project_number: Optional[str] = None
    funding_reference: Optional[str] = None
    funding_format: str = models.FundingFormat.ZIM
    funding_rate: Optional[float] = None
    overhead_rate: float = 0.0
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool = True

    @field_validator("funding_format")
    @classmethod
    def validate_funding_format(cls, value: str) -> str:
        value = (value or "").upper()
        if value not in models.FundingFormat.ALL:
            raise ValueError("Unbekanntes Förderformat")
        return value

    @field_validator("funding_rate", "overhead_rate")
    @classmethod
    def validate_rate(cls, value: Optional[float]) -> Optional[float]:
        if value is None:
            return None
        if value < 0 or value > 100:
            raise ValueError("Prozentsatz muss zwischen 0 und 100 liegen")
        return value


class Project(ProjectCreate):
    id: int
    company_id: int
    model_config = ConfigDict(from_attributes=True)


class AssignmentCreate(BaseModel):
    user_profile_id: int
    project_employee_number: Optional[int] = None


class Assignment(AssignmentCreate):
    id: int
    project_id: int
    is_active: bool
    model_config = ConfigDict(from_attributes=True)


class WorkPackageCreate(BaseModel):
    code: str
    description: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("code", "description")
    @classmethod
    def validate_not_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Feld darf nicht leer sein")
        return value


class WorkPackage(WorkPackageCreate):
    id: int
    project_id: int
    category: str
    model_config = ConfigDict(from_attributes=True)


class SalaryCreate(BaseModel):
    year: int
    hourly_rate: float

    @field_validator("hourly_rate")
    @classmethod
    def validate_rate(cls, value: float) -> float:
        if value < 0:
            raise ValueError("Stundensatz darf nicht negativ sein")
        return value


class Salary(SalaryCreate):
    id: int
    user_profile_id: int
    model_config = ConfigDict(from_attributes=True)


class TimeEntryCreate(BaseModel):
    entry_date: Optional[date] = None
    hours: Optional[float] = None
    category: Optional[str] = None
    project_id: Optional[int] = None
    work_package_code: Optional[str] = None
    work_package_description: Optional[str] = None
    notes: Optional[str] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    break_minutes: int = 0


class TimeEntry(BaseModel):
    id: int
    company_id: int
    user_profile_id: int
    project_id: Optional[int] = None
    entry_date: date
    hours: float
    category: str
    work_package_code: Optional[str] = None
    work_package_description: Optional[str] = None
    notes: Optional[str] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    break_minutes: int = 0
    status: str
    model_config = ConfigDict(from_attributes=True)


class TimeEntrySummary(BaseModel):
    total_hours: float = 0.0
    project_hours: float = 0.0
    non_billable_hours: float = 0.0
    vacation_hours: float = 0.0
    sick_hours: float = 0.0
    other_hours: float = 0.0
    count: int = 0


class PaymentRequestAction(BaseModel):
    action: Optional[str] = None
    project_id: Optional[int] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    notes: Optional[str] = None


class PaymentRequestUpdate(BaseModel):
    id: Optional[int] = None
    status: Optional[str] = None
    approved_amount: Optional[float] = None
    paid_amount: Optional[float] = None
    deductions: Optional[float] = None
    notes: Optional[str] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    third_party_costs: Optional[float] = None
    rd_contract_costs: Optional[float] = None
    temp_personnel_costs: Optional[float] = None


class PaymentRequestItem(BaseModel):
    user_profile_id: Optional[int] = None
    employee_number: int = 0
    employee_name: str
    qualification_group: str = "C"
    hours_by_month: Dict[str, float] = Field(default_factory=dict)
    total_hours: float = 0.0
    hourly_rate: float = 0.0
    total_costs: float = 0.0
    model_config = ConfigDict(from_attributes=True)


class PaymentRequest(BaseModel):
    id: int
    project_id: int
    request_number: int
    period_start: date
    period_end: date
    personnel_hours: float
    personnel_costs: float
    overhead_costs: float
    third_party_costs: Optional[float] = None
    rd_contract_costs: Optional[float] = None
    temp_personnel_costs: Optional[float] = None
    total_eligible_costs: float
    funding_rate_applied: float
    requested_amount: float
    approved_amount: Optional[float] = None
    paid_amount: Optional[float] = None
    deductions: Optional[float] = None
    status: str
    notes: Optional[str] = None
    calculated_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class PaymentRequestDetail(PaymentRequest):
    project_name: Optional[str] = None
    funding_reference: Optional[str] = None
    funding_rate: Optional[float] = None
    overhead_rate: Optional[float] = None
    items: List[PaymentRequestItem] = Field(default_factory=list)


class PaymentRequestExport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_request_id: Optional[int] = Field(default=None, alias="paymentRequestId")
    project_id: Optional[int] = Field(default=None, alias="projectId")
    period_start: Optional[date] = Field(default=None, alias="periodStart")
    period_end: Optional[date] = Field(default=None, alias="periodEnd")


class FzulHourSheetRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[int] = Field(default=None, alias="userId")
    project_id: Optional[int] = Field(default=None, alias="projectId")
    year: Optional[int] = None
    kurzbezeichnung_vorhaben: str = Field(default="", alias="kurzbezeichnungVorhaben")
    vorhaben_id: str = Field(default="", alias="vorhabenId")
    kurzbezeichnung_fue_taetigkeit: str = Field(default="", alias="kurzbezeichnungFueTaetigkeit")
    monate_fue: int = Field(default=12, alias="monateFue")

    @field_validator("monate_fue")
    @classmethod
    def validate_months(cls, value: int) -> int:
        if value < 1 or value > 12:
            raise ValueError("Monate FuE müssen zwischen 1 und 12 liegen")
        return value


class MonthlyTimesheetRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[int] = Field(default=None, alias="userId")
    project_id: Optional[int] = Field(default=None, alias="projectId")
    year: Optional[int] = None
    month: Optional[int] = None

    @field_validator("month")
    @classmethod
    def validate_month(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and not 1 <= value <= 12:
            raise ValueError("Monat muss zwischen 1 und 12 liegen")
        return value


class FzulDay(BaseModel):
    type: str = "work"
    free: float = 0.0
    holiday_name: Optional[str] = None


class FzulYearlyCalculation(BaseModel):
    weekly_hours: float = 40.0
    vacation_days_contract: float = 30.0
    sick_days: float = 0.0
    special_leave_days: float = 0.0
    holiday_count: float = 0.0
    short_time_days: float = 0.0
    yearly_factor: float = 1.0


class FzulTimesheet(BaseModel):
    employee_name: Optional[str] = None
    year: Optional[int] = None
    daily_data: Dict[str, FzulDay] = Field(default_factory=dict)
    yearly_calculation: FzulYearlyCalculation = Field(default_factory=FzulYearlyCalculation)
    project_title: Optional[str] = None
    project_fkz: Optional[str] = None
    position_title: str = "Entwickler"


class FzulPdfRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timesheet: Optional[FzulTimesheet] = None
    federal_state: str = Field(default="DE-NW", alias="federalState")
    company_id: Optional[int] = Field(default=None, alias="companyId")


class FzulExcelDay(BaseModel):
    hours: float = 0.0
    absence: Union[bool, str, None] = None


class FzulExcelSettings(BaseModel):
    weekly_hours: float = 40.0
    annual_leave_days: float = 30.0


class FzulExcelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    emp_name: str = Field(alias="empName")
    year: int
    day_data: Dict[int, Dict[int, FzulExcelDay]] = Field(default_factory=dict, alias="dayData")
    settings: FzulExcelSettings = Field(default_factory=FzulExcelSettings)
    holidays: Optional[List[date]] = None


class ImportedTimesheet(BaseModel):
    id: int
    employee_name: str
    project_name: str
    funding_reference: Optional[str] = None
    year: int
    month: int
    daily_data: dict
    total_billable_hours: float
    total_absence_days: int
    original_filename: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)
