from __future__ import annotations

import time as time_module
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas
from .security import hash_password


def get_user(db: Session, user_id: int) -> Optional[models.UserProfile]:
    return db.query(models.UserProfile).filter(models.UserProfile.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[models.UserProfile]:
    normalized = (email or "").strip().lower()
    return db.query(models.UserProfile).filter(models.UserProfile.email == normalized).first()


def create_user(
    db: Session,
    *,
    email: str,
    password: str,
    name: str,
    company_id: Optional[int] = None,
    role: str = models.Role.EMPLOYEE,
    **fields,
) -> models.UserProfile:
    normalized = email.strip().lower()
    if get_user_by_email(db, normalized):
        raise ValueError("DUPLICATE_EMAIL")
    db_user = models.UserProfile(
        email=normalized,
        password_hash=hash_password(password),
        name=name.strip(),
        company_id=company_id,
        role=role,
        **fields,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def get_company_by_vat_id(db: Session, vat_id: str) -> Optional[models.Company]:
    return db.query(models.Company).filter(models.Company.vat_id == vat_id).first()


def get_company_by_name(db: Session, name: str) -> Optional[models.Company]:
    return (
        db.query(models.Company)
        .filter(func.lower(models.Company.name) == name.strip().lower())
        .first()
    )


def create_company(
    db: Session, company: schemas.CompanyCreate, creator: models.UserProfile
) -> models.Company:
    db_company = models.Company(**company.model_dump(), created_by=creator.id)
    db.add(db_company)
    db.flush()
    creator.company_id = db_company.id
    creator.role = models.Role.COMPANY_ADMIN
    db.commit()
    db.refresh(db_company)
    return db_company


def get_employees(db: Session, company_id: int) -> List[models.UserProfile]:
    return (
        db.query(models.UserProfile)
        .filter(models.UserProfile.company_id == company_id)
        .order_by(models.UserProfile.name)
        .all()
    )


def get_active_employees(db: Session, company_id: int) -> List[models.UserProfile]:
    return (
        db.query(models.UserProfile)
        .filter(
            models.UserProfile.company_id == company_id,
            models.UserProfile.is_active.is_(True),
        )
        .all()
    )


def get_employee_in_company(
    db: Session, company_id: int, employee_id: int
) -> Optional[models.UserProfile]:
    return (
        db.query(models.UserProfile)
        .filter(
            models.UserProfile.id == employee_id,
            models.UserProfile.company_id == company_id,
        )
        .first()
    )


def create_employee(
    db: Session, company_id: int, employee: schemas.EmployeeCreate
) -> models.UserProfile:
    payload = employee.model_dump(exclude={"name", "email", "password", "role"})
    return create_user(
        db,
        email=employee.email or "",
        password=employee.password or "",
        name=employee.name or "",
        company_id=company_id,
        role=employee.role or models.Role.EMPLOYEE,
        **payload,
    )


def deactivate_employee(
    db: Session, employee: models.UserProfile, acting_user: models.UserProfile
) -> models.UserProfile:
    employee.is_active = False
    employee.deactivated_at = datetime.utcnow()
    employee.deactivated_by = acting_user.id
    db.commit()
    db.refresh(employee)
    return employee


def activate_employee(db: Session, employee: models.UserProfile) -> models.UserProfile:
    employee.is_active = True
    employee.deactivated_at = None
    employee.deactivated_by = None
    db.commit()
    db.refresh(employee)
    return employee


_ANONYMIZED_FIELDS = (
    "first_name",
    "last_name",
    "phone",
    "birth_date",
    "street",
    "house_number",
    "postal_code",
    "city",
    "country",
    "qualification",
    "job_function",
    "department",
    "personnel_number",
)


def anonymize_employee(db: Session, employee: models.UserProfile) -> models.UserProfile:
    now = datetime.utcnow()
    employee.name = "Gelöschter Mitarbeiter"
    for field in _ANONYMIZED_FIELDS:
        setattr(employee, field, None)
    employee.email = f"anon_{int(time_module.time() * 1000)}_{employee.id}@deleted.local"
    employee.is_active = False
    employee.deactivated_at = now
    employee.is_anonymized = True
    employee.anonymized_at = now
    db.commit()
    db.refresh(employee)
    return employee


def employee_delete_blockers(db: Session, employee: models.UserProfile) -> Dict[str, int]:
    assignments = (
        db.query(models.ProjectAssignment)
        .filter(models.ProjectAssignment.user_profile_id == employee.id)
        .all()
    )
    active_projects = sum(
        1 for assignment in assignments if assignment.is_active and assignment.project and assignment.project.is_active
    )
    entry_count = (
        db.query(func.count(models.TimeEntry.id))
        .filter(models.TimeEntry.user_profile_id == employee.id)
        .scalar()
    )
    return {
        "active_projects": active_projects,
        "total_assignments": len(assignments),
        "time_entries": int(entry_count or 0),
    }


def delete_employee(db: Session, employee: models.UserProfile) -> None:
    db.delete(employee)
    db.commit()


def get_project(db: Session, project_id: int) -> Optional[models.Project]:
    return db.query(models.Project).filter(models.Project.id == project_id).first()


def get_projects(db: Session, company_id: int) -> List[models.Project]:
    return (
        db.query(models.Project)
        .filter(models.Project.company_id == company_id)
        .order_by(models.Project.name)
        .all()
    )


def create_project(db: Session, company_id: int, project: schemas.ProjectCreate) -> models.Project:
    db_project = models.Project(**project.model_dump(), company_id=company_id)
    db.add(db_project)
    db.commit()
    db.refresh(db_project)
    return db_project


def create_assignment(
    db: Session, project: models.Project, assignment: schemas.AssignmentCreate
) -> models.ProjectAssignment:
    existing = (
        db.query(models.ProjectAssignment)
        .filter(
            models.ProjectAssignment.project_id == project.id,
            models.ProjectAssignment.user_profile_id == assignment.user_profile_id,
        )
        .first()
    )
    if existing:
        if assignment.project_employee_number is not None:
            existing.project_employee_number = assignment.project_employee_number
        existing.is_active = True
        db.commit()
        db.refresh(existing)
        return existing
    number = assignment.project_employee_number
    if number is None:
        current_max = (
            db.query(func.max(models.ProjectAssignment.project_employee_number))
            .filter(models.ProjectAssignment.project_id == project.id)
            .scalar()
        )
        number = int(current_max or 0) + 1
    db_assignment = models.ProjectAssignment(
        project_id=project.id,
        user_profile_id=assignment.user_profile_id,
        project_employee_number=number,
    )
    db.add(db_assignment)
    db.commit()
    db.refresh(db_assignment)
    return db_assignment


def get_employee_numbers(db: Session, project_id: int) -> Dict[int, int]:
    rows = (
        db.query(models.ProjectAssignment)
        .filter(models.ProjectAssignment.project_id == project_id)
        .all()
    )
    return {row.user_profile_id: row.project_employee_number or 0 for row in rows}


def get_work_packages(db: Session, project_id: int) -> List[models.WorkPackage]:
    return (
        db.query(models.WorkPackage)
        .filter(models.WorkPackage.project_id == project_id)
        .order_by(models.WorkPackage.code)
        .all()
    )


def create_work_package(
    db: Session, project: models.Project, work_package: schemas.WorkPackageCreate
) -> models.WorkPackage:
    db_package = models.WorkPackage(project_id=project.id, **work_package.model_dump())
    db.add(db_package)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValueError("DUPLICATE_WORK_PACKAGE") from exc
    db.refresh(db_package)
    return db_package


def add_work_packages(
    db: Session, project: models.Project, packages: Iterable[schemas.WorkPackageCreate]
) -> List[models.WorkPackage]:
    created = [models.WorkPackage(project_id=project.id, **package.model_dump()) for package in packages]
    db.add_all(created)
    db.commit()
    for package in created:
        db.refresh(package)
    return created


def upsert_salary(db: Session, user: models.UserProfile, salary: schemas.SalaryCreate) -> models.SalaryComponent:
    existing = (
        db.query(models.SalaryComponent)
        .filter(
            models.SalaryComponent.user_profile_id == user.id,
            models.SalaryComponent.year == salary.year,
        )
        .first()
    )
    if existing:
        existing.hourly_rate = salary.hourly_rate
        db.commit()
        db.refresh(existing)
        return existing
    db_salary = models.SalaryComponent(user_profile_id=user.id, **salary.model_dump())
    db.add(db_salary)
    db.commit()
    db.refresh(db_salary)
    return db_salary


def get_salary_rates(
    db: Session, user_ids: Sequence[int], years: Sequence[int]
) -> Dict[int, Dict[int, float]]:
    if not user_ids:
        return {}
    rows = (
        db.query(models.SalaryComponent)
        .filter(
            models.SalaryComponent.user_profile_id.in_(list(user_ids)),
            models.SalaryComponent.year.in_(list(years)),
        )
        .all()
    )
    rates: Dict[int, Dict[int, float]] = {}
    for row in rows:
        rates.setdefault(row.user_profile_id, {})[row.year] = float(row.hourly_rate)
    return rates


def get_time_entry(db: Session, entry_id: int) -> Optional[models.TimeEntry]:
    return db.query(models.TimeEntry).filter(models.TimeEntry.id == entry_id).first()


def get_time_entries(
    db: Session,
    company_id: int,
    *,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_profile_id: Optional[int] = None,
) -> List[models.TimeEntry]:
    query = db.query(models.TimeEntry).filter(models.TimeEntry.company_id == company_id)
    if start_date:
        query = query.filter(models.TimeEntry.entry_date >= start_date)
    if end_date:
        query = query.filter(models.TimeEntry.entry_date <= end_date)
    if user_profile_id:
        query = query.filter(models.TimeEntry.user_profile_id == user_profile_id)
    return query.order_by(models.TimeEntry.entry_date.desc(), models.TimeEntry.id.desc()).all()


def get_user_entries_in_range(
    db: Session,
    user_profile_id: int,
    start: date,
    end: date,
) -> List[models.TimeEntry]:
    return (
        db.query(models.TimeEntry)
        .filter(
            models.TimeEntry.user_profile_id == user_profile_id,
            models.TimeEntry.entry_date >= start,
            models.TimeEntry.entry_date <= end,
        )
        .order_by(models.TimeEntry.entry_date)
        .all()
    )


def get_project_work_entries(
    db: Session,
    project_id: int,
    start: date,
    end: date,
    user_ids: Optional[Sequence[int]] = None,
) -> List[models.TimeEntry]:
    query = db.query(models.TimeEntry).filter(
        models.TimeEntry.project_id == project_id,
        models.TimeEntry.category == models.TimeEntryCategory.PROJECT_WORK,
        models.TimeEntry.entry_date >= start,
        models.TimeEntry.entry_date <= end,
    )
    if user_ids is not None:
        query = query.filter(models.TimeEntry.user_profile_id.in_(list(user_ids)))
    return query.order_by(models.TimeEntry.entry_date).all()


def create_time_entry(
    db: Session, user: models.UserProfile, entry: schemas.TimeEntryCreate
) -> models.TimeEntry:
    if entry.entry_date is None or entry.hours is None or not entry.category:
        raise ValueError("MISSING_FIELDS")
    if entry.hours < 0 or entry.hours > 24:
        raise ValueError("INVALID_HOURS")
    if entry.category not in models.TimeEntryCategory.ALL:
        raise ValueError("INVALID_CATEGORY")
    if entry.category in models.TimeEntryCategory.REQUIRES_PROJECT and not entry.project_id:
        raise ValueError("PROJECT_REQUIRED")

    duplicate_query = db.query(models.TimeEntry).filter(
        models.TimeEntry.user_profile_id == user.id,
        models.TimeEntry.entry_date == entry.entry_date,
    )
    if entry.project_id:
        duplicate_query = duplicate_query.filter(models.TimeEntry.project_id == entry.project_id)
    else:
        duplicate_query = duplicate_query.filter(
            models.TimeEntry.project_id.is_(None),
            models.TimeEntry.category == entry.category,
        )
    if entry.work_package_code:
        duplicate_query = duplicate_query.filter(models.TimeEntry.work_package_code == entry.work_package_code)
    else:
        duplicate_query = duplicate_query.filter(models.TimeEntry.work_package_code.is_(None))
    if duplicate_query.first():
        raise ValueError("DUPLICATE_TIME_ENTRY")

    db_entry = models.TimeEntry(
        company_id=user.company_id,
        user_profile_id=user.id,
        project_id=entry.project_id,
        entry_date=entry.entry_date,
        hours=entry.hours,
        category=entry.category,
        work_package_code=entry.work_package_code or None,
        work_package_description=entry.work_package_description,
        notes=entry.notes,
        start_time=entry.start_time,
        end_time=entry.end_time,
        break_minutes=entry.break_minutes or 0,
        status=models.TimeEntryStatus.DRAFT,
        created_by=user.id,
    )
    db.add(db_entry)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValueError("DUPLICATE_TIME_ENTRY") from exc
    db.refresh(db_entry)
    return db_entry


def delete_time_entry(db: Session, entry: models.TimeEntry) -> None:
    db.delete(entry)
    db.commit()


def replace_holidays(
    db: Session, year: int, state_code: Optional[str], holidays: Iterable[schemas.HolidayCreate]
) -> List[models.PublicHoliday]:
    start = date(year, 1, 1)
    end = date(year, 12, 31)
    scope_filter = models.PublicHoliday.state_code.is_(None)
    if state_code:
        scope_filter = or_(scope_filter, models.PublicHoliday.state_code == state_code)
    db.query(models.PublicHoliday).filter(
        models.PublicHoliday.holiday_date >= start,
        models.PublicHoliday.holiday_date <= end,
        scope_filter,
    ).delete(synchronize_session=False)
    created = [models.PublicHoliday(**holiday.model_dump()) for holiday in holidays]
    db.add_all(created)
    db.commit()
    return created


def get_holidays_for_year(db: Session, year: int, state_code: Optional[str]) -> List[models.PublicHoliday]:
    scope_filter = models.PublicHoliday.state_code.is_(None)
    if state_code:
        scope_filter = or_(scope_filter, models.PublicHoliday.state_code == state_code)
    return (
        db.query(models.PublicHoliday)
        .filter(
            models.PublicHoliday.holiday_date >= date(year, 1, 1),
            models.PublicHoliday.holiday_date <= date(year, 12, 31),
            scope_filter,
        )
        .order_by(models.PublicHoliday.holiday_date)
        .all()
    )


def get_payment_request(db: Session, request_id: int) -> Optional[models.PaymentRequest]:
    return db.query(models.PaymentRequest).filter(models.PaymentRequest.id == request_id).first()


def get_payment_requests(db: Session, project_id: int) -> List[models.PaymentRequest]:
    return (
        db.query(models.PaymentRequest)
        .filter(models.PaymentRequest.project_id == project_id)
        .order_by(models.PaymentRequest.request_number.desc())
        .all()
    )


def next_request_number(db: Session, project_id: int) -> int:
    current = (
        db.query(func.max(models.PaymentRequest.request_number))
        .filter(models.PaymentRequest.project_id == project_id)
        .scalar()
    )
    return int(current or 0) + 1


def create_payment_request(
    db: Session,
    project: models.Project,
    *,
    period_start: date,
    period_end: date,
    totals: Dict[str, float],
    items: Iterable[schemas.PaymentRequestItem],
    notes: Optional[str] = None,
    created_by: Optional[int] = None,
) -> models.PaymentRequest:
    db_request = models.PaymentRequest(
        project_id=project.id,
        request_number=next_request_number(db, project.id),
        period_start=period_start,
        period_end=period_end,
        personnel_hours=totals["personnel_hours"],
        personnel_costs=totals["personnel_costs"],
        overhead_costs=totals["overhead_costs"],
        third_party_costs=totals.get("third_party_costs", 0.0),
        total_eligible_costs=totals["total_eligible_costs"],
        funding_rate_applied=totals["funding_rate"],
        requested_amount=totals["requested_amount"],
        status=models.PaymentRequestStatus.DRAFT,
        notes=notes,
        calculated_at=datetime.utcnow(),
        created_by=created_by,
    )
    db_request.items = [models.PaymentRequestItem(**item.model_dump()) for item in items]
    db.add(db_request)
    db.commit()
    db.refresh(db_request)
    return db_request


_STATUS_TIMESTAMPS = {
    models.PaymentRequestStatus.SUBMITTED: "submitted_at",
    models.PaymentRequestStatus.APPROVED: "approved_at",
    models.PaymentRequestStatus.PAID: "paid_at",
}


def update_payment_request(
    db: Session, payment_request: models.PaymentRequest, changes: Dict[str, object]
) -> models.PaymentRequest:
    for key, value in changes.items():
        setattr(payment_request, key, value)
    status = changes.get("status")
    timestamp_field = _STATUS_TIMESTAMPS.get(status) if isinstance(status, str) else None
    if timestamp_field and not changes.get(timestamp_field):
        setattr(payment_request, timestamp_field, datetime.utcnow())
    payment_request.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(payment_request)
    return payment_request


def delete_payment_request(db: Session, payment_request: models.PaymentRequest) -> None:
    if payment_request.status != models.PaymentRequestStatus.DRAFT:
        raise ValueError("NOT_A_DRAFT")
    db.delete(payment_request)
    db.commit()


def upsert_fzul_pdf(
    db: Session,
    *,
    company_id: Optional[int],
    employee_name: str,
    year: int,
    pdf_data: bytes,
    filename: str,
    project_short_name: Optional[str] = None,
) -> models.FzulPdfArchive:
    existing = (
        db.query(models.FzulPdfArchive)
        .filter(
            models.FzulPdfArchive.company_id == company_id,
            models.FzulPdfArchive.employee_name == employee_name,
            models.FzulPdfArchive.year == year,
        )
        .first()
    )
    if existing is None:
        existing = models.FzulPdfArchive(company_id=company_id, employee_name=employee_name, year=year)
        db.add(existing)
    existing.pdf_data = pdf_data
    existing.filename = filename
    existing.file_size = len(pdf_data)
    existing.project_short_name = project_short_name
    existing.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(existing)
    return existing


def get_fzul_pdf(db: Session, pdf_id: int) -> Optional[models.FzulPdfArchive]:
    return db.query(models.FzulPdfArchive).filter(models.FzulPdfArchive.id == pdf_id).first()


def upsert_import_employee(
    db: Session, company_id: int, name: str, *, weekly_hours: float, annual_leave_days: int
) -> models.ImportEmployee:
    existing = (
        db.query(models.ImportEmployee)
        .filter(models.ImportEmployee.company_id == company_id, models.ImportEmployee.name == name)
        .first()
    )
    if existing is None:
        existing = models.ImportEmployee(
            company_id=company_id,
            name=name,
            weekly_hours=weekly_hours,
            annual_leave_days=annual_leave_days,
        )
        db.add(existing)
        db.flush()
    return existing


def upsert_imported_timesheet(
    db: Session,
    company_id: int,
    *,
    employee_name: str,
    project_name: str,
    year: int,
    month: int,
    daily_data: Dict[str, dict],
    total_billable_hours: float,
    total_absence_days: int,
    funding_reference: Optional[str],
    original_filename: Optional[str],
) -> models.ImportedTimesheet:
    existing = (
        db.query(models.ImportedTimesheet)
        .filter(
            models.ImportedTimesheet.company_id == company_id,
            models.ImportedTimesheet.employee_name == employee_name,
            models.ImportedTimesheet.project_name == project_name,
            models.ImportedTimesheet.year == year,
            models.ImportedTimesheet.month == month,
        )
        .first()
    )
    if existing is None:
        existing = models.ImportedTimesheet(
            company_id=company_id,
            employee_name=employee_name,
            project_name=project_name,
            year=year,
            month=month,
        )
        db.add(existing)
    existing.daily_data = daily_data
    existing.total_billable_hours = total_billable_hours
    existing.total_absence_days = total_absence_days
    existing.funding_reference = funding_reference
    existing.original_filename = original_filename
    existing.updated_at = datetime.utcnow()
    db.flush()
    return existing


def get_imported_timesheets(
    db: Session,
    company_id: int,
    *,
    employee_name: Optional[str] = None,
    year: Optional[int] = None,
) -> List[models.ImportedTimesheet]:
    query = db.query(models.ImportedTimesheet).filter(models.ImportedTimesheet.company_id == company_id)
    if employee_name:
        query = query.filter(models.ImportedTimesheet.employee_name == employee_name)
    if year:
        query = query.filter(models.ImportedTimesheet.year == year)
    return query.order_by(
        models.ImportedTimesheet.employee_name,
        models.ImportedTimesheet.year,
        models.ImportedTimesheet.month,
    ).all()


def delete_imported_timesheets(
    db: Session,
    company_id: int,
    *,
    timesheet_id: Optional[int] = None,
    project_name: Optional[str] = None,
    employee_name: Optional[str] = None,
) -> int:
    query = db.query(models.ImportedTimesheet).filter(models.ImportedTimesheet.company_id == company_id)
    if timesheet_id:
        query = query.filter(models.ImportedTimesheet.id == timesheet_id)
    elif project_name:
        query = query.filter(models.ImportedTimesheet.project_name == project_name)
    elif employee_name:
        query = query.filter(models.ImportedTimesheet.employee_name == employee_name)
    else:
        return 0
    deleted = query.delete(synchronize_session=False)
    db.commit()
    return deleted
