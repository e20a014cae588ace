from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


class Role:
    COMPANY_ADMIN = "company_admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"

    ALL = (COMPANY_ADMIN, MANAGER, EMPLOYEE)


class TimeEntryCategory:
    PROJECT_WORK = "project_work"
    NON_BILLABLE = "non_billable"
    TIME_COMPENSATION = "time_compensation"
    VACATION = "vacation"
    SICK_LEAVE = "sick_leave"
    OTHER_ABSENCE = "other_absence"
    UNPAID_ABSENCE = "unpaid_absence"

    ALL = (
        PROJECT_WORK,
        NON_BILLABLE,
        TIME_COMPENSATION,
        VACATION,
        SICK_LEAVE,
        OTHER_ABSENCE,
        UNPAID_ABSENCE,
    )
    REQUIRES_PROJECT = (PROJECT_WORK, NON_BILLABLE)


class TimeEntryStatus:
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"


class FundingFormat:
    ZIM = "ZIM"
    FZUL = "FZUL"
    BMBF_KMU = "BMBF_KMU"
    OTHER = "OTHER"

    ALL = (ZIM, FZUL, BMBF_KMU, OTHER)


class PaymentRequestStatus:
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    street = Column(String, nullable=True)
    house_number = Column(String, nullable=True)
    zip = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state_code = Column(String, default="DE-NW")
    country = Column(String, default="DE")
    legal_form = Column(String, nullable=True)
    trade_register_city = Column(String, nullable=True)
    trade_register_number = Column(String, nullable=True)
    vat_id = Column(String, unique=True, nullable=True)
    industry_wz_code = Column(String, nullable=True)
    industry_description = Column(String, nullable=True)
    email = Column(String, nullable=True)
    website = Column(String, nullable=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    employees = relationship("UserProfile", back_populates="company")
    projects = relationship("Project", back_populates="company", cascade="all, delete-orphan")


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    name = Column(String, nullable=False)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    role = Column(String, default=Role.EMPLOYEE)
    personnel_number = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    birth_date = Column(Date, nullable=True)
    street = Column(String, nullable=True)
    house_number = Column(String, nullable=True)
    postal_code = Column(String, nullable=True)
    city = Column(String, nullable=True)
    country = Column(String, nullable=True)
    qualification = Column(String, nullable=True)
    qualification_group = Column(String, default="C")
    job_function = Column(String, nullable=True)
    department = Column(String, nullable=True)
    position_title = Column(String, nullable=True)
    weekly_hours = Column(Float, default=40.0)
    annual_leave_days = Column(Integer, default=30)
    is_active = Column(Boolean, default=True)
    deactivated_at = Column(DateTime, nullable=True)
    deactivated_by = Column(Integer, nullable=True)
    is_anonymized = Column(Boolean, default=False)
    anonymized_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    company = relationship("Company", back_populates="employees")
    time_entries = relationship("TimeEntry", back_populates="user", foreign_keys="TimeEntry.user_profile_id")
    assignments = relationship("ProjectAssignment", back_populates="user", cascade="all, delete-orphan")
    salary_components = relationship("SalaryComponent", back_populates="user", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        if self.last_name and self.first_name:
            return f"{self.last_name}, {self.first_name}"
        return self.name or "Unbekannt"

    @property
    def is_admin(self) -> bool:
        return self.role == Role.COMPANY_ADMIN

    @property
    def can_manage_employees(self) -> bool:
        return self.role in (Role.COMPANY_ADMIN, Role.MANAGER)


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    name = Column(String, nullable=False)
    project_number = Column(String, nullable=True)
    funding_reference = Column(String, nullable=True)
    funding_format = Column(String, default=FundingFormat.ZIM)
    funding_rate = Column(Float, nullable=True)
    overhead_rate = Column(Float, default=0.0)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    company = relationship("Company", back_populates="projects")
    work_packages = relationship("WorkPackage", back_populates="project", cascade="all, delete-orphan")
    assignments = relationship("ProjectAssignment", back_populates="project", cascade="all, delete-orphan")
    payment_requests = relationship("PaymentRequest", back_populates="project", cascade="all, delete-orphan")


class WorkPackage(Base):
    __tablename__ = "work_packages"
    __table_args__ = (UniqueConstraint("project_id", "code", name="uq_work_package_code"),)

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)
    code = Column(String, nullable=False)
    description = Column(String, nullable=False)
    category = Column(String, default=TimeEntryCategory.PROJECT_WORK)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("Project", back_populates="work_packages")


class ProjectAssignment(Base):
    __tablename__ = "project_assignments"
    __table_args__ = (UniqueConstraint("project_id", "user_profile_id", name="uq_project_assignment"),)

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)
    user_profile_id = Column(Integer, ForeignKey("user_profiles.id"), nullable=False)
    project_employee_number = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True)

    project = relationship("Project", back_populates="assignments")
    user = relationship("UserProfile", back_populates="assignments")


class SalaryComponent(Base):
    __tablename__ = "salary_components"
    __table_args__ = (UniqueConstraint("user_profile_id", "year", name="uq_salary_year"),)

    id = Column(Integer, primary_key=True, index=True)
    user_profile_id = Column(Integer, ForeignKey("user_profiles.id"), nullable=False)
    year = Column(Integer, nullable=False)
    hourly_rate = Column(Float, nullable=False)

    user = relationship("UserProfile", back_populates="salary_components")


class TimeEntry(Base):
    __tablename__ = "time_entries"
    __table_args__ = (
        UniqueConstraint(
            "user_profile_id",
            "entry_date",
            "project_id",
            "work_package_code",
            name="uq_time_entry_slot",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    user_profile_id = Column(Integer, ForeignKey("user_profiles.id"), nullable=False)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    entry_date = Column(Date, nullable=False, index=True)
    hours = Column(Float, nullable=False)
    category = Column(String, nullable=False)
    work_package_code = Column(String, nullable=True)
    work_package_description = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    break_minutes = Column(Integer, default=0)
    status = Column(String, default=TimeEntryStatus.DRAFT)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("UserProfile", back_populates="time_entries", foreign_keys=[user_profile_id])
    project = relationship("Project")


class PublicHoliday(Base):
    __tablename__ = "public_holidays"

    id = Column(Integer, primary_key=True, index=True)
    holiday_date = Column(Date, nullable=False, index=True)
    name = Column(String, nullable=False)
    state_code = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class PaymentRequest(Base):
    __tablename__ = "payment_requests"
    __table_args__ = (UniqueConstraint("project_id", "request_number", name="uq_payment_request_number"),)

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)
    request_number = Column(Integer, nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    personnel_hours = Column(Float, default=0.0)
    personnel_costs = Column(Float, default=0.0)
    overhead_costs = Column(Float, default=0.0)
    third_party_costs = Column(Float, default=0.0)
    rd_contract_costs = Column(Float, default=0.0)
    temp_personnel_costs = Column(Float, default=0.0)
    total_eligible_costs = Column(Float, default=0.0)
    funding_rate_applied = Column(Float, default=50.0)
    requested_amount = Column(Float, default=0.0)
    approved_amount = Column(Float, nullable=True)
    paid_amount = Column(Float, nullable=True)
    deductions = Column(Float, nullable=True)
    status = Column(String, default=PaymentRequestStatus.DRAFT)
    notes = Column(Text, nullable=True)
    calculated_at = Column(DateTime, nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="payment_requests")
    items = relationship(
        "PaymentRequestItem",
        back_populates="payment_request",
        cascade="all, delete-orphan",
        order_by="[PaymentRequestItem.employee_number, PaymentRequestItem.employee_name]",
    )


class PaymentRequestItem(Base):
    __tablename__ = "payment_request_items"

    id = Column(Integer, primary_key=True, index=True)
    payment_request_id = Column(Integer, ForeignKey("payment_requests.id"), nullable=False)
    user_profile_id = Column(Integer, ForeignKey("user_profiles.id"), nullable=True)
    employee_number = Column(Integer, default=0)
    employee_name = Column(String, nullable=False)
    qualification_group = Column(String, default="C")
    hours_by_month = Column(JSON, default=dict)
    total_hours = Column(Float, default=0.0)
    hourly_rate = Column(Float, default=0.0)
    total_costs = Column(Float, default=0.0)

    payment_request = relationship("PaymentRequest", back_populates="items")


class FzulPdfArchive(Base):
    __tablename__ = "fzul_pdf_archive"
    __table_args__ = (UniqueConstraint("company_id", "employee_name", "year", name="uq_fzul_pdf"),)

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True)
    employee_name = Column(String, nullable=False)
    year = Column(Integer, nullable=False)
    pdf_data = Column(LargeBinary, nullable=False)
    filename = Column(String, nullable=False)
    file_size = Column(Integer, default=0)
    project_short_name = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ImportEmployee(Base):
    __tablename__ = "import_employees"
    __table_args__ = (UniqueConstraint("company_id", "name", name="uq_import_employee"),)

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    name = Column(String, nullable=False)
    weekly_hours = Column(Float, default=40.0)
    annual_leave_days = Column(Integer, default=30)
    created_at = Column(DateTime, default=datetime.utcnow)


class ImportedTimesheet(Base):
    __tablename__ = "imported_timesheets"
    __table_args__ = (
        UniqueConstraint(
            "company_id",
            "employee_name",
            "project_name",
            "year",
            "month",
            name="uq_imported_timesheet",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    employee_name = Column(String, nullable=False)
    project_name = Column(String, nullable=False)
    funding_reference = Column(String, nullable=True)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    daily_data = Column(JSON, default=dict)
    total_billable_hours = Column(Float, default=0.0)
    total_absence_days = Column(Integer, default=0)
    original_filename = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
