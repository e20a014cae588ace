from __future__ import annotations

import re
from datetime import date

from app import holiday_calculator, models, pdf_drawing, pdf_export, schemas, services, zim_export
from app.payment_requests import Calculation


def _page_count(content: bytes) -> int:
    return len(re.findall(rb"/Type /Page[^s]", content))


def test_fzul_hour_sheet_has_calendar_and_share_page():
    share = services.calculate_fzul_share(weekly_hours=40, vacation_days=28, sick_days=3, total_hours=120)
    buffer = pdf_export.export_fzul_hour_sheet_pdf(
        last_name="Müller",
        first_name="Jörg",
        year=2024,
        state="DE-BY",
        project_title="Sensorplattform",
        project_id_label="V-2024-01",
        activity="Algorithmenentwicklung",
        hours_by_day={date(2024, 1, 2): 6.5, date(2024, 2, 12): 8},
        holiday_labels=holiday_calculator.holiday_labels(2024, "BY"),
        share=share,
    )
    content = buffer.getvalue()
    assert content.startswith(b"%PDF")
    assert _page_count(content) == 2


def test_fzul_form_pdf():
    timesheet = schemas.FzulTimesheet(
        employee_name="Mustermann, Max",
        year=2024,
        daily_data={
            "2024-01-01": schemas.FzulDay(type="holiday", holiday_name="Neuj."),
            "2024-01-02": schemas.FzulDay(type="work", free=6),
            "2024-01-03": schemas.FzulDay(type="vacation"),
            "2024-01-04": schemas.FzulDay(type="sick"),
            "2024-01-05": schemas.FzulDay(type="special_leave"),
            "2024-01-06": schemas.FzulDay(type="weekend"),
        },
        project_title="Sensorplattform",
    )
    labels = holiday_calculator.holiday_labels(2024, "NW", variant=holiday_calculator.VARIANT_FORM)
    content = pdf_export.export_fzul_form_pdf(timesheet, "DE-NW", labels).getvalue()
    assert content.startswith(b"%PDF")
    assert _page_count(content) == 2
    assert pdf_export.fzul_form_filename("Mustermann, Max", 2024) == "FZul_Mustermann_Max_2024.pdf"


def test_state_name():
    assert pdf_export.state_name("DE-BY") == "Bayern"


def test_fit_text_shortens_long_labels():
    assert pdf_drawing.fit_text("Leichtbau", 8, 200) == "Leichtbau"
    shortened = pdf_drawing.fit_text("Entwicklung eines neuartigen Leichtbauverfahrens", 8, 80)
    assert shortened.endswith("...")
    assert len(shortened) < 40


def test_monthly_timesheet_pdf():
    project = models.Project(name="Sensorplattform", funding_reference="16KN123456")
    employee = models.UserProfile(name="Max Mustermann", first_name="Max", last_name="Mustermann")
    work_package_codes = [f"AP{number}" for number in range(1, 9)]
    sheet = services.MonthlyTimesheet(
        year=2024,
        month=10,
        project_hours={code: {1: 1.0} for code in work_package_codes},
        vacation_hours={7: 8.0},
        sick_hours={8: 8.0},
        holiday_hours={3: 8.0},
    )
    buffer = zim_export.export_monthly_timesheet_pdf(
        company_name="Muster GmbH",
        project=project,
        employee=employee,
        sheet=sheet,
        work_package_names={"AP1": "Konzeption einer sehr langen Beschreibung " * 6},
    )
    content = buffer.getvalue()
    assert content.startswith(b"%PDF")
    assert _page_count(content) == 1
    assert zim_export.monthly_timesheet_filename(employee, 2024, 10) == "Stundennachweis_Mustermann_2024-10.pdf"


def test_payment_request_pdf_has_both_annexes():
    project = models.Project(name="Sensorplattform", funding_reference="16KN123456", overhead_rate=100.0)
    items = [
        schemas.PaymentRequestItem(
            user_profile_id=index,
            employee_number=index,
            employee_name=f"Mitarbeiter {index}, Test",
            hours_by_month={"2024-01": 100.0, "2024-02": 80.0},
            total_hours=180.0,
            hourly_rate=45.0,
            total_costs=8100.0,
        )
        for index in range(1, 4)
    ]
    calculation = Calculation(
        items=items,
        totals={
            "personnel_hours": 540.0,
            "personnel_costs": 24300.0,
            "overhead_rate": 100.0,
            "overhead_costs": 24300.0,
            "third_party_costs": 0.0,
            "total_eligible_costs": 48600.0,
            "funding_rate": 45.0,
            "requested_amount": 21870.0,
        },
        warnings=[],
        period_start=date(2024, 1, 1),
        period_end=date(2024, 2, 29),
        months=["2024-01", "2024-02"],
    )
    content = zim_export.export_payment_request_pdf("Muster GmbH", project, calculation).getvalue()
    assert content.startswith(b"%PDF")
    assert _page_count(content) == 2
    assert zim_export.payment_request_filename(project, calculation.request_number) == "ZA_16KN123456_Entwurf.pdf"
